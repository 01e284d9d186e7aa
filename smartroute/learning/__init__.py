"""Outcome tracking and confidence calibration."""

from smartroute.learning.calibration import ConfidenceCalibrator
from smartroute.learning.outcomes import OutcomeTracker

__all__ = ["ConfidenceCalibrator", "OutcomeTracker"]
