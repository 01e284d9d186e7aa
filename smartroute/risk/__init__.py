"""Extraction-risk analysis and protection selection."""

from smartroute.risk.mev import MEVRiskAnalyzer
from smartroute.risk.protection import ProtectionSelector

__all__ = ["MEVRiskAnalyzer", "ProtectionSelector"]
