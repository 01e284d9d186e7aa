"""Per-tier confidence calibration from observed execution outcomes."""

from collections import deque

import numpy as np
import structlog

from smartroute.config import LearningConfig
from smartroute.models.outcome import CalibrationStats
from smartroute.models.types import RiskTier

logger = structlog.get_logger()


class ConfidenceCalibrator:
    """Maps raw confidence onto observed success rates, per risk tier.

    Keeps the last ``calibration_capacity`` (predicted, success) samples for
    each tier. Once a tier has ``calibration_min_samples`` samples the
    predictions are binned into equal-width bins, each bin's success rate is
    computed, and raw values are linearly interpolated between bin
    midpoints. Empty bins map to their own midpoint so sparse regions stay
    close to identity. Uncalibrated tiers return the raw value unchanged.
    """

    def __init__(self, config: LearningConfig | None = None) -> None:
        self.config = config or LearningConfig()
        self._samples: dict[RiskTier, deque[tuple[float, bool]]] = {}
        self._curves: dict[RiskTier, np.ndarray] = {}

    @property
    def midpoints(self) -> np.ndarray:
        bins = self.config.calibration_bins
        return (np.arange(bins) + 0.5) / bins

    def add_sample(self, tier: RiskTier, predicted: float, success: bool) -> None:
        samples = self._samples.setdefault(tier, deque(maxlen=self.config.calibration_capacity))
        samples.append((min(1.0, max(0.0, predicted)), success))
        if len(samples) >= self.config.calibration_min_samples:
            self._curves[tier] = self._fit(samples)

    def _fit(self, samples: deque[tuple[float, bool]]) -> np.ndarray:
        bins = self.config.calibration_bins
        predicted = np.array([p for p, _ in samples])
        outcomes = np.array([1.0 if s else 0.0 for _, s in samples])

        index = np.minimum((predicted * bins).astype(int), bins - 1)
        counts = np.bincount(index, minlength=bins)
        successes = np.bincount(index, weights=outcomes, minlength=bins)

        curve = self.midpoints.copy()
        filled = counts > 0
        curve[filled] = successes[filled] / counts[filled]
        return curve

    def is_calibrated(self, tier: RiskTier) -> bool:
        return tier in self._curves

    def calibrate(self, raw: float, tier: RiskTier) -> float:
        curve = self._curves.get(tier)
        if curve is None:
            return raw
        return float(np.interp(raw, self.midpoints, curve))

    def calibration_error(self, tier: RiskTier) -> float | None:
        """Mean |midpoint - success rate| over non-empty bins."""
        samples = self._samples.get(tier)
        if not samples or tier not in self._curves:
            return None
        bins = self.config.calibration_bins
        predicted = np.array([p for p, _ in samples])
        index = np.minimum((predicted * bins).astype(int), bins - 1)
        filled = np.bincount(index, minlength=bins) > 0
        return float(np.mean(np.abs(self.midpoints[filled] - self._curves[tier][filled])))

    def calibration_quality(self, tier: RiskTier) -> float | None:
        error = self.calibration_error(tier)
        return None if error is None else 1 - error

    def calibration_stats(self) -> dict[RiskTier, CalibrationStats]:
        stats = {}
        for tier in RiskTier:
            error = self.calibration_error(tier)
            stats[tier] = CalibrationStats(
                total_samples=len(self._samples.get(tier, ())),
                calibration_error=error or 0.0,
                calibrated=self.is_calibrated(tier),
            )
        return stats

    def samples(self) -> dict[RiskTier, list[tuple[float, bool]]]:
        return {tier: list(samples) for tier, samples in self._samples.items()}

    def load(self, samples: dict[RiskTier, list[tuple[float, bool]]]) -> None:
        """Replace all samples and refit every tier."""
        self.clear()
        for tier, pairs in samples.items():
            for predicted, success in pairs:
                self.add_sample(tier, predicted, success)
        logger.info("calibration_loaded", tiers=len(samples))

    def clear(self) -> None:
        self._samples.clear()
        self._curves.clear()
