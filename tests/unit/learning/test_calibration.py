"""Tests for per-tier confidence calibration."""

import pytest

from smartroute.config import LearningConfig
from smartroute.learning.calibration import ConfidenceCalibrator
from smartroute.models.types import RiskTier


def over_confident(calibrator: ConfidenceCalibrator, tier: RiskTier, count: int = 60) -> None:
    """Predict 0.85 but succeed only 30% of the time."""
    for i in range(count):
        calibrator.add_sample(tier, 0.85, success=i % 10 < 3)


class TestConfidenceCalibrator:
    def test_identity_until_enough_samples(self) -> None:
        calibrator = ConfidenceCalibrator()
        over_confident(calibrator, RiskTier.HIGH, count=49)

        assert calibrator.is_calibrated(RiskTier.HIGH) is False
        assert calibrator.calibrate(0.85, RiskTier.HIGH) == 0.85

    def test_over_confident_tier_is_pulled_down(self) -> None:
        calibrator = ConfidenceCalibrator()
        over_confident(calibrator, RiskTier.HIGH)

        calibrated = calibrator.calibrate(0.85, RiskTier.HIGH)

        assert calibrated < 0.85
        assert calibrated == pytest.approx(0.3)

    def test_tiers_are_independent(self) -> None:
        calibrator = ConfidenceCalibrator()
        over_confident(calibrator, RiskTier.HIGH)
        assert calibrator.calibrate(0.85, RiskTier.LOW) == 0.85

    def test_empty_bins_stay_near_identity(self) -> None:
        calibrator = ConfidenceCalibrator()
        over_confident(calibrator, RiskTier.HIGH)
        # Between the 0.25 and 0.35 midpoints, both bins empty
        assert calibrator.calibrate(0.3, RiskTier.HIGH) == pytest.approx(0.3)

    def test_under_confident_tier_is_pulled_up(self) -> None:
        calibrator = ConfidenceCalibrator()
        for _ in range(60):
            calibrator.add_sample(RiskTier.LOW, 0.45, success=True)
        assert calibrator.calibrate(0.45, RiskTier.LOW) == pytest.approx(1.0)

    def test_capacity_bounds_samples(self) -> None:
        calibrator = ConfidenceCalibrator(LearningConfig(calibration_capacity=100))
        over_confident(calibrator, RiskTier.MEDIUM, count=150)
        assert len(calibrator.samples()[RiskTier.MEDIUM]) == 100

    def test_predictions_clamped_into_unit_interval(self) -> None:
        calibrator = ConfidenceCalibrator()
        calibrator.add_sample(RiskTier.LOW, 1.5, success=True)
        assert calibrator.samples()[RiskTier.LOW] == [(1.0, True)]

    def test_calibration_error_and_quality(self) -> None:
        calibrator = ConfidenceCalibrator()
        assert calibrator.calibration_error(RiskTier.HIGH) is None
        assert calibrator.calibration_quality(RiskTier.HIGH) is None

        over_confident(calibrator, RiskTier.HIGH)

        assert calibrator.calibration_error(RiskTier.HIGH) == pytest.approx(0.55)
        assert calibrator.calibration_quality(RiskTier.HIGH) == pytest.approx(0.45)

    def test_calibration_stats_cover_every_tier(self) -> None:
        calibrator = ConfidenceCalibrator()
        over_confident(calibrator, RiskTier.CRITICAL)

        stats = calibrator.calibration_stats()

        assert set(stats) == set(RiskTier)
        assert stats[RiskTier.CRITICAL].total_samples == 60
        assert stats[RiskTier.CRITICAL].calibrated is True
        assert stats[RiskTier.LOW].total_samples == 0
        assert stats[RiskTier.LOW].calibration_error == 0.0

    def test_load_refits_curves(self) -> None:
        source = ConfidenceCalibrator()
        over_confident(source, RiskTier.HIGH)

        target = ConfidenceCalibrator()
        target.load(source.samples())

        assert target.is_calibrated(RiskTier.HIGH)
        assert target.calibrate(0.85, RiskTier.HIGH) == pytest.approx(source.calibrate(0.85, RiskTier.HIGH))

    def test_clear(self) -> None:
        calibrator = ConfidenceCalibrator()
        over_confident(calibrator, RiskTier.HIGH)
        calibrator.clear()
        assert calibrator.samples() == {}
        assert calibrator.calibrate(0.85, RiskTier.HIGH) == 0.85
