"""Confidence scoring for execution strategies.

The raw score is a fixed weighted sum of six normalized sub-scores. It is
then passed through the per-tier calibration curve and clamped to
[MIN_CONFIDENCE, MAX_CONFIDENCE].
"""

import math
from dataclasses import dataclass

import numpy as np

from smartroute.learning.calibration import ConfidenceCalibrator
from smartroute.models.market import MempoolStatus
from smartroute.models.strategy import GasPrediction, MEVAnalysis, TimingAnalysis

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.99

# Sub-score weights, summing to 1.0
WEIGHTS = {
    "threat_agreement": 0.25,
    "gas_prediction": 0.20,
    "protection_alignment": 0.20,
    "mempool_stability": 0.15,
    "historical_calibration": 0.15,
    "market_certainty": 0.05,
}

# Sub-score used when the calibrator has no history for a tier
DEFAULT_HISTORICAL_CALIBRATION = 0.6

# Mempool shape considered normal
NORMAL_UTILIZATION = 0.7
PENDING_SCALE = 200_000


def clamp_confidence(value: float) -> float:
    if math.isnan(value):
        return MIN_CONFIDENCE
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, value))


def threat_agreement(probabilities: list[float]) -> float:
    """How consistently the threat models agree, ``max(0.1, 1 - 2*stddev)``.

    A single threat (or none) is treated as moderate agreement.
    """
    if len(probabilities) < 2:
        return 0.8
    return max(0.1, 1 - 2 * float(np.std(probabilities)))


def gas_prediction_confidence(predictions: list[GasPrediction]) -> float:
    """Average prediction confidence blended with how tight the predictions are."""
    if not predictions:
        return 0.5
    prices = [p.price_gwei for p in predictions]
    lowest = min(prices)
    spread = (max(prices) - lowest) / lowest if lowest > 0 else 1.0
    mean_confidence = sum(p.confidence for p in predictions) / len(predictions)
    return (mean_confidence + max(0.1, 1 - spread)) / 2


def protection_alignment(analysis: MEVAnalysis) -> float:
    best = max((c.effectiveness for c in analysis.protection_candidates), default=0.0)
    return 1 - abs(analysis.max_probability - best)


def mempool_stability(mempool: MempoolStatus) -> float:
    utilization_score = 1 - abs(mempool.utilization - NORMAL_UTILIZATION)
    pending_score = max(0.1, 1 - mempool.pending_count / PENDING_SCALE)
    return (utilization_score + pending_score) / 2


def market_uncertainty(timing: TimingAnalysis) -> float:
    gas_uncertainty = 1 - timing.gas_optimization.prediction_confidence
    spread = 0.3 if timing.market_timing.spread_widening else 0.1
    delay = min(0.5, timing.delay_recommended / 600)
    volatility = 0.4 if timing.market_timing.volatility_window else 0.1
    return (gas_uncertainty + spread + delay + volatility) / 4


@dataclass
class ConfidenceBreakdown:
    components: dict[str, float]
    raw: float
    calibrated: float
    final: float


class ConfidenceScorer:
    """Combines analysis results into one calibrated confidence value."""

    def __init__(self, calibrator: ConfidenceCalibrator | None = None) -> None:
        self.calibrator = calibrator or ConfidenceCalibrator()

    def score(
        self,
        analysis: MEVAnalysis,
        timing: TimingAnalysis,
        gas_predictions: list[GasPrediction],
        mempool: MempoolStatus,
        historical_calibration: float | None = None,
    ) -> ConfidenceBreakdown:
        if historical_calibration is None:
            historical_calibration = self.calibrator.calibration_quality(analysis.risk_tier)
        if historical_calibration is None:
            historical_calibration = DEFAULT_HISTORICAL_CALIBRATION

        components = {
            "threat_agreement": threat_agreement([t.probability for t in analysis.threats]),
            "gas_prediction": gas_prediction_confidence(gas_predictions),
            "protection_alignment": protection_alignment(analysis),
            "mempool_stability": mempool_stability(mempool),
            "historical_calibration": historical_calibration,
            "market_certainty": 1 - market_uncertainty(timing),
        }
        raw = sum(WEIGHTS[name] * value for name, value in components.items())
        raw = clamp_confidence(raw)
        calibrated = self.calibrator.calibrate(raw, analysis.risk_tier)

        return ConfidenceBreakdown(
            components=components,
            raw=raw,
            calibrated=calibrated,
            final=clamp_confidence(calibrated),
        )
