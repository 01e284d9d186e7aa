"""Execution outcome tracking and per-tier performance metrics."""

import time
from collections import Counter
from collections.abc import Callable

import structlog

from smartroute.config import LearningConfig
from smartroute.learning.calibration import ConfidenceCalibrator
from smartroute.models.outcome import (
    ActualResults,
    ExecutionOutcome,
    ExecutionPredictions,
    LearningInsights,
    LearningState,
    OutcomeDeltas,
    StrategyPerformanceMetrics,
)
from smartroute.models.types import RiskTier

logger = structlog.get_logger()

# Slippage delta at which slippage accuracy reaches zero
SLIPPAGE_ACCURACY_SCALE = 0.05


def mev_prediction_accuracy(tier: RiskTier, detected: bool) -> float:
    """Agreement between the predicted tier and whether MEV was observed."""
    if tier.is_elevated:
        # False positive costs less than a miss
        return 1.0 if detected else 0.3
    return 0.1 if detected else 1.0


def _running(current: float, value: float, n: int) -> float:
    weight = 1 / (n + 1)
    return current * (1 - weight) + value * weight


class OutcomeTracker:
    """Keeps predicted-vs-actual records and learns from them.

    Outcomes are created with predictions only when a strategy is generated,
    completed when actual results are recorded, and pruned after the
    learning window. Completing an outcome updates the tier's running
    metrics and feeds the confidence calibrator.
    """

    def __init__(
        self,
        calibrator: ConfidenceCalibrator | None = None,
        config: LearningConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or LearningConfig()
        self.calibrator = calibrator or ConfidenceCalibrator(self.config)
        self.clock = clock
        self._outcomes: dict[str, ExecutionOutcome] = {}
        self._metrics = {tier: StrategyPerformanceMetrics() for tier in RiskTier}

    def __len__(self) -> int:
        return len(self._outcomes)

    def get(self, strategy_id: str) -> ExecutionOutcome | None:
        return self._outcomes.get(strategy_id)

    def track(self, strategy_id: str, route_id: str, predictions: ExecutionPredictions) -> ExecutionOutcome:
        outcome = ExecutionOutcome(
            strategy_id=strategy_id,
            route_id=route_id,
            created_at=self.clock(),
            predictions=predictions,
        )
        self._outcomes[strategy_id] = outcome
        return outcome

    def record(self, strategy_id: str, actual: ActualResults) -> ExecutionOutcome | None:
        """Complete a tracked outcome. Returns None for unknown strategies."""
        outcome = self._outcomes.get(strategy_id)
        if outcome is None:
            logger.warning("outcome_unknown_strategy", strategy_id=strategy_id)
            return None
        if outcome.is_complete:
            logger.warning("outcome_already_recorded", strategy_id=strategy_id)
            return outcome

        predictions = outcome.predictions
        deltas = OutcomeDeltas(
            slippage_delta=abs(actual.actual_slippage - predictions.expected_slippage),
            gas_delta=abs(actual.actual_gas_cost - predictions.expected_gas_cost),
            time_delta=abs(actual.actual_execution_time - predictions.expected_execution_time),
            mev_prediction_accuracy=mev_prediction_accuracy(predictions.risk_tier, actual.mev_detected),
        )
        outcome.actual = actual
        outcome.deltas = deltas
        outcome.completed_at = self.clock()
        outcome.learnings = self._learnings(predictions, actual, deltas)

        self._update_metrics(predictions, actual, deltas)
        self.calibrator.add_sample(predictions.risk_tier, predictions.confidence, actual.execution_success)
        quality = self.calibrator.calibration_quality(predictions.risk_tier)
        if quality is not None:
            self._metrics[predictions.risk_tier].confidence_calibration = quality

        logger.info(
            "outcome_recorded",
            strategy_id=strategy_id,
            risk_tier=predictions.risk_tier.value,
            success=actual.execution_success,
            learnings=len(outcome.learnings),
        )
        return outcome

    def _learnings(
        self, predictions: ExecutionPredictions, actual: ActualResults, deltas: OutcomeDeltas
    ) -> list[str]:
        config = self.config
        learnings = []
        if deltas.slippage_delta > config.slippage_learning_threshold:
            direction = "higher" if actual.actual_slippage > predictions.expected_slippage else "lower"
            learnings.append(f"Slippage was {direction} than predicted by {deltas.slippage_delta * 100:.2f}%")
        if deltas.gas_delta > predictions.expected_gas_cost * config.gas_learning_ratio:
            learnings.append("Gas cost prediction needs improvement")
        if deltas.mev_prediction_accuracy < 0.5:
            if actual.mev_detected:
                learnings.append(f"MEV occurred despite {predictions.risk_tier.value} risk prediction")
            else:
                learnings.append(f"No MEV despite {predictions.risk_tier.value} risk prediction")
        if actual.protection_effectiveness is not None and actual.protection_effectiveness < 0.7:
            learnings.append("MEV protection was less effective than expected")
        if deltas.time_delta > config.time_learning_threshold:
            learnings.append("Execution time prediction was significantly off")
        return learnings

    def _update_metrics(
        self, predictions: ExecutionPredictions, actual: ActualResults, deltas: OutcomeDeltas
    ) -> None:
        metrics = self._metrics[predictions.risk_tier]
        n = metrics.total_executions

        slippage_accuracy = max(0.0, 1 - deltas.slippage_delta / SLIPPAGE_ACCURACY_SCALE)
        if predictions.expected_gas_cost > 0:
            gas_accuracy = max(0.0, 1 - deltas.gas_delta / predictions.expected_gas_cost)
        else:
            gas_accuracy = 1.0 if deltas.gas_delta == 0 else 0.0

        metrics.success_rate = _running(metrics.success_rate, 1.0 if actual.execution_success else 0.0, n)
        metrics.average_slippage_accuracy = _running(metrics.average_slippage_accuracy, slippage_accuracy, n)
        metrics.average_gas_accuracy = _running(metrics.average_gas_accuracy, gas_accuracy, n)
        metrics.mev_prediction_accuracy = _running(
            metrics.mev_prediction_accuracy, deltas.mev_prediction_accuracy, n
        )
        if actual.protection_effectiveness is not None:
            metrics.protection_effectiveness = _running(
                metrics.protection_effectiveness, actual.protection_effectiveness, n
            )

        savings = max(0.0, predictions.expected_gas_cost - actual.actual_gas_cost)
        if actual.mev_impact is not None and actual.protection_effectiveness is not None:
            savings += actual.mev_impact * actual.protection_effectiveness
        metrics.cost_savings = _running(metrics.cost_savings, savings, n)
        metrics.total_executions = n + 1

    def prune(self, now: float | None = None) -> int:
        """Drop outcomes older than the learning window. Returns the number removed."""
        now = self.clock() if now is None else now
        cutoff = now - self.config.learning_window
        stale = [sid for sid, outcome in self._outcomes.items() if outcome.created_at < cutoff]
        for sid in stale:
            del self._outcomes[sid]
        if stale:
            logger.info("outcomes_pruned", removed=len(stale), remaining=len(self._outcomes))
        return len(stale)

    def metrics(self, tier: RiskTier | None = None) -> dict[RiskTier, StrategyPerformanceMetrics]:
        tiers = [tier] if tier is not None else list(RiskTier)
        return {t: self._metrics[t].model_copy() for t in tiers}

    def historical_calibration(self, tier: RiskTier) -> float:
        return self._metrics[tier].confidence_calibration

    def recent_outcomes(self, limit: int = 10) -> list[ExecutionOutcome]:
        ordered = sorted(self._outcomes.values(), key=lambda o: o.created_at, reverse=True)
        return ordered[:limit]

    def learning_insights(self) -> LearningInsights:
        completed = [o for o in self.recent_outcomes(self.config.insight_window) if o.is_complete]
        counts = Counter(learning for o in completed for learning in o.learnings)
        top = [learning for learning, _ in counts.most_common(5)]

        trends: dict[str, float] = {}
        recommendations: list[str] = []
        for tier, metrics in self._metrics.items():
            if metrics.total_executions == 0:
                continue
            trends[f"{tier.value}_success_rate"] = metrics.success_rate
            trends[f"{tier.value}_mev_accuracy"] = metrics.mev_prediction_accuracy
            trends[f"{tier.value}_confidence_calibration"] = metrics.confidence_calibration

            if metrics.mev_prediction_accuracy < 0.7:
                recommendations.append(f"Improve MEV detection for {tier.value} risk routes")
            if metrics.average_slippage_accuracy < 0.75:
                recommendations.append(f"Refine slippage prediction for {tier.value} risk routes")
            if metrics.confidence_calibration < 0.6:
                recommendations.append(f"Recalibrate confidence scoring for {tier.value} risk routes")

        return LearningInsights(
            top_learnings=top,
            performance_trends=trends,
            recommended_improvements=recommendations,
        )

    def snapshot(self) -> LearningState:
        return LearningState(
            metrics=self.metrics(),
            calibration_samples=self.calibrator.samples(),
        )

    def restore(self, state: LearningState) -> None:
        for tier, metrics in state.metrics.items():
            self._metrics[tier] = metrics.model_copy()
        self.calibrator.load(state.calibration_samples)

    def reset_metrics(self) -> None:
        """Reinitialize every tier to baseline metrics and drop calibration data."""
        self._metrics = {tier: StrategyPerformanceMetrics() for tier in RiskTier}
        self.calibrator.clear()
        logger.info("metrics_reset")

    def clear(self) -> None:
        self._outcomes.clear()
