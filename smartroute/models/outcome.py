"""Execution outcomes and per-tier performance metrics."""

from pydantic import Field

from smartroute.models.base import WireModel
from smartroute.models.strategy import ThreatType
from smartroute.models.types import Probability, RiskTier


class ExecutionPredictions(WireModel):
    """What the strategy predicted at generation time."""

    route_id: str | None = None
    expected_slippage: float = Field(ge=0)
    expected_gas_cost: float = Field(ge=0)
    expected_execution_time: float = Field(ge=0)
    risk_tier: RiskTier
    confidence: Probability


class ActualResults(WireModel):
    """What was observed once the trade executed."""

    execution_success: bool
    actual_slippage: float = Field(ge=0)
    actual_gas_cost: float = Field(ge=0)
    actual_execution_time: float = Field(ge=0)
    mev_detected: bool = False
    mev_type: ThreatType | None = None
    mev_impact: float | None = Field(default=None, ge=0)
    protection_effectiveness: Probability | None = None


class OutcomeDeltas(WireModel):
    slippage_delta: float = 0.0
    gas_delta: float = 0.0
    time_delta: float = 0.0
    mev_prediction_accuracy: Probability = 0.0


class ExecutionOutcome(WireModel):
    """Predicted-vs-actual record for one strategy."""

    strategy_id: str
    route_id: str
    created_at: float
    completed_at: float | None = None
    predictions: ExecutionPredictions
    actual: ActualResults | None = None
    deltas: OutcomeDeltas | None = None
    learnings: list[str] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.actual is not None


class StrategyPerformanceMetrics(WireModel):
    """Running averages for one risk tier."""

    total_executions: int = 0
    success_rate: float = 0.85
    average_slippage_accuracy: float = 0.75
    average_gas_accuracy: float = 0.8
    mev_prediction_accuracy: float = 0.7
    protection_effectiveness: float = 0.8
    cost_savings: float = 0.0
    confidence_calibration: float = 0.6


class CalibrationStats(WireModel):
    total_samples: int = 0
    calibration_error: float = 0.0
    calibrated: bool = False


class LearningInsights(WireModel):
    top_learnings: list[str] = Field(default_factory=list)
    performance_trends: dict[str, float] = Field(default_factory=dict)
    recommended_improvements: list[str] = Field(default_factory=list)


class LearningState(WireModel):
    """Serializable snapshot of everything the learning loop has accumulated."""

    metrics: dict[RiskTier, StrategyPerformanceMetrics] = Field(default_factory=dict)
    calibration_samples: dict[RiskTier, list[tuple[float, bool]]] = Field(default_factory=dict)


class LearningReport(WireModel):
    """Everything the learning loop exposes to operators."""

    metrics: dict[RiskTier, StrategyPerformanceMetrics]
    calibration: dict[RiskTier, CalibrationStats]
    insights: LearningInsights
    recent_outcomes: list[ExecutionOutcome] = Field(default_factory=list)
