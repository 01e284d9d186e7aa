"""MEV analysis, timing analysis and execution strategy value objects."""

from enum import Enum

from pydantic import Field

from smartroute.models.base import WireModel
from smartroute.models.types import Probability, RiskTier


class ThreatType(str, Enum):
    SANDWICH = "sandwich"
    FRONTRUN = "frontrun"
    ARBITRAGE = "arbitrage"
    LIQUIDATION = "liquidation"


class ProtectionKind(str, Enum):
    PRIVATE_MEMPOOL = "private_mempool"
    COMMIT_REVEAL = "commit_reveal"
    ORDER_SPLITTING = "order_splitting"
    TIMING_DELAY = "timing_delay"
    FLASHLOAN_PROTECTION = "flashloan_protection"


class ThreatSignals(WireModel):
    """Detection signals observed for a threat."""

    mempool_analysis: bool = False
    gas_price_spike: bool = False
    large_order: bool = False
    competitor_activity: bool = False
    historical_patterns: bool = False


class MEVThreat(WireModel):
    type: ThreatType
    probability: Probability
    estimated_impact: float = Field(ge=0)
    signals: ThreatSignals = Field(default_factory=ThreatSignals)


class ProtectionCandidate(WireModel):
    """A protection strategy priced for a particular route."""

    kind: ProtectionKind
    effectiveness: Probability
    additional_cost: float = Field(ge=0)
    latency_impact: float = Field(default=0.0, ge=0)
    compatible: bool = True


class MEVAnalysis(WireModel):
    """Result of scoring a route against all threat models."""

    route_id: str
    risk_tier: RiskTier
    threats: list[MEVThreat]
    protection_candidates: list[ProtectionCandidate] = Field(default_factory=list)
    estimated_loss: float = Field(default=0.0, ge=0)
    confidence: Probability = 0.85
    reasoning: list[str] = Field(default_factory=list)

    @property
    def max_probability(self) -> float:
        return max((t.probability for t in self.threats), default=0.0)

    def threat(self, threat_type: ThreatType) -> MEVThreat | None:
        for t in self.threats:
            if t.type == threat_type:
                return t
        return None


class ProtectionDecision(WireModel):
    enabled: bool
    kind: ProtectionKind | None = None
    estimated_protection: Probability = 0.0
    additional_cost: float = Field(default=0.0, ge=0)
    reasoning: list[str] = Field(default_factory=list)


class GasPrediction(WireModel):
    """A predicted gas price and how long until it is expected."""

    price_gwei: float = Field(ge=0)
    time_to_reach: float = Field(ge=0)
    confidence: Probability


class GasOptimization(WireModel):
    current_price_gwei: float
    predicted_optimal_gwei: float
    wait_time_for_optimal: float
    potential_savings_usd: float = 0.0
    prediction_confidence: Probability = 0.5


class MarketTiming(WireModel):
    volatility_window: bool
    spread_widening: bool
    order_book_imbalance: float
    liquidity_depth_usd: float
    recommended_delay: float


class CongestionAnalysis(WireModel):
    network_utilization: Probability
    pending_transactions: int
    estimated_clear_time: float
    priority_gas_gwei: float
    recommended_delay: float


class TimingAnalysis(WireModel):
    """Combined gas, market and congestion timing view."""

    optimal: bool
    delay_recommended: float
    gas_optimization: GasOptimization
    market_timing: MarketTiming
    congestion: CongestionAnalysis


class TimingDecision(WireModel):
    optimal: bool
    immediate: bool
    delay_recommended: float
    reason: str


class ExecutionWindow(WireModel):
    """Interval (unix seconds) in which execution is expected to be favorable."""

    start: float
    end: float
    confidence: Probability
    reasoning: str = ""
    gas_estimate_gwei: float = 0.0
    slippage_estimate: float = 0.0


class SplitImprovements(WireModel):
    slippage_reduction: float = 0.0
    mev_reduction: float = 0.0
    total_cost_reduction: float = 0.0


class OrderSplitPlan(WireModel):
    enabled: bool
    number_of_parts: int = 1
    time_between_parts: float = 0.0
    randomized: bool = False
    size_distribution: list[float] = Field(default_factory=lambda: [1.0])
    estimated_improvements: SplitImprovements = Field(default_factory=SplitImprovements)


class GasStrategy(WireModel):
    priority: str
    gas_price_gwei: float
    max_fee_per_gas_gwei: float
    max_priority_fee_gwei: float
    gas_limit: int
    estimated_cost_usd: float


class EstimatedImprovements(WireModel):
    cost_savings: float = 0.0
    time_reduction: float = 0.0
    risk_reduction: Probability = 0.0


class ExecutionStrategy(WireModel):
    """Everything the execution layer needs to carry out one route."""

    id: str
    route_id: str
    risk_tier: RiskTier
    protection: ProtectionDecision
    gas_strategy: GasStrategy
    timing: TimingDecision
    order_split: OrderSplitPlan
    execution_windows: list[ExecutionWindow]
    contingency_actions: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    raw_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    estimated_improvements: EstimatedImprovements = Field(default_factory=EstimatedImprovements)
    reasoning: list[str] = Field(default_factory=list)
    degraded: bool = False
