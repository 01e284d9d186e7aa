"""Market observations and externally supplied assessments."""

from typing import Literal

from pydantic import Field

from smartroute.models.base import WireModel
from smartroute.models.types import Probability, normalize_token


class MempoolStatus(WireModel):
    """Network congestion snapshot."""

    utilization: Probability = 0.7
    pending_count: int = Field(default=150_000, ge=0)
    estimated_clear_time: float = Field(default=180.0, ge=0)
    priority_gas_gwei: float = Field(default=35.0, ge=0)


class MarketConditions(WireModel):
    """Observable market signals used by risk and timing analysis.

    Prices are keyed by token identifier (any case). MEV-specific signals
    default to "nothing observed".
    """

    volatility: float = Field(default=0.1, ge=0)
    prices: dict[str, float] = Field(default_factory=dict)
    gas_price_gwei: float = Field(default=30.0, ge=0)
    native_usd_price: float = Field(default=2000.0, ge=0)
    mempool: MempoolStatus = Field(default_factory=MempoolStatus)
    competitor_intensity: Probability = 0.3
    current_spread: float = Field(default=0.01, ge=0)
    average_spread: float = Field(default=0.015, ge=0)
    spread_widening: bool = False
    order_book_imbalance: float = Field(default=0.1, ge=-1.0, le=1.0)
    liquidity_depth_usd: float = Field(default=1_000_000.0, ge=0)

    arbitrage_profitability: Probability = 0.0
    price_discrepancy: Probability = 0.0
    arbitrage_profit_usd: float = Field(default=0.0, ge=0)
    liquidation_probability: Probability = 0.05
    liquidation_impact_usd: float = Field(default=0.0, ge=0)

    def price_of(self, token: str) -> float | None:
        """USD price of a token if the caller supplied one."""
        key = normalize_token(token)
        for name, price in self.prices.items():
            if normalize_token(name) == key:
                return price
        return None


class RiskFactors(WireModel):
    protocol_risk: Probability = 0.0
    liquidity_risk: Probability = 0.0
    slippage_risk: Probability = 0.0
    mev_risk: Probability = 0.0


class RiskAssessment(WireModel):
    """Risk view of a route supplied by an external assessor."""

    route_id: str
    overall_risk: Probability
    security_score: float = Field(default=50.0, ge=0, le=100)
    factors: RiskFactors = Field(default_factory=RiskFactors)
    recommendations: list[str] = Field(default_factory=list)
    blockers: list[str] = Field(default_factory=list)
    assessed_by: str = "external"


class DecisionCriteria(WireModel):
    """Per-criterion weights for consensus selection."""

    cost: float = Field(default=0.2, ge=0)
    time: float = Field(default=0.2, ge=0)
    security: float = Field(default=0.2, ge=0)
    reliability: float = Field(default=0.2, ge=0)
    slippage: float = Field(default=0.2, ge=0)


class UserPreferences(WireModel):
    """Caller preferences for execution strategy generation."""

    mev_tolerance: Literal["none", "low", "medium", "high"] = "low"
    urgency: Literal["immediate", "normal", "patient"] = "normal"
    max_delay: float = Field(default=300.0, ge=0)
    gas_priority: Literal["economy", "standard", "fast", "instant"] = "standard"
