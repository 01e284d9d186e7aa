"""Adversarial-extraction (MEV) threat scoring for routes."""

import structlog

from smartroute.config import DEFAULT_PROTECTION_THRESHOLDS, ProtectionThreshold
from smartroute.models.market import MarketConditions
from smartroute.models.route import RouteProposal
from smartroute.models.strategy import (
    MEVAnalysis,
    MEVThreat,
    ThreatSignals,
    ThreatType,
)
from smartroute.models.types import RiskTier
from smartroute.risk.protection import price_protections, rank_candidates

logger = structlog.get_logger()

# Fraction of the price impact a sandwich typically extracts
SANDWICH_EXTRACTION = 0.5
# Fraction of trade value a frontrun typically costs
FRONTRUN_IMPACT = 0.02
# Fraction of arbitrage profit borne by the trade
ARBITRAGE_SHARE = 0.3


def trade_value_usd(route: RouteProposal, market: MarketConditions) -> float:
    """USD value of the route's output (unit price when unknown)."""
    price = market.price_of(route.to_token)
    return route.estimated_output * (price if price is not None else 1.0)


def _tiered(value: float, tiers: tuple[tuple[float, float], ...]) -> float:
    """Increment for the first (threshold, increment) whose threshold is exceeded."""
    for threshold, increment in tiers:
        if value > threshold:
            return increment
    return 0.0


class MEVRiskAnalyzer:
    """Scores a route against sandwich, frontrun, arbitrage and liquidation threats.

    Each threat probability is a sum of bounded signal increments capped at
    ``probability_cap``. The overall tier follows the single most likely threat.
    """

    def __init__(
        self,
        probability_cap: float = 0.95,
        thresholds: dict[RiskTier, ProtectionThreshold] | None = None,
    ) -> None:
        self.probability_cap = probability_cap
        self.thresholds = thresholds or DEFAULT_PROTECTION_THRESHOLDS

    def analyze(self, route: RouteProposal, market: MarketConditions) -> MEVAnalysis:
        value = trade_value_usd(route, market)
        threats = [
            self.sandwich(route, market, value),
            self.frontrun(market, value),
            self.arbitrage(market),
            self.liquidation(market),
        ]

        max_probability = max(t.probability for t in threats)
        tier = RiskTier.from_probability(max_probability)
        estimated_loss = sum(t.probability * t.estimated_impact for t in threats)

        candidates = rank_candidates(
            price_protections(route, threats, market),
            self.thresholds[tier].max_cost,
        )

        sandwich, frontrun = threats[0], threats[1]
        reasoning = [
            f"Sandwich attack probability: {sandwich.probability * 100:.1f}%",
            f"Frontrun risk: {frontrun.probability * 100:.1f}%",
            f"Estimated potential loss: ${estimated_loss:.2f}",
            f"Risk level: {tier.value.upper()}",
        ]
        logger.debug(
            "mev_analyzed",
            route_id=route.id,
            risk_tier=tier.value,
            estimated_loss=round(estimated_loss, 4),
            candidates=len(candidates),
        )
        return MEVAnalysis(
            route_id=route.id,
            risk_tier=tier,
            threats=threats,
            protection_candidates=candidates,
            estimated_loss=estimated_loss,
            confidence=0.85,
            reasoning=reasoning,
        )

    def _cap(self, probability: float) -> float:
        return min(max(probability, 0.0), self.probability_cap)

    def sandwich(self, route: RouteProposal, market: MarketConditions, value: float) -> MEVThreat:
        impact = route.price_impact
        probability = _tiered(impact, ((0.05, 0.4), (0.02, 0.2), (0.01, 0.1)))
        probability += _tiered(value, ((100_000, 0.3), (50_000, 0.2), (10_000, 0.1)))
        probability += market.volatility * 0.2
        probability += _tiered(market.gas_price_gwei, ((50, 0.1), (30, 0.05)))
        probability += market.competitor_intensity * 0.15

        return MEVThreat(
            type=ThreatType.SANDWICH,
            probability=self._cap(probability),
            estimated_impact=value * impact * SANDWICH_EXTRACTION,
            signals=ThreatSignals(
                mempool_analysis=True,
                gas_price_spike=market.gas_price_gwei > 40,
                large_order=value > 50_000,
                competitor_activity=market.competitor_intensity > 0.3,
            ),
        )

    def frontrun(self, market: MarketConditions, value: float) -> MEVThreat:
        probability = 0.1 + market.arbitrage_profitability * 0.3
        if market.gas_price_gwei > 60:
            probability += 0.2

        return MEVThreat(
            type=ThreatType.FRONTRUN,
            probability=self._cap(probability),
            estimated_impact=value * FRONTRUN_IMPACT,
            signals=ThreatSignals(
                mempool_analysis=True,
                gas_price_spike=market.gas_price_gwei > 50,
                competitor_activity=True,
            ),
        )

    def arbitrage(self, market: MarketConditions) -> MEVThreat:
        return MEVThreat(
            type=ThreatType.ARBITRAGE,
            probability=self._cap(0.05 + market.price_discrepancy * 0.4),
            estimated_impact=market.arbitrage_profit_usd * ARBITRAGE_SHARE,
            signals=ThreatSignals(competitor_activity=True, historical_patterns=True),
        )

    def liquidation(self, market: MarketConditions) -> MEVThreat:
        return MEVThreat(
            type=ThreatType.LIQUIDATION,
            probability=self._cap(market.liquidation_probability),
            estimated_impact=market.liquidation_impact_usd,
            signals=ThreatSignals(large_order=True, competitor_activity=True, historical_patterns=True),
        )
