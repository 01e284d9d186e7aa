"""Protection strategy catalog and selection.

Each protection kind is priced for a concrete route and market, then the
selector picks the most effective compatible one within the risk tier's cost
cap (scaled by the caller's tolerance for extraction).
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from smartroute.config import DEFAULT_PROTECTION_THRESHOLDS, ProtectionThreshold
from smartroute.models.market import MarketConditions
from smartroute.models.route import RouteProposal
from smartroute.models.strategy import (
    MEVAnalysis,
    MEVThreat,
    ProtectionCandidate,
    ProtectionDecision,
    ProtectionKind,
    ThreatType,
)
from smartroute.models.types import RiskTier

logger = structlog.get_logger()

# Extra gas per additional transaction submitted by a protection scheme
EXTRA_TX_GAS = 50_000

# Share of the tier cost cap a user is willing to spend, by tolerance for extraction
TOLERANCE_COST_FACTOR = {
    "none": 1.0,
    "low": 1.0,
    "medium": 0.75,
    "high": 0.5,
}


def gas_cost_usd(gas: int, market: MarketConditions) -> float:
    return gas * market.gas_price_gwei * 1e-9 * market.native_usd_price


@dataclass(frozen=True)
class ProtectionSpec:
    """How a protection kind is priced and when it applies."""

    kind: ProtectionKind
    effectiveness: float
    latency: float
    cost: Callable[[RouteProposal, MarketConditions], float]
    compatible: Callable[[RouteProposal, list[MEVThreat]], bool]


def _liquidation_exposed(threats: list[MEVThreat]) -> bool:
    return any(t.type == ThreatType.LIQUIDATION and t.probability > 0.1 for t in threats)


PROTECTION_CATALOG: tuple[ProtectionSpec, ...] = (
    ProtectionSpec(
        kind=ProtectionKind.PRIVATE_MEMPOOL,
        effectiveness=0.9,
        latency=2.0,
        cost=lambda route, market: 15.0,
        compatible=lambda route, threats: "mev-protected" not in route.advantages,
    ),
    ProtectionSpec(
        kind=ProtectionKind.COMMIT_REVEAL,
        effectiveness=0.85,
        latency=24.0,
        cost=lambda route, market: gas_cost_usd(2 * EXTRA_TX_GAS, market),
        compatible=lambda route, threats: route.hop_count <= 2,
    ),
    ProtectionSpec(
        kind=ProtectionKind.ORDER_SPLITTING,
        effectiveness=0.6,
        latency=60.0,
        cost=lambda route, market: gas_cost_usd(route.estimated_gas or EXTRA_TX_GAS, market),
        compatible=lambda route, threats: route.price_impact > 0.01,
    ),
    ProtectionSpec(
        kind=ProtectionKind.TIMING_DELAY,
        effectiveness=0.4,
        latency=120.0,
        cost=lambda route, market: 0.0,
        compatible=lambda route, threats: True,
    ),
    ProtectionSpec(
        kind=ProtectionKind.FLASHLOAN_PROTECTION,
        effectiveness=0.7,
        latency=0.0,
        cost=lambda route, market: 20.0,
        compatible=lambda route, threats: _liquidation_exposed(threats),
    ),
)


def price_protections(
    route: RouteProposal, threats: list[MEVThreat], market: MarketConditions
) -> list[ProtectionCandidate]:
    """Price every catalog entry for this route."""
    return [
        ProtectionCandidate(
            kind=entry.kind,
            effectiveness=entry.effectiveness,
            additional_cost=entry.cost(route, market),
            latency_impact=entry.latency,
            compatible=entry.compatible(route, threats),
        )
        for entry in PROTECTION_CATALOG
    ]


def rank_candidates(candidates: list[ProtectionCandidate], max_cost: float) -> list[ProtectionCandidate]:
    """Compatible candidates within ``max_cost``, most effective first.

    Ties on effectiveness go to the cheaper candidate.
    """
    eligible = [c for c in candidates if c.compatible and c.additional_cost <= max_cost]
    return sorted(eligible, key=lambda c: (-c.effectiveness, c.additional_cost))


class ProtectionSelector:
    """Picks the protection strategy to apply for an MEV analysis."""

    def __init__(self, thresholds: dict[RiskTier, ProtectionThreshold] | None = None) -> None:
        self.thresholds = thresholds or DEFAULT_PROTECTION_THRESHOLDS

    def cost_cap(self, tier: RiskTier, tolerance: str) -> float:
        return self.thresholds[tier].max_cost * TOLERANCE_COST_FACTOR.get(tolerance, 1.0)

    def select(self, analysis: MEVAnalysis, tolerance: str = "medium") -> ProtectionDecision:
        threshold = self.thresholds[analysis.risk_tier]
        tier = analysis.risk_tier.value

        if tolerance == "high" and analysis.risk_tier == RiskTier.LOW:
            return ProtectionDecision(
                enabled=False,
                reasoning=[f"Risk tier {tier} is acceptable under high extraction tolerance"],
            )

        cap = self.cost_cap(analysis.risk_tier, tolerance)
        ranked = rank_candidates(analysis.protection_candidates, cap)
        if not ranked:
            compatible = [c.additional_cost for c in analysis.protection_candidates if c.compatible]
            cheapest = f"${min(compatible):.2f}" if compatible else "n/a"
            logger.info("protection_unaffordable", risk_tier=tier, cost_cap=cap, cheapest=cheapest)
            return ProtectionDecision(
                enabled=False,
                reasoning=[
                    f"No compatible protection within the ${cap:.2f} cost cap for {tier} risk "
                    f"(cheapest compatible: {cheapest})",
                    f"Estimated loss left unprotected: ${analysis.estimated_loss:.2f}",
                ],
            )

        best = ranked[0]
        reasoning = [
            f"Selected {best.kind.value} for {best.effectiveness * 100:.1f}% protection",
            f"Risk tier: {tier}",
            f"Estimated loss without protection: ${analysis.estimated_loss:.2f}",
            f"Additional cost: ${best.additional_cost:.2f}",
        ]
        if best.effectiveness < threshold.min_effectiveness:
            reasoning.append(
                f"Below the {threshold.min_effectiveness * 100:.0f}% target effectiveness for {tier} risk"
            )
        return ProtectionDecision(
            enabled=True,
            kind=best.kind,
            estimated_protection=best.effectiveness,
            additional_cost=best.additional_cost,
            reasoning=reasoning,
        )
