"""Tests for protection pricing and selection."""

import pytest

from smartroute.models.strategy import ProtectionKind, ThreatType
from smartroute.models.types import RiskTier
from smartroute.risk.protection import (
    ProtectionSelector,
    gas_cost_usd,
    price_protections,
    rank_candidates,
)

from tests.helpers import make_analysis, make_candidate, make_market, make_route


@pytest.fixture
def selector() -> ProtectionSelector:
    return ProtectionSelector()


class TestProtectionSelector:
    def test_selects_affordable_candidate(self, selector: ProtectionSelector) -> None:
        analysis = make_analysis([0.1], candidates=[make_candidate(additional_cost=5.0)])

        decision = selector.select(analysis, "medium")

        assert decision.enabled is True
        assert decision.kind == ProtectionKind.PRIVATE_MEMPOOL
        assert decision.estimated_protection == 0.9
        assert decision.additional_cost == 5.0

    def test_high_tolerance_skips_low_risk(self, selector: ProtectionSelector) -> None:
        analysis = make_analysis([0.1], candidates=[make_candidate(additional_cost=1.0)])
        decision = selector.select(analysis, "high")
        assert decision.enabled is False

    def test_high_tolerance_still_protects_elevated_risk(self, selector: ProtectionSelector) -> None:
        analysis = make_analysis([0.6], candidates=[make_candidate(additional_cost=10.0)])
        assert selector.select(analysis, "high").enabled is True

    def test_nothing_within_cost_cap(self, selector: ProtectionSelector) -> None:
        analysis = make_analysis([0.6], candidates=[make_candidate(additional_cost=60.0)])

        decision = selector.select(analysis, "low")

        assert decision.enabled is False
        assert decision.kind is None
        assert "$50.00 cost cap" in decision.reasoning[0]
        assert "$60.00" in decision.reasoning[0]

    def test_tolerance_scales_cost_cap(self, selector: ProtectionSelector) -> None:
        analysis = make_analysis([0.6], candidates=[make_candidate(additional_cost=40.0)])
        assert selector.select(analysis, "low").enabled is True
        # 50 * 0.75
        assert selector.select(analysis, "medium").enabled is False

    def test_incompatible_candidates_are_ignored(self, selector: ProtectionSelector) -> None:
        analysis = make_analysis(
            [0.3],
            candidates=[
                make_candidate(effectiveness=0.9, additional_cost=1.0, compatible=False),
                make_candidate(ProtectionKind.TIMING_DELAY, effectiveness=0.4, additional_cost=0.0),
            ],
        )
        assert selector.select(analysis, "low").kind == ProtectionKind.TIMING_DELAY

    def test_below_target_effectiveness_is_noted(self, selector: ProtectionSelector) -> None:
        analysis = make_analysis([0.6], candidates=[make_candidate(effectiveness=0.9, additional_cost=15.0)])
        decision = selector.select(analysis, "low")
        assert decision.enabled is True
        assert any("Below the 95% target" in r for r in decision.reasoning)

    def test_tier_sets_cost_cap(self, selector: ProtectionSelector) -> None:
        assert selector.cost_cap(RiskTier.LOW, "low") == 10.0
        assert selector.cost_cap(RiskTier.CRITICAL, "high") == 50.0


class TestRanking:
    def test_most_effective_first_then_cheapest(self) -> None:
        cheap = make_candidate(ProtectionKind.COMMIT_REVEAL, effectiveness=0.85, additional_cost=2.0)
        pricey = make_candidate(ProtectionKind.FLASHLOAN_PROTECTION, effectiveness=0.85, additional_cost=8.0)
        best = make_candidate(effectiveness=0.9, additional_cost=9.0)

        ranked = rank_candidates([pricey, cheap, best], max_cost=10.0)

        assert ranked == [best, cheap, pricey]

    def test_excludes_over_cap(self) -> None:
        assert rank_candidates([make_candidate(additional_cost=11.0)], max_cost=10.0) == []


class TestPricing:
    def test_gas_cost_usd(self) -> None:
        market = make_market(gas_price_gwei=20.0)
        assert gas_cost_usd(100_000, market) == pytest.approx(4.0)

    def test_catalog_priced_for_route(self) -> None:
        market = make_market(gas_price_gwei=20.0)
        analysis = make_analysis([0.1, 0.1, 0.05, 0.0])
        route = make_route(price_impact=0.005, hops=3, advantages=["mev-protected"])

        by_kind = {c.kind: c for c in price_protections(route, analysis.threats, market)}

        assert by_kind[ProtectionKind.PRIVATE_MEMPOOL].compatible is False
        assert by_kind[ProtectionKind.COMMIT_REVEAL].compatible is False
        assert by_kind[ProtectionKind.ORDER_SPLITTING].compatible is False
        assert by_kind[ProtectionKind.TIMING_DELAY].additional_cost == 0.0
        assert by_kind[ProtectionKind.FLASHLOAN_PROTECTION].compatible is False
        assert analysis.threat(ThreatType.LIQUIDATION).probability == 0.0
