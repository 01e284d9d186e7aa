"""Tests for MEV threat scoring."""

import pytest

from smartroute.models.strategy import ProtectionKind, ThreatType
from smartroute.models.types import RiskTier
from smartroute.risk.mev import MEVRiskAnalyzer, trade_value_usd

from tests.helpers import TOKEN_B, make_market, make_route


@pytest.fixture
def analyzer() -> MEVRiskAnalyzer:
    return MEVRiskAnalyzer()


class TestMEVRiskAnalyzer:
    def test_quiet_market_is_low_risk(self, analyzer: MEVRiskAnalyzer) -> None:
        analysis = analyzer.analyze(make_route(price_impact=0.005), make_market())

        assert analysis.risk_tier == RiskTier.LOW
        assert analysis.threat(ThreatType.SANDWICH).probability == 0.0
        assert analysis.threat(ThreatType.FRONTRUN).probability == pytest.approx(0.1)
        assert analysis.threat(ThreatType.ARBITRAGE).probability == pytest.approx(0.05)
        assert [t.type for t in analysis.threats] == list(ThreatType)

    def test_hostile_market_is_critical(self, analyzer: MEVRiskAnalyzer) -> None:
        market = make_market(volatility=1.0, gas_price_gwei=60.0, competitor_intensity=1.0, prices={TOKEN_B: 200.0})
        route = make_route(price_impact=0.06)

        analysis = analyzer.analyze(route, market)

        sandwich = analysis.threat(ThreatType.SANDWICH)
        assert analysis.risk_tier == RiskTier.CRITICAL
        assert sandwich.probability == 0.95
        assert sandwich.signals.large_order is True
        assert sandwich.estimated_impact == pytest.approx(trade_value_usd(route, market) * 0.06 * 0.5)

    def test_probabilities_are_capped(self) -> None:
        analyzer = MEVRiskAnalyzer(probability_cap=0.5)
        market = make_market(volatility=2.0, competitor_intensity=1.0, liquidation_probability=0.9)
        analysis = analyzer.analyze(make_route(price_impact=0.1), market)
        assert all(t.probability <= 0.5 for t in analysis.threats)

    def test_sandwich_grows_with_impact(self, analyzer: MEVRiskAnalyzer) -> None:
        market = make_market()
        probabilities = [
            analyzer.analyze(make_route(price_impact=impact), market).threat(ThreatType.SANDWICH).probability
            for impact in (0.005, 0.015, 0.03, 0.06)
        ]
        assert probabilities == sorted(probabilities)
        assert probabilities[0] < probabilities[-1]

    def test_frontrun_reacts_to_gas_and_arbitrage(self, analyzer: MEVRiskAnalyzer) -> None:
        market = make_market(gas_price_gwei=80.0, arbitrage_profitability=1.0)
        frontrun = analyzer.analyze(make_route(), market).threat(ThreatType.FRONTRUN)
        assert frontrun.probability == pytest.approx(0.6)

    def test_arbitrage_from_price_discrepancy(self, analyzer: MEVRiskAnalyzer) -> None:
        market = make_market(price_discrepancy=1.0, arbitrage_profit_usd=1000.0)
        arbitrage = analyzer.analyze(make_route(), market).threat(ThreatType.ARBITRAGE)
        assert arbitrage.probability == pytest.approx(0.45)
        assert arbitrage.estimated_impact == pytest.approx(300.0)

    def test_estimated_loss_is_probability_weighted(self, analyzer: MEVRiskAnalyzer) -> None:
        analysis = analyzer.analyze(make_route(price_impact=0.03), make_market(volatility=0.5))
        expected = sum(t.probability * t.estimated_impact for t in analysis.threats)
        assert analysis.estimated_loss == pytest.approx(expected)

    def test_candidates_ranked_within_tier_cap(self, analyzer: MEVRiskAnalyzer) -> None:
        analysis = analyzer.analyze(make_route(price_impact=0.005), make_market())

        kinds = [c.kind for c in analysis.protection_candidates]
        # Private mempool costs more than the low-tier cap
        assert ProtectionKind.PRIVATE_MEMPOOL not in kinds
        assert kinds == [ProtectionKind.COMMIT_REVEAL, ProtectionKind.TIMING_DELAY]

    def test_flashloan_protection_needs_liquidation_exposure(self, analyzer: MEVRiskAnalyzer) -> None:
        market = make_market(liquidation_probability=0.6)
        analysis = analyzer.analyze(make_route(), market)
        assert ProtectionKind.FLASHLOAN_PROTECTION in [c.kind for c in analysis.protection_candidates]

    def test_reasoning(self, analyzer: MEVRiskAnalyzer) -> None:
        analysis = analyzer.analyze(make_route(), make_market())
        assert analysis.reasoning[-1] == "Risk level: LOW"


class TestTradeValue:
    def test_uses_output_token_price(self) -> None:
        route = make_route(rate=1.0)
        assert trade_value_usd(route, make_market(prices={"B": 3.0})) == pytest.approx(3000.0)

    def test_unit_price_when_unknown(self) -> None:
        route = make_route(rate=1.0)
        assert trade_value_usd(route, make_market()) == pytest.approx(1000.0)
