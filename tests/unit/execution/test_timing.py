"""Tests for execution timing, gas strategy and execution windows."""

import pytest

from smartroute.config import RiskConfig
from smartroute.execution.timing import TimingOptimizer, execution_windows, gas_strategy
from smartroute.models.market import MempoolStatus, UserPreferences
from smartroute.models.strategy import GasPrediction, OrderSplitPlan, TimingAnalysis, TimingDecision
from smartroute.services.base import GasPriceTiers

from tests.helpers import make_market, make_route

CALM_MEMPOOL = MempoolStatus(utilization=0.5, estimated_clear_time=0.0)
TIERS = GasPriceTiers(fast=40.0, standard=30.0, safe=20.0)

PREDICTIONS = [
    GasPrediction(price_gwei=25.0, time_to_reach=300.0, confidence=0.7),
    GasPrediction(price_gwei=20.0, time_to_reach=600.0, confidence=0.6),
    GasPrediction(price_gwei=18.0, time_to_reach=1200.0, confidence=0.5),
]


@pytest.fixture
def optimizer() -> TimingOptimizer:
    return TimingOptimizer(RiskConfig())


class TestTimingAnalysis:
    def test_calm_market_executes_now(self, optimizer: TimingOptimizer) -> None:
        analysis = optimizer.analyze(make_route(), make_market(mempool=CALM_MEMPOOL), [])
        assert analysis.delay_recommended == 0.0
        assert analysis.optimal is True

    def test_market_signals_add_up(self, optimizer: TimingOptimizer) -> None:
        market = make_market(
            volatility=0.5, spread_widening=True, order_book_imbalance=-0.5, mempool=CALM_MEMPOOL
        )
        timing = optimizer.market_timing(market)
        assert timing.volatility_window is True
        assert timing.recommended_delay == 210.0

    def test_congestion_waits_for_clear_time(self, optimizer: TimingOptimizer) -> None:
        market = make_market(mempool=MempoolStatus(utilization=0.9, estimated_clear_time=180.0))
        assert optimizer.congestion(market).recommended_delay == 180.0

    def test_clear_time_counts_at_low_utilization(self, optimizer: TimingOptimizer) -> None:
        market = make_market(mempool=MempoolStatus(utilization=0.5, estimated_clear_time=90.0))

        analysis = optimizer.analyze(make_route(), market, [])
        decision = optimizer.decide(analysis, UserPreferences(urgency="normal"))

        assert analysis.delay_recommended == 90.0
        assert analysis.optimal is False
        assert decision.delay_recommended == 90.0
        assert "pending transactions to clear" in decision.reason

    def test_high_utilization_reported_as_congestion(self, optimizer: TimingOptimizer) -> None:
        market = make_market(mempool=MempoolStatus(utilization=0.9, estimated_clear_time=90.0))
        decision = optimizer.decide(optimizer.analyze(make_route(), market, []), UserPreferences())
        assert "network congestion" in decision.reason

    def test_delay_is_largest_recommendation(self, optimizer: TimingOptimizer) -> None:
        market = make_market(
            volatility=0.5, gas_price_gwei=30.0, mempool=MempoolStatus(utilization=0.9, estimated_clear_time=90.0)
        )
        analysis = optimizer.analyze(make_route(), market, PREDICTIONS)
        assert analysis.delay_recommended == 1200.0
        assert analysis.optimal is False

    def test_waits_for_cheaper_gas(self, optimizer: TimingOptimizer) -> None:
        market = make_market(gas_price_gwei=30.0, native_usd_price=2000.0)
        gas = optimizer.gas_optimization(make_route(estimated_gas=150_000), market, PREDICTIONS)

        assert gas.predicted_optimal_gwei == 18.0
        assert gas.wait_time_for_optimal == 1200.0
        assert gas.potential_savings_usd == pytest.approx(3.6)
        assert gas.prediction_confidence == pytest.approx(0.6)

    def test_small_saving_not_worth_waiting(self, optimizer: TimingOptimizer) -> None:
        market = make_market(gas_price_gwei=30.0)
        predictions = [GasPrediction(price_gwei=28.0, time_to_reach=300.0, confidence=0.7)]

        gas = optimizer.gas_optimization(make_route(), market, predictions)

        assert gas.wait_time_for_optimal == 0.0
        assert gas.predicted_optimal_gwei == 30.0
        assert gas.potential_savings_usd == 0.0


class TestTimingDecision:
    def analysis(self, optimizer: TimingOptimizer) -> TimingAnalysis:
        market = make_market(gas_price_gwei=30.0, volatility=0.5, mempool=CALM_MEMPOOL)
        return optimizer.analyze(make_route(), market, PREDICTIONS)

    def test_immediate(self, optimizer: TimingOptimizer) -> None:
        decision = optimizer.decide(self.analysis(optimizer), UserPreferences(urgency="immediate"))
        assert decision.immediate is True
        assert decision.delay_recommended == 0.0

    def test_normal_ignores_gas_only_waits(self, optimizer: TimingOptimizer) -> None:
        decision = optimizer.decide(self.analysis(optimizer), UserPreferences(urgency="normal"))
        assert decision.delay_recommended == 120.0
        assert "elevated volatility" in decision.reason

    def test_patient_capped_by_max_delay(self, optimizer: TimingOptimizer) -> None:
        decision = optimizer.decide(self.analysis(optimizer), UserPreferences(urgency="patient", max_delay=300.0))
        assert decision.delay_recommended == 300.0
        assert decision.optimal is False

    def test_no_delay_reason(self, optimizer: TimingOptimizer) -> None:
        analysis = optimizer.analyze(make_route(), make_market(mempool=CALM_MEMPOOL), [])
        decision = optimizer.decide(analysis, UserPreferences())
        assert decision.immediate is True
        assert decision.reason == "Current conditions are favorable for execution"


class TestGasStrategy:
    @pytest.mark.parametrize(
        ("priority", "price", "priority_fee"),
        [("economy", 20.0, 1.0), ("standard", 30.0, 2.0), ("fast", 40.0, 3.0), ("instant", 48.0, 5.0)],
    )
    def test_priority_maps_to_tier(self, priority: str, price: float, priority_fee: float) -> None:
        strategy = gas_strategy(make_route(estimated_gas=150_000), TIERS, priority, make_market())

        assert strategy.gas_price_gwei == pytest.approx(price)
        assert strategy.max_priority_fee_gwei == priority_fee
        assert strategy.max_fee_per_gas_gwei == pytest.approx(price * 1.2 + priority_fee)
        assert strategy.gas_limit == 180_000

    def test_default_gas_limit(self) -> None:
        strategy = gas_strategy(make_route(estimated_gas=0), TIERS, "standard", make_market())
        assert strategy.gas_limit == 200_000

    def test_cost_in_usd(self) -> None:
        market = make_market(native_usd_price=2000.0)
        strategy = gas_strategy(make_route(estimated_gas=100_000), TIERS, "standard", market)
        assert strategy.estimated_cost_usd == pytest.approx(6.0)


class TestExecutionWindows:
    def test_single_window(self) -> None:
        decision = TimingDecision(optimal=True, immediate=False, delay_recommended=60.0, reason="wait")
        gas = gas_strategy(make_route(), TIERS, "standard", make_market())

        route = make_route(price_impact=0.004)
        windows = execution_windows(decision, route, gas, OrderSplitPlan(enabled=False), 1000.0)

        assert len(windows) == 1
        assert windows[0].start == 1060.0
        assert windows[0].end == 1360.0
        assert windows[0].confidence == pytest.approx(0.8)
        assert windows[0].slippage_estimate == pytest.approx(0.004)

    def test_one_window_per_part(self) -> None:
        decision = TimingDecision(optimal=True, immediate=True, delay_recommended=0.0, reason="now")
        gas = gas_strategy(make_route(), TIERS, "standard", make_market())
        split = OrderSplitPlan(
            enabled=True, number_of_parts=3, time_between_parts=40.0, size_distribution=[0.3, 0.3, 0.4]
        )

        windows = execution_windows(decision, make_route(price_impact=0.03), gas, split, 0.0)

        assert [w.start for w in windows] == [0.0, 40.0, 80.0]
        assert [w.confidence for w in windows] == pytest.approx([0.8, 0.75, 0.7])
        assert windows[2].slippage_estimate == pytest.approx(0.012)
        assert windows[1].reasoning.startswith("Part 2 of 3")
