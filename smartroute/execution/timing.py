"""Execution timing: gas price waits, market windows and congestion.

TimingOptimizer combines three independent delay recommendations and takes
the largest. The helpers below turn the analysis and the caller's
preferences into a concrete gas strategy, timing decision and execution
windows.
"""

import structlog

from smartroute.config import RiskConfig
from smartroute.models.market import MarketConditions, UserPreferences
from smartroute.models.route import RouteProposal
from smartroute.models.strategy import (
    CongestionAnalysis,
    ExecutionWindow,
    GasOptimization,
    GasPrediction,
    GasStrategy,
    MarketTiming,
    OrderSplitPlan,
    TimingAnalysis,
    TimingDecision,
)
from smartroute.services.base import GasPriceTiers

logger = structlog.get_logger()

# Gas units assumed when estimating savings for a route without a gas estimate
REFERENCE_SWAP_GAS = 150_000

# Gas limit used when the route carries no estimate
DEFAULT_GAS_LIMIT = 200_000
GAS_LIMIT_BUFFER = 1.2

VOLATILITY_WINDOW_THRESHOLD = 0.3
VOLATILITY_DELAY = 120.0
SPREAD_WIDENING_DELAY = 60.0
IMBALANCE_THRESHOLD = 0.3
IMBALANCE_DELAY = 30.0

# Priority fee (gwei) paid on top of the base price, by user gas priority
PRIORITY_FEES = {
    "economy": 1.0,
    "standard": 2.0,
    "fast": 3.0,
    "instant": 5.0,
}


class TimingOptimizer:
    """Recommends how long to wait before executing a route."""

    def __init__(self, config: RiskConfig | None = None) -> None:
        self.config = config or RiskConfig()

    def analyze(
        self,
        route: RouteProposal,
        market: MarketConditions,
        gas_predictions: list[GasPrediction],
    ) -> TimingAnalysis:
        gas = self.gas_optimization(route, market, gas_predictions)
        timing = self.market_timing(market)
        congestion = self.congestion(market)

        delay = max(gas.wait_time_for_optimal, timing.recommended_delay, congestion.recommended_delay)
        optimal = delay < self.config.optimal_delay_threshold

        logger.debug(
            "timing_analyzed",
            route_id=route.id,
            delay=delay,
            gas_wait=gas.wait_time_for_optimal,
            market_delay=timing.recommended_delay,
            congestion_delay=congestion.recommended_delay,
        )
        return TimingAnalysis(
            optimal=optimal,
            delay_recommended=delay,
            gas_optimization=gas,
            market_timing=timing,
            congestion=congestion,
        )

    def gas_optimization(
        self,
        route: RouteProposal,
        market: MarketConditions,
        gas_predictions: list[GasPrediction],
    ) -> GasOptimization:
        """Wait for the cheapest predicted price if it saves enough."""
        current = market.gas_price_gwei
        if not gas_predictions:
            return GasOptimization(
                current_price_gwei=current,
                predicted_optimal_gwei=current,
                wait_time_for_optimal=0.0,
            )

        best = min(gas_predictions, key=lambda p: (p.price_gwei, p.time_to_reach))
        mean_confidence = sum(p.confidence for p in gas_predictions) / len(gas_predictions)

        worth_waiting = best.price_gwei <= current * (1 - self.config.gas_saving_threshold)
        gas_units = route.estimated_gas or REFERENCE_SWAP_GAS
        savings = max(0.0, current - best.price_gwei) * 1e-9 * gas_units * market.native_usd_price

        return GasOptimization(
            current_price_gwei=current,
            predicted_optimal_gwei=best.price_gwei if worth_waiting else current,
            wait_time_for_optimal=best.time_to_reach if worth_waiting else 0.0,
            potential_savings_usd=savings if worth_waiting else 0.0,
            prediction_confidence=mean_confidence,
        )

    def market_timing(self, market: MarketConditions) -> MarketTiming:
        volatility_window = market.volatility > VOLATILITY_WINDOW_THRESHOLD
        delay = 0.0
        if volatility_window:
            delay += VOLATILITY_DELAY
        if market.spread_widening:
            delay += SPREAD_WIDENING_DELAY
        if abs(market.order_book_imbalance) > IMBALANCE_THRESHOLD:
            delay += IMBALANCE_DELAY

        return MarketTiming(
            volatility_window=volatility_window,
            spread_widening=market.spread_widening,
            order_book_imbalance=market.order_book_imbalance,
            liquidity_depth_usd=market.liquidity_depth_usd,
            recommended_delay=delay,
        )

    def congestion(self, market: MarketConditions) -> CongestionAnalysis:
        """Recommended delay is the estimated time for the mempool to clear."""
        mempool = market.mempool
        return CongestionAnalysis(
            network_utilization=mempool.utilization,
            pending_transactions=mempool.pending_count,
            estimated_clear_time=mempool.estimated_clear_time,
            priority_gas_gwei=mempool.priority_gas_gwei,
            recommended_delay=mempool.estimated_clear_time,
        )

    def decide(self, analysis: TimingAnalysis, preferences: UserPreferences) -> TimingDecision:
        """Apply the caller's urgency and maximum delay to an analysis.

        ``immediate`` never waits. ``normal`` waits for market and congestion
        windows but not for cheaper gas alone. ``patient`` waits for all three.
        Every delay is capped at ``max_delay``.
        """
        if preferences.urgency == "immediate":
            return TimingDecision(
                optimal=analysis.optimal,
                immediate=True,
                delay_recommended=0.0,
                reason="Immediate execution requested",
            )

        if preferences.urgency == "normal":
            delay = max(analysis.market_timing.recommended_delay, analysis.congestion.recommended_delay)
        else:
            delay = analysis.delay_recommended
        delay = min(delay, preferences.max_delay)

        return TimingDecision(
            optimal=delay < self.config.optimal_delay_threshold,
            immediate=delay == 0,
            delay_recommended=delay,
            reason=_delay_reason(analysis, delay, self.config.congestion_utilization),
        )


def _delay_reason(analysis: TimingAnalysis, delay: float, congestion_utilization: float) -> str:
    if delay == 0:
        return "Current conditions are favorable for execution"
    reasons = []
    if analysis.market_timing.volatility_window:
        reasons.append("elevated volatility")
    if analysis.market_timing.spread_widening:
        reasons.append("widening spread")
    if analysis.congestion.recommended_delay > 0:
        if analysis.congestion.network_utilization >= congestion_utilization:
            reasons.append("network congestion")
        else:
            reasons.append("pending transactions to clear")
    if analysis.gas_optimization.wait_time_for_optimal > 0:
        reasons.append(f"gas expected to reach {analysis.gas_optimization.predicted_optimal_gwei:.1f} gwei")
    if not reasons:
        reasons.append("order book imbalance")
    return f"Wait {delay:.0f}s for " + ", ".join(reasons)


def gas_strategy(
    route: RouteProposal,
    tiers: GasPriceTiers,
    priority: str,
    market: MarketConditions,
) -> GasStrategy:
    """Map a user gas priority onto the oracle's price tiers."""
    if priority == "economy":
        price = tiers.safe
    elif priority == "fast":
        price = tiers.fast
    elif priority == "instant":
        price = tiers.fast * 1.2
    else:
        price = tiers.standard

    priority_fee = PRIORITY_FEES.get(priority, PRIORITY_FEES["standard"])
    gas_limit = int(route.estimated_gas * GAS_LIMIT_BUFFER) if route.estimated_gas else DEFAULT_GAS_LIMIT
    cost = (route.estimated_gas or DEFAULT_GAS_LIMIT) * price * 1e-9 * market.native_usd_price

    return GasStrategy(
        priority=priority,
        gas_price_gwei=price,
        max_fee_per_gas_gwei=price * GAS_LIMIT_BUFFER + priority_fee,
        max_priority_fee_gwei=priority_fee,
        gas_limit=gas_limit,
        estimated_cost_usd=cost,
    )


def execution_windows(
    decision: TimingDecision,
    route: RouteProposal,
    gas: GasStrategy,
    split: OrderSplitPlan,
    now: float,
    window_length: float = 300.0,
) -> list[ExecutionWindow]:
    """One window per order part, starting after the recommended delay."""
    start = now + decision.delay_recommended
    parts = split.number_of_parts if split.enabled else 1

    windows = []
    for i in range(parts):
        part_start = start + i * split.time_between_parts
        windows.append(
            ExecutionWindow(
                start=part_start,
                end=part_start + window_length,
                confidence=max(0.5, 0.8 - 0.05 * i),
                reasoning=decision.reason if parts == 1 else f"Part {i + 1} of {parts}: {decision.reason}",
                gas_estimate_gwei=gas.gas_price_gwei,
                slippage_estimate=route.price_impact * split.size_distribution[i] if parts > 1 else route.price_impact,
            )
        )
    return windows
