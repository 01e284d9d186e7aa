"""Assembly of complete execution strategies for route proposals."""

import time
import uuid
from collections.abc import Callable

import structlog

from smartroute.config import RiskConfig
from smartroute.execution.confidence import ConfidenceScorer
from smartroute.execution.splitting import OrderSplitPlanner
from smartroute.execution.timing import TimingOptimizer, execution_windows, gas_strategy
from smartroute.learning.outcomes import OutcomeTracker
from smartroute.models.market import MarketConditions, UserPreferences
from smartroute.models.outcome import ExecutionPredictions
from smartroute.models.route import RouteProposal
from smartroute.models.strategy import (
    EstimatedImprovements,
    ExecutionStrategy,
    ExecutionWindow,
    MEVAnalysis,
    OrderSplitPlan,
    ProtectionDecision,
    TimingDecision,
)
from smartroute.models.types import RiskTier
from smartroute.risk.mev import MEVRiskAnalyzer, trade_value_usd
from smartroute.risk.protection import ProtectionSelector
from smartroute.services.gas import GasPriceTracker, default_tiers

logger = structlog.get_logger()

DEGRADED_CONFIDENCE = 0.1


def contingency_actions(
    route: RouteProposal,
    analysis: MEVAnalysis,
    protection: ProtectionDecision,
    split: OrderSplitPlan,
) -> list[str]:
    actions = ["Fallback to alternative route"]
    actions.append("Increase gas price if not included within the execution window")
    if split.enabled:
        actions.append("Split order further if part slippage exceeds the estimate")
    elif route.price_impact > 0.005:
        actions.append("Split order if slippage exceeds the estimate")
    if protection.enabled:
        actions.append(f"Enable additional MEV protection if {protection.kind.value} is unavailable")
    elif analysis.risk_tier != RiskTier.LOW:
        actions.append("Enable additional MEV protection")
    return actions


class StrategyGenerator:
    """Runs every analysis for a route and assembles an ExecutionStrategy.

    Each generated strategy is registered with the outcome tracker so the
    eventual execution result can be compared with its predictions.
    """

    def __init__(
        self,
        analyzer: MEVRiskAnalyzer,
        selector: ProtectionSelector,
        timing: TimingOptimizer,
        splitter: OrderSplitPlanner,
        scorer: ConfidenceScorer,
        tracker: OutcomeTracker,
        gas: GasPriceTracker,
        config: RiskConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.analyzer = analyzer
        self.selector = selector
        self.timing = timing
        self.splitter = splitter
        self.scorer = scorer
        self.tracker = tracker
        self.gas = gas
        self.config = config or RiskConfig()
        self.clock = clock

    async def generate(
        self,
        route: RouteProposal,
        market: MarketConditions,
        preferences: UserPreferences | None = None,
    ) -> ExecutionStrategy:
        """Build a strategy for ``route``; never raises.

        Unexpected failures yield a degraded strategy with minimum confidence.
        """
        preferences = preferences or UserPreferences()
        try:
            strategy = await self._generate(route, market, preferences)
        except Exception:
            logger.exception("strategy_generation_failed", route_id=route.id)
            strategy = self.degraded(route, market, preferences)

        self.tracker.track(
            strategy.id,
            route.id,
            ExecutionPredictions(
                route_id=route.id,
                expected_slippage=route.price_impact,
                expected_gas_cost=strategy.gas_strategy.estimated_cost_usd,
                expected_execution_time=route.estimated_time + strategy.timing.delay_recommended,
                risk_tier=strategy.risk_tier,
                confidence=strategy.confidence,
            ),
        )
        return strategy

    async def _generate(
        self,
        route: RouteProposal,
        market: MarketConditions,
        preferences: UserPreferences,
    ) -> ExecutionStrategy:
        tiers = await self.gas.get_gas_prices(route.chain_id)
        predictions = self.gas.predictions(route.chain_id)

        analysis = self.analyzer.analyze(route, market)
        protection = self.selector.select(analysis, preferences.mev_tolerance)
        timing_analysis = self.timing.analyze(route, market, predictions)
        decision = self.timing.decide(timing_analysis, preferences)
        gas = gas_strategy(route, tiers, preferences.gas_priority, market)
        split = self.splitter.plan(route, analysis, timing_analysis, trade_value_usd(route, market))

        windows = execution_windows(decision, route, gas, split, self.clock(), self.config.window_length)
        confidence = self.scorer.score(
            analysis,
            timing_analysis,
            predictions,
            market.mempool,
            self.tracker.historical_calibration(analysis.risk_tier),
        )

        reasoning = [
            *analysis.reasoning,
            *protection.reasoning,
            decision.reason,
            f"Gas strategy: {gas.priority} at {gas.gas_price_gwei:.1f} gwei",
            f"Confidence {confidence.final * 100:.1f}% (raw {confidence.raw * 100:.1f}%)",
        ]
        if split.enabled:
            reasoning.append(f"Split into {split.number_of_parts} parts")

        strategy = ExecutionStrategy(
            id=f"strategy-{uuid.uuid4().hex[:12]}",
            route_id=route.id,
            risk_tier=analysis.risk_tier,
            protection=protection,
            gas_strategy=gas,
            timing=decision,
            order_split=split,
            execution_windows=windows,
            contingency_actions=contingency_actions(route, analysis, protection, split),
            confidence=confidence.final,
            raw_confidence=confidence.raw,
            estimated_improvements=EstimatedImprovements(
                cost_savings=analysis.estimated_loss * protection.estimated_protection,
                time_reduction=max(0.0, timing_analysis.delay_recommended - decision.delay_recommended),
                risk_reduction=protection.estimated_protection,
            ),
            reasoning=reasoning,
        )
        logger.info(
            "strategy_generated",
            strategy_id=strategy.id,
            route_id=route.id,
            risk_tier=analysis.risk_tier.value,
            protection=protection.kind.value if protection.kind else None,
            confidence=round(strategy.confidence, 3),
        )
        return strategy

    def degraded(
        self,
        route: RouteProposal,
        market: MarketConditions,
        preferences: UserPreferences,
    ) -> ExecutionStrategy:
        """Minimal strategy: execute now, unprotected, at standard gas."""
        now = self.clock()
        gas = gas_strategy(route, default_tiers(route.chain_id), preferences.gas_priority, market)
        return ExecutionStrategy(
            id=f"strategy-{uuid.uuid4().hex[:12]}",
            route_id=route.id,
            risk_tier=RiskTier.MEDIUM,
            protection=ProtectionDecision(enabled=False, reasoning=["Analysis unavailable"]),
            gas_strategy=gas,
            timing=TimingDecision(
                optimal=False,
                immediate=True,
                delay_recommended=0.0,
                reason="Analysis unavailable, executing without timing optimization",
            ),
            order_split=OrderSplitPlan(enabled=False),
            execution_windows=[
                ExecutionWindow(
                    start=now,
                    end=now + self.config.window_length,
                    confidence=DEGRADED_CONFIDENCE,
                    reasoning="Degraded strategy",
                    gas_estimate_gwei=gas.gas_price_gwei,
                    slippage_estimate=route.price_impact,
                )
            ],
            contingency_actions=["Fallback to alternative route", "Increase gas price"],
            confidence=DEGRADED_CONFIDENCE,
            raw_confidence=DEGRADED_CONFIDENCE,
            reasoning=["Strategy analysis failed; returning a degraded strategy"],
            degraded=True,
        )
