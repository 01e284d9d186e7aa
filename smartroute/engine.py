"""The routing engine: owns the graph, caches and learning state.

A RoutingEngine is constructed by the caller, brought up with
``initialize()`` and torn down with ``cleanup()``. All requests enter through
``dispatch()`` (raw payloads) or ``handle()`` (validated task requests).
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from random import Random
from typing import Any

import structlog

from smartroute.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from smartroute.consensus import ConsensusCoordinator
from smartroute.constants import ZERO_ADDRESS
from smartroute.errors import ServiceError, TaskCancelledError
from smartroute.execution.confidence import ConfidenceScorer
from smartroute.execution.splitting import OrderSplitPlanner
from smartroute.execution.strategy import StrategyGenerator
from smartroute.execution.timing import TimingOptimizer
from smartroute.graph.pathfinding import PathFinder
from smartroute.graph.quote_cache import QuoteCache
from smartroute.graph.routing_graph import GraphBuilder, RoutingGraph
from smartroute.learning.calibration import ConfidenceCalibrator
from smartroute.learning.outcomes import OutcomeTracker
from smartroute.models.base import WireModel
from smartroute.models.market import MarketConditions
from smartroute.models.outcome import LearningReport
from smartroute.models.route import EngineMetrics, FeasibilityReport, PathfindingResult, RouteSearchParams
from smartroute.periodic import PeriodicTaskGroup
from smartroute.risk.mev import MEVRiskAnalyzer
from smartroute.risk.protection import ProtectionSelector
from smartroute.services.base import (
    GasOracle,
    LiquidityService,
    PriceOracle,
    QuoteRequest,
    QuoteResponse,
    QuoteService,
)
from smartroute.services.gas import GasPriceTracker
from smartroute.tasks import (
    AnalyzeGasCurvesTask,
    AnalyzeMEVTask,
    ConsensusSelectTask,
    FindLiveQuoteRoutesTask,
    FindRoutesTask,
    GasCurveAnalysis,
    GasCurvePoint,
    LiquidityLimits,
    OptimizeStrategyTask,
    RecordExecutionResultTask,
    RecordResult,
    RefreshFeasibilityTask,
    TaskRequest,
    TaskResponse,
    parse_task,
)

logger = structlog.get_logger()


class RoutingEngine:
    """Route search and execution-strategy engine.

    Args:
        quotes: Live quote service (None disables live-quote mode)
        prices: Price oracle used during graph builds
        liquidity: Pool listing service used during graph builds
        gas_oracle: Gas price oracle
        config: Engine configuration
        clock: Wall-clock source
        rng: Random generator for order split jitter
    """

    def __init__(
        self,
        quotes: QuoteService | None = None,
        prices: PriceOracle | None = None,
        liquidity: LiquidityService | None = None,
        gas_oracle: GasOracle | None = None,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        clock: Callable[[], float] = time.time,
        rng: Random | None = None,
    ) -> None:
        self.config = config
        self.clock = clock
        self.quotes = quotes

        self.graph = RoutingGraph()
        self.quote_cache = QuoteCache(ttl=config.search.quote_ttl, clock=clock)
        self.builder = GraphBuilder(liquidity, prices, quotes, config.graph, clock)
        self.pathfinder = PathFinder(quotes, self.quote_cache, config.search)
        self.gas = GasPriceTracker(gas_oracle)

        self.calibrator = ConfidenceCalibrator(config.learning)
        self.outcomes = OutcomeTracker(self.calibrator, config.learning, clock)

        thresholds = config.risk.protection_thresholds
        self.analyzer = MEVRiskAnalyzer(config.risk.probability_cap, thresholds)
        self.strategies = StrategyGenerator(
            analyzer=self.analyzer,
            selector=ProtectionSelector(thresholds),
            timing=TimingOptimizer(config.risk),
            splitter=OrderSplitPlanner(config.risk, rng),
            scorer=ConfidenceScorer(self.calibrator),
            tracker=self.outcomes,
            gas=self.gas,
            config=config.risk,
            clock=clock,
        )
        self.consensus = ConsensusCoordinator()

        self.periodic = PeriodicTaskGroup()
        self.search_metrics = EngineMetrics()
        self._route_cache: OrderedDict[tuple[object, ...], tuple[float, PathfindingResult]] = OrderedDict()
        self.initialized = False

        self._handlers: dict[str, Callable[[Any], Awaitable[WireModel]]] = {
            "find-routes": self._handle_find_routes,
            "find-live-quote-routes": self._handle_find_live_quote_routes,
            "refresh-feasibility": self._handle_refresh_feasibility,
            "analyze-gas-curves": self.analyze_gas_curves,
            "optimize-strategy": self._handle_optimize_strategy,
            "analyze-mev": self._handle_analyze_mev,
            "record-execution-result": self._handle_record_execution_result,
            "consensus-select": self._handle_consensus_select,
        }

    async def initialize(self, start_background: bool = True) -> None:
        """Build the routing graph and start the periodic refresh tasks.

        Never fails because of upstream services: a slow or empty build falls
        back to the curated graph.
        """
        if self.initialized:
            return
        await self.builder.build_or_refresh(self.graph, self.config.chains)

        graph_config = self.config.graph
        self.periodic.add("graph-refresh", graph_config.sweep_interval, self.refresh_graph)
        self.periodic.add("feasibility", graph_config.feasibility_interval, self.refresh_feasibility)
        self.periodic.add("outcome-prune", self.config.learning.prune_interval, self._prune_outcomes)
        self.periodic.add("quote-cache-purge", self.config.search.quote_ttl, self._purge_quotes)
        if start_background:
            self.periodic.start()

        self.initialized = True
        logger.info("engine_initialized", **self.graph.stats().model_dump(exclude={"liquidity_distribution"}))

    async def cleanup(self) -> None:
        """Stop every background task and drop the graph and all caches."""
        await self.periodic.stop()
        self.graph.clear()
        self.quote_cache.clear()
        self.pathfinder.clear()
        self._route_cache.clear()
        self.initialized = False
        logger.info("engine_cleaned_up")

    async def dispatch(self, raw: Any, cancel: asyncio.Event | None = None) -> TaskResponse:
        """Validate a raw payload and handle it.

        Raises:
            InvalidRequestError: If the payload is not a valid task
            TaskCancelledError: If ``cancel`` was set before handling started
        """
        if cancel is not None and cancel.is_set():
            raise TaskCancelledError("task cancelled before dispatch")
        request = parse_task(raw)
        if cancel is not None and cancel.is_set():
            raise TaskCancelledError(f"{request.kind} cancelled before handling")

        result = await self.handle(request)
        return TaskResponse(kind=request.kind, request_id=request.request_id, result=result)

    async def handle(self, request: TaskRequest) -> WireModel:
        logger.debug("task_received", kind=request.kind, request_id=request.request_id)
        return await self._handlers[request.kind](request)

    async def _handle_find_routes(self, request: FindRoutesTask) -> PathfindingResult:
        return await self.find_routes(request.params, live=False)

    async def _handle_find_live_quote_routes(self, request: FindLiveQuoteRoutesTask) -> PathfindingResult:
        return await self.find_routes(request.params, live=True)

    async def _handle_refresh_feasibility(self, request: RefreshFeasibilityTask) -> FeasibilityReport:
        return await self.refresh_feasibility()

    async def _handle_optimize_strategy(self, request: OptimizeStrategyTask) -> WireModel:
        return await self.strategies.generate(request.route, request.market, request.preferences)

    async def _handle_analyze_mev(self, request: AnalyzeMEVTask) -> WireModel:
        return self.analyzer.analyze(request.route, request.market)

    async def _handle_record_execution_result(self, request: RecordExecutionResultTask) -> RecordResult:
        outcome = self.outcomes.record(request.strategy_id, request.actual)
        return RecordResult(strategy_id=request.strategy_id, recorded=outcome is not None, outcome=outcome)

    async def _handle_consensus_select(self, request: ConsensusSelectTask) -> WireModel:
        return self.consensus.select(request.routes, request.assessments, request.strategies, request.criteria)

    async def find_routes(self, params: RouteSearchParams, live: bool = True) -> PathfindingResult:
        """Search for routes, reusing a cached result for identical recent searches."""
        started = time.perf_counter()
        params = params.model_copy(update={"use_live_quotes": live})
        key = params.cache_key()

        cached = self._cached_result(key)
        if cached is not None:
            elapsed = (time.perf_counter() - started) * 1000
            self.search_metrics.record(cached, elapsed, cache_hit=True)
            logger.debug("route_cache_hit", from_token=params.from_token, to_token=params.to_token)
            return cached

        now = self.clock()
        if now - self.graph.last_refresh > self.config.graph.freshness_window:
            self.graph.sweep_stale(now, self.config.graph.stale_after)

        try:
            result = await self.pathfinder.find_routes(self.graph, params.from_token, params.to_token, params)
        except Exception:
            logger.exception("route_search_failed", from_token=params.from_token, to_token=params.to_token)
            result = PathfindingResult(graph_stats=self.graph.stats())
            result.search_stats.message = "route search failed"

        self._store_result(key, result)
        self.search_metrics.record(result, (time.perf_counter() - started) * 1000, cache_hit=False)
        return result

    def _cached_result(self, key: tuple[object, ...]) -> PathfindingResult | None:
        entry = self._route_cache.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        if self.clock() - stored_at >= self.config.search.route_cache_ttl:
            del self._route_cache[key]
            return None
        hit = result.model_copy(deep=True)
        hit.search_stats.cache_hits += 1
        return hit

    def _store_result(self, key: tuple[object, ...], result: PathfindingResult) -> None:
        self._route_cache[key] = (self.clock(), result)
        self._route_cache.move_to_end(key)
        while len(self._route_cache) > self.config.search.max_route_cache_entries:
            self._route_cache.popitem(last=False)

    def clear_route_cache(self) -> None:
        self._route_cache.clear()

    def apply_market_update(self, market: MarketConditions) -> None:
        """Drop cached route results when the market turns volatile."""
        if market.volatility > self.config.graph.volatility_reset_threshold:
            cleared = len(self._route_cache)
            self._route_cache.clear()
            logger.info("route_cache_reset", volatility=market.volatility, cleared=cleared)

    async def refresh_graph(self) -> None:
        await self.builder.build_or_refresh(self.graph, self.config.chains)
        self._route_cache.clear()
        self.pathfinder.purge_expired()

    async def refresh_feasibility(self) -> FeasibilityReport:
        """Forget per-amount verdicts and re-probe every untested edge."""
        self.pathfinder.clear()
        return await self.builder.probe_feasibility(self.graph)

    async def _prune_outcomes(self) -> None:
        self.outcomes.prune()

    async def _purge_quotes(self) -> None:
        purged = self.pathfinder.purge_expired()
        if purged:
            logger.debug("quote_cache_purged", entries=purged)

    async def analyze_gas_curves(self, request: AnalyzeGasCurvesTask) -> GasCurveAnalysis:
        """Quote a pair at several amounts concurrently.

        Slippage at each amount is measured against the rate of the smallest
        successful amount.
        """
        amounts = sorted(set(request.amounts))
        responses = await asyncio.gather(
            *(self._quote(request.from_token, request.to_token, amount, request.chain_id) for amount in amounts)
        )

        base_rate: float | None = None
        points: list[GasCurvePoint] = []
        limits = LiquidityLimits()
        for amount, response in zip(amounts, responses, strict=True):
            if response is None or response.amount_out <= 0:
                points.append(GasCurvePoint(amount_in=amount, feasible=False))
                if limits.first_failed_amount is None:
                    limits.first_failed_amount = amount
                continue

            rate = response.amount_out / amount
            if base_rate is None:
                base_rate = rate
            points.append(
                GasCurvePoint(
                    amount_in=amount,
                    amount_out=response.amount_out,
                    gas=response.gas,
                    slippage=max(0.0, 1 - rate / base_rate),
                    feasible=True,
                )
            )
            limits.max_successful_amount = amount

        logger.info(
            "gas_curves_analyzed",
            from_token=request.from_token,
            to_token=request.to_token,
            points=len(points),
            max_successful=limits.max_successful_amount,
        )
        return GasCurveAnalysis(
            from_token=request.from_token,
            to_token=request.to_token,
            chain_id=request.chain_id,
            points=points,
            limits=limits,
        )

    async def _quote(self, from_token: str, to_token: str, amount: float, chain_id: int) -> QuoteResponse | None:
        if self.quotes is None:
            return None
        request = QuoteRequest(
            from_asset=from_token,
            to_asset=to_token,
            amount_in=amount,
            sender_address=ZERO_ADDRESS,
        )
        try:
            return await self.quotes.get_quote(request, chain_id)
        except ServiceError as e:
            logger.warning("gas_curve_quote_failed", amount=amount, error=str(e))
            return None

    def learning_report(self, limit: int = 10) -> LearningReport:
        return LearningReport(
            metrics=self.outcomes.metrics(),
            calibration=self.calibrator.calibration_stats(),
            insights=self.outcomes.learning_insights(),
            recent_outcomes=self.outcomes.recent_outcomes(limit),
        )
