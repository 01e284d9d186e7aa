"""Dynamic-cost shortest path search over the routing graph.

Two modes share one Dijkstra skeleton:

- static: edge cost comes from the edge's fee, gas, slippage model and
  adversarial-risk score, scaled by ``2 - reliability``.
- live-quote: before a node's edges are relaxed they are filtered by a batch
  of live quotes (only edges with a strictly positive quote survive), and
  edge cost is the quote-implied loss. Quotes are cached with a TTL.

Each edge is priced with the amount actually arriving at its source node, so
hop amounts chain through the route. Edges into already-settled nodes are never
relaxed, which keeps paths acyclic.
"""

import asyncio
import heapq
import itertools
import math
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field

import structlog

from smartroute.config import SearchConfig
from smartroute.constants import ZERO_ADDRESS
from smartroute.errors import ServiceError
from smartroute.graph.quote_cache import CachedQuote, QuoteCache, QuoteKey, quote_key
from smartroute.graph.routing_graph import PoolEdge, RoutingGraph, TokenNode
from smartroute.models.route import (
    PathfindingResult,
    RouteProposal,
    RouteSearchParams,
    RouteStep,
    SearchStats,
)
from smartroute.models.types import RiskTier, normalize_token
from smartroute.services.base import QuoteRequest, QuoteService

logger = structlog.get_logger()

LIVE_ORIGIN = "live-quote-pathfinder"
STATIC_ORIGIN = "static-pathfinder"

GWEI = 1e9


@dataclass(frozen=True)
class EdgePrice:
    """Cost and output of traversing one edge with a given input amount."""

    cost: float
    amount_out: float
    gas: int
    live: bool
    execution_class: str | None = None


@dataclass
class _SearchState:
    stats: SearchStats = field(default_factory=SearchStats)
    direct_costs: dict[str, float | None] = field(default_factory=dict)


def static_edge_cost(edge: PoolEdge, amount_usd: float, params: RouteSearchParams, config: SearchConfig) -> float:
    """Static cost of an edge: fee plus optional gas and slippage terms plus risk penalty."""
    cost = edge.fee
    if params.prioritize_gas:
        cost += edge.gas * params.gas_price_gwei / GWEI * config.gas_cost_factor
    if params.prioritize_slippage:
        cost += edge.slippage(amount_usd, edge.liquidity_usd)
    cost += edge.mev_risk * config.mev_penalty_factor
    return max(0.0, cost * (2 - edge.reliability))


def quote_cost(quote: CachedQuote, from_node: TokenNode | None, to_node: TokenNode | None) -> float:
    """Implied cost of a quote, value-normalized when both tokens are priced."""
    if (
        from_node is not None
        and to_node is not None
        and from_node.price_usd > 0
        and to_node.price_usd > 0
        and quote.amount_in > 0
    ):
        value_in = quote.amount_in * from_node.price_usd
        value_out = quote.amount_out * to_node.price_usd
        return max(0.0, 1.0 - value_out / value_in)
    return quote.cost


def route_mev_tier(route: RouteProposal) -> RiskTier:
    """Coarse extraction-risk tier of a route from its tags, impact and length."""
    if "mev-protected" in route.advantages or "professional-liquidity" in route.advantages:
        return RiskTier.LOW
    hops = route.hop_count
    if route.price_impact > 0.05 or hops > 3:
        return RiskTier.CRITICAL
    if route.price_impact > 0.02 or hops > 2:
        return RiskTier.HIGH
    if route.price_impact > 0.01:
        return RiskTier.MEDIUM
    return RiskTier.LOW


class PathFinder:
    """Shortest-path search using static costs or live quotes.

    The quote cache and the per-amount feasibility verdicts are shared by all
    searches run through this instance. A verdict is trusted for the quote ttl
    and the memo holds at most ``config.max_feasibility_entries`` verdicts,
    oldest evicted first.
    """

    def __init__(
        self,
        quotes: QuoteService | None,
        cache: QuoteCache,
        config: SearchConfig | None = None,
    ) -> None:
        self.quotes = quotes
        self.cache = cache
        self.config = config or SearchConfig()
        self.feasibility: OrderedDict[QuoteKey, tuple[bool, float]] = OrderedDict()

    def clear(self) -> None:
        self.feasibility.clear()

    def purge_expired(self) -> int:
        """Drop expired quotes and verdicts; returns how many entries went."""
        cutoff = self.cache.clock() - self.config.quote_ttl
        stale = [key for key, (_, recorded_at) in self.feasibility.items() if recorded_at <= cutoff]
        for key in stale:
            del self.feasibility[key]
        return len(stale) + self.cache.purge_expired()

    def _verdict(self, key: QuoteKey) -> bool | None:
        entry = self.feasibility.get(key)
        if entry is None:
            return None
        verdict, recorded_at = entry
        if self.cache.clock() - recorded_at >= self.config.quote_ttl:
            del self.feasibility[key]
            return None
        return verdict

    def _remember(self, key: QuoteKey, verdict: bool) -> None:
        self.feasibility[key] = (verdict, self.cache.clock())
        self.feasibility.move_to_end(key)
        while len(self.feasibility) > self.config.max_feasibility_entries:
            self.feasibility.popitem(last=False)

    async def find_routes(
        self,
        graph: RoutingGraph,
        from_token: str,
        to_token: str,
        params: RouteSearchParams,
    ) -> PathfindingResult:
        """Find the cheapest route from ``from_token`` to ``to_token``.

        Never raises for missing tokens or quote failures; an empty route list
        with an explanatory message is returned instead.
        """
        started = time.perf_counter()
        state = _SearchState()
        live = params.use_live_quotes and self.quotes is not None
        if graph.node(from_token) is None or graph.node(to_token) is None:
            state.stats.message = "token not in routing graph"
            return self._result([], state, started, graph)
        start_key, target_key = normalize_token(from_token), normalize_token(to_token)
        if start_key == target_key:
            state.stats.message = "source and destination are the same token"
            return self._result([], state, started, graph)

        hits_before = self.cache.hits

        dist: dict[str, float] = {start_key: 0.0}
        amount_at: dict[str, float] = {start_key: params.amount_in}
        hops: dict[str, int] = {start_key: 0}
        previous: dict[str, tuple[str, PoolEdge, EdgePrice]] = {}
        visited: set[str] = set()
        counter = itertools.count()
        queue: list[tuple[float, int, str]] = [(0.0, next(counter), start_key)]

        while queue:
            distance, _, node = heapq.heappop(queue)
            if node in visited:
                continue
            visited.add(node)
            state.stats.nodes_explored += 1

            if node == target_key:
                break
            if hops[node] >= params.max_hops:
                continue

            amount = amount_at[node]
            candidates = [
                e
                for e in graph.lookup_edges(node)
                if e.to_token not in visited and params.allows_venue(e.venue) and e.to_token in graph.nodes
            ]
            if live:
                candidates = await self._filter_feasible(candidates, amount, params, state)

            for edge in candidates:
                price = await self._price_edge(edge, amount, params, graph, live, state)
                state.stats.paths_evaluated += 1
                if price.amount_out <= 0:
                    continue

                neighbor = edge.to_token
                new_distance = distance + price.cost

                if (
                    live
                    and neighbor != target_key
                    and new_distance > self.config.prune_threshold
                    and await self._should_prune(node, target_key, distance, amount, new_distance, params, graph, state)
                ):
                    state.stats.pruned_branches += 1
                    continue

                if new_distance < dist.get(neighbor, math.inf):
                    dist[neighbor] = new_distance
                    amount_at[neighbor] = price.amount_out
                    hops[neighbor] = hops[node] + 1
                    previous[neighbor] = (node, edge, price)
                    heapq.heappush(queue, (new_distance, next(counter), neighbor))

        state.stats.cache_hits = self.cache.hits - hits_before

        if target_key not in previous:
            state.stats.message = "no feasible route found"
            logger.info("no_route_found", from_token=start_key, to_token=target_key, live=live)
            return self._result([], state, started, graph)

        route = self._build_route(previous, start_key, target_key, amount_at, dist[target_key], params, live)
        return self._result([route], state, started, graph)

    async def _filter_feasible(
        self,
        edges: list[PoolEdge],
        amount: float,
        params: RouteSearchParams,
        state: _SearchState,
    ) -> list[PoolEdge]:
        """Keep edges with a strictly positive live quote for ``amount``.

        Untested (pair, amount) combinations are quoted in concurrent batches
        of ``config.quote_batch_size``; known verdicts and cached quotes skip
        the request.
        """
        verdicts: dict[QuoteKey, bool] = {}
        pending: list[QuoteKey] = []
        for edge in edges:
            key = quote_key(edge.from_token, edge.to_token, amount)
            if key in verdicts or key in pending:
                continue
            known = self._verdict(key)
            if known is not None:
                verdicts[key] = known
                continue
            cached = self.cache.get(edge.from_token, edge.to_token, amount)
            if cached is not None:
                verdicts[key] = cached.amount_out > 0
                continue
            pending.append(key)

        size = self.config.quote_batch_size
        for offset in range(0, len(pending), size):
            batch = pending[offset : offset + size]
            state.stats.parallel_batches += 1
            results = await asyncio.gather(*(self._fetch(k[0], k[1], amount, params, state) for k in batch))
            for key, quote in zip(batch, results, strict=True):
                verdicts[key] = quote is not None and quote.amount_out > 0

        # The shared memo may have been cleared while the batches were awaited
        for key, verdict in verdicts.items():
            self._remember(key, verdict)

        feasible = []
        for edge in edges:
            verdict = verdicts[quote_key(edge.from_token, edge.to_token, amount)]
            edge.feasible = verdict
            if verdict:
                feasible.append(edge)
            else:
                logger.debug("edge_infeasible", edge_id=edge.id, amount=amount)
        return feasible

    async def _fetch(
        self,
        from_token: str,
        to_token: str,
        amount: float,
        params: RouteSearchParams,
        state: _SearchState,
    ) -> CachedQuote | None:
        """Fetch a live quote and cache it; None if the service failed."""
        assert self.quotes is not None
        request = QuoteRequest(
            from_asset=from_token,
            to_asset=to_token,
            amount_in=amount,
            sender_address=params.sender_address or ZERO_ADDRESS,
            gas_price=params.gas_price_gwei,
        )
        state.stats.quote_queries += 1
        try:
            response = await self.quotes.get_quote(request, params.chain_id)
        except ServiceError as e:
            logger.debug("quote_failed", from_token=from_token, to_token=to_token, amount=amount, error=str(e))
            return None
        return self.cache.put(
            from_token,
            to_token,
            amount,
            response.amount_out,
            gas=response.gas,
            execution_class=response.execution_class,
        )

    async def _price_edge(
        self,
        edge: PoolEdge,
        amount: float,
        params: RouteSearchParams,
        graph: RoutingGraph,
        live: bool,
        state: _SearchState,
    ) -> EdgePrice:
        from_node = graph.node(edge.from_token)
        to_node = graph.node(edge.to_token)

        if live:
            quote = self.cache.get(edge.from_token, edge.to_token, amount)
            if quote is None:
                quote = await self._fetch(edge.from_token, edge.to_token, amount, params, state)
            if quote is not None and quote.amount_out > 0:
                if quote.gas:
                    edge.live_gas_estimate = quote.gas
                return EdgePrice(
                    cost=quote_cost(quote, from_node, to_node),
                    amount_out=quote.amount_out,
                    gas=quote.gas or edge.gas,
                    live=True,
                    execution_class=quote.execution_class,
                )
            logger.warning("edge_quote_unavailable_static_fallback", edge_id=edge.id, amount=amount)

        price_usd = from_node.price_usd if from_node is not None and from_node.price_usd > 0 else 1.0
        amount_usd = amount * price_usd
        slippage = edge.slippage(amount_usd, edge.liquidity_usd)
        return EdgePrice(
            cost=static_edge_cost(edge, amount_usd, params, self.config),
            amount_out=max(0.0, amount * (1 - slippage - edge.fee)),
            gas=edge.gas,
            live=False,
        )

    async def _should_prune(
        self,
        node: str,
        target: str,
        node_distance: float,
        node_amount: float,
        new_distance: float,
        params: RouteSearchParams,
        graph: RoutingGraph,
        state: _SearchState,
    ) -> bool:
        """Discard a branch if going straight from ``node`` to the target is clearly cheaper.

        The direct quote is taken once per expanded node. If it cannot be
        obtained the branch is kept.
        """
        if node not in state.direct_costs:
            quote = self.cache.get(node, target, node_amount)
            if quote is None:
                quote = await self._fetch(node, target, node_amount, params, state)
            if quote is None or quote.amount_out <= 0:
                state.direct_costs[node] = None
            else:
                state.direct_costs[node] = quote_cost(quote, graph.node(node), graph.node(target))

        direct = state.direct_costs[node]
        if direct is None:
            return False
        return (node_distance + direct) * (1 + self.config.prune_buffer) < new_distance

    def _build_route(
        self,
        previous: dict[str, tuple[str, PoolEdge, EdgePrice]],
        start: str,
        target: str,
        amount_at: dict[str, float],
        total_cost: float,
        params: RouteSearchParams,
        live: bool,
    ) -> RouteProposal:
        chain: list[tuple[str, PoolEdge, EdgePrice]] = []
        node = target
        while node != start:
            parent, edge, price = previous[node]
            chain.append((parent, edge, price))
            node = parent
        chain.reverse()

        steps = [
            RouteStep(
                venue=edge.venue,
                from_token=parent,
                to_token=edge.to_token,
                amount_in=amount_at[parent],
                estimated_output=price.amount_out,
                fee=edge.fee,
                live_quote=price.live,
                execution_class=price.execution_class,
            )
            for parent, edge, price in chain
        ]

        hop_count = len(steps)
        live_steps = sum(1 for s in steps if s.live_quote)
        live_ratio = live_steps / hop_count
        confidence = max(0.3, 1 - hop_count * 0.1) * (0.7 + live_ratio * 0.3)
        classes = {s.execution_class for s in steps}

        risks = []
        if live and live_ratio < 0.5:
            risks.append("mixed-execution-types")
        if hop_count > 3:
            risks.append("complex-multi-hop")
        if "private" not in classes:
            risks.append("mev-exposure")
        if total_cost > params.max_slippage:
            risks.append("slippage-above-limit")

        advantages = []
        if "private" in classes:
            advantages.append("mev-protected")
        if "rfq" in classes:
            advantages.append("professional-liquidity")
        if live and live_steps:
            advantages.extend(["live-quote-optimized", "real-time-pricing"])

        origin = LIVE_ORIGIN if live else STATIC_ORIGIN
        return RouteProposal(
            id=f"{origin}-{uuid.uuid4().hex[:12]}",
            from_token=params.from_token,
            to_token=params.to_token,
            amount_in=params.amount_in,
            chain_id=params.chain_id,
            path=steps,
            estimated_gas=sum(price.gas for _, _, price in chain),
            estimated_time=hop_count * self.config.seconds_per_hop,
            estimated_output=steps[-1].estimated_output,
            price_impact=total_cost,
            cost=total_cost,
            confidence=min(confidence, 1.0),
            risks=risks,
            advantages=advantages,
            proposed_by=origin,
        )

    def _result(
        self,
        routes: list[RouteProposal],
        state: _SearchState,
        started: float,
        graph: RoutingGraph,
    ) -> PathfindingResult:
        state.stats.time_spent_ms = (time.perf_counter() - started) * 1000
        state.stats.optimality_gap = optimality_gap(routes)
        return PathfindingResult(routes=routes, search_stats=state.stats, graph_stats=graph.stats())


def optimality_gap(routes: list[RouteProposal]) -> float:
    """Relative spread between the best and worst estimated outputs."""
    outputs = [r.estimated_output for r in routes if r.estimated_output > 0]
    if len(outputs) < 2:
        return 0.0
    best, worst = max(outputs), min(outputs)
    return (best - worst) / best
