"""Token graph of liquidity venues, and the builder that keeps it fresh.

Nodes are tokens keyed by normalized identifier; edges are directed pool
hops. Every pool contributes an edge in each direction. Edge feasibility starts
unknown and is filled in by live-quote probing.
"""

import asyncio
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

import structlog

from smartroute.config import GraphConfig
from smartroute.constants import (
    DAI,
    DEFAULT_VENUE_GAS,
    DEFAULT_VENUE_MEV_RISK,
    ETHEREUM,
    KNOWN_TOKENS,
    KNOWN_VENUES,
    STABLECOIN_SYMBOLS,
    STATIC_USD_PRICES,
    USDC,
    USDT,
    VENUE_GAS_ESTIMATES,
    VENUE_MEV_RISK,
    WBTC,
    WETH,
    ZERO_ADDRESS,
)
from smartroute.errors import ServiceError
from smartroute.graph.slippage import SlippageModel, model_for_venue
from smartroute.models.route import FeasibilityReport, GraphStats
from smartroute.models.types import normalize_token
from smartroute.services.base import (
    LiquidityService,
    PoolInfo,
    PriceInfo,
    PriceOracle,
    QuoteRequest,
    QuoteService,
)

logger = structlog.get_logger()

# Pools deeper than this attract more extraction
DEEP_LIQUIDITY_USD = 10_000_000.0


@dataclass(frozen=True)
class TokenNode:
    address: str
    symbol: str
    decimals: int
    chain_id: int
    price_usd: float = 0.0
    market_cap: float = 0.0
    is_stable: bool = False
    risk_score: float = 0.5


@dataclass
class PoolEdge:
    """Directed hop through one pool.

    ``feasible`` is None until a live quote has been attempted. Pinned edges
    belong to the curated fallback graph and are never swept as stale.
    """

    id: str
    venue: str
    from_token: str
    to_token: str
    chain_id: int
    liquidity_usd: float
    fee: float
    gas_estimate: int
    slippage: SlippageModel
    reliability: float
    mev_risk: float
    last_update: float
    feasible: bool | None = None
    live_gas_estimate: int | None = None
    pinned: bool = False

    @property
    def gas(self) -> int:
        return self.live_gas_estimate or self.gas_estimate


def token_risk(market_cap: float, price: float) -> float:
    """Risk score for a token from its market cap and price availability."""
    risk = 0.5
    if market_cap < 1_000_000:
        risk += 0.3
    if not price:
        risk += 0.2
    return min(risk, 1.0)


def venue_mev_risk(venue: str, liquidity_usd: float) -> float:
    risk = VENUE_MEV_RISK.get(venue, DEFAULT_VENUE_MEV_RISK)
    if liquidity_usd > DEEP_LIQUIDITY_USD:
        risk += 0.2
    return min(risk, 1.0)


def edges_for_pool(pool: PoolInfo, venue: str, chain_id: int, now: float) -> tuple[PoolEdge, PoolEdge]:
    """Forward and reverse edges for a pool."""
    forward = PoolEdge(
        id=pool.id,
        venue=venue,
        from_token=normalize_token(pool.asset_a),
        to_token=normalize_token(pool.asset_b),
        chain_id=chain_id,
        liquidity_usd=pool.liquidity_usd,
        fee=pool.fee,
        gas_estimate=VENUE_GAS_ESTIMATES.get(venue, DEFAULT_VENUE_GAS),
        slippage=model_for_venue(venue, pool.fee),
        reliability=pool.reliability,
        mev_risk=venue_mev_risk(venue, pool.liquidity_usd),
        last_update=now,
    )
    reverse = PoolEdge(
        id=f"{pool.id}-reverse",
        venue=venue,
        from_token=forward.to_token,
        to_token=forward.from_token,
        chain_id=chain_id,
        liquidity_usd=forward.liquidity_usd,
        fee=forward.fee,
        gas_estimate=forward.gas_estimate,
        slippage=forward.slippage,
        reliability=forward.reliability,
        mev_risk=forward.mev_risk,
        last_update=now,
    )
    return forward, reverse


class RoutingGraph:
    """Adjacency-list graph of tokens and pool edges.

    Edge ids are unique; adding an edge with a known id replaces the stored
    edge but keeps its feasibility verdict.
    """

    def __init__(self) -> None:
        self.nodes: dict[str, TokenNode] = {}
        self._adjacency: dict[str, list[PoolEdge]] = {}
        self._by_id: dict[str, PoolEdge] = {}
        self.last_refresh: float = 0.0
        self.is_fallback = False

    def add_node(self, node: TokenNode) -> None:
        self.nodes[normalize_token(node.address)] = node

    def node(self, token: str) -> TokenNode | None:
        return self.nodes.get(normalize_token(token))

    def add_edge(self, edge: PoolEdge) -> None:
        existing = self._by_id.get(edge.id)
        if existing is not None:
            if edge.feasible is None:
                edge.feasible = existing.feasible
            if edge.live_gas_estimate is None:
                edge.live_gas_estimate = existing.live_gas_estimate
            bucket = self._adjacency[existing.from_token]
            bucket[bucket.index(existing)] = edge
        else:
            self._adjacency.setdefault(edge.from_token, []).append(edge)
        self._by_id[edge.id] = edge

    def lookup_edges(self, token: str) -> list[PoolEdge]:
        """Outgoing edges of a token (empty for unknown tokens)."""
        return list(self._adjacency.get(normalize_token(token), ()))

    def edge(self, edge_id: str) -> PoolEdge | None:
        return self._by_id.get(edge_id)

    def edges(self) -> Iterator[PoolEdge]:
        for bucket in self._adjacency.values():
            yield from bucket

    @property
    def edge_count(self) -> int:
        return len(self._by_id)

    def sweep_stale(self, now: float, stale_after: float) -> int:
        """Drop edges not updated within ``stale_after`` seconds.

        Returns:
            Number of edges removed
        """
        cutoff = now - stale_after
        removed = 0
        for token, bucket in self._adjacency.items():
            keep = [e for e in bucket if e.pinned or e.last_update > cutoff]
            if len(keep) != len(bucket):
                kept_ids = {e.id for e in keep}
                for e in bucket:
                    if e.id not in kept_ids:
                        del self._by_id[e.id]
                removed += len(bucket) - len(keep)
                self._adjacency[token] = keep
        self.last_refresh = now
        if removed:
            logger.info("stale_edges_swept", removed=removed, remaining=self.edge_count)
        return removed

    def merge(self, other: "RoutingGraph") -> None:
        """Upsert all nodes and edges of ``other`` into this graph."""
        self.nodes.update(other.nodes)
        for edge in other.edges():
            self.add_edge(edge)

    def stats(self) -> GraphStats:
        distribution: dict[str, float] = {}
        feasible = 0
        for edge in self.edges():
            distribution[edge.venue] = distribution.get(edge.venue, 0.0) + edge.liquidity_usd
            if edge.feasible:
                feasible += 1
        return GraphStats(
            total_nodes=len(self.nodes),
            total_edges=self.edge_count,
            feasible_edges=feasible,
            liquidity_distribution=distribution,
            venue_coverage=sorted(distribution),
            is_fallback=self.is_fallback,
        )

    def clear(self) -> None:
        self.nodes.clear()
        self._adjacency.clear()
        self._by_id.clear()
        self.last_refresh = 0.0
        self.is_fallback = False


# Curated high-liquidity mainnet pools: (id, venue, token_a, token_b, liquidity_usd, fee)
CURATED_POOLS = (
    ("curated-weth-usdc-v3", "uniswap-v3", WETH, USDC, 250_000_000.0, 0.0005),
    ("curated-weth-usdt-v3", "uniswap-v3", WETH, USDT, 120_000_000.0, 0.0005),
    ("curated-weth-dai-v2", "uniswap-v2", WETH, DAI, 40_000_000.0, 0.003),
    ("curated-wbtc-weth-v3", "uniswap-v3", WBTC, WETH, 150_000_000.0, 0.003),
    ("curated-usdc-usdt-curve", "curve", USDC, USDT, 180_000_000.0, 0.0004),
    ("curated-usdc-dai-curve", "curve", USDC, DAI, 160_000_000.0, 0.0004),
    ("curated-dai-usdt-curve", "curve", DAI, USDT, 150_000_000.0, 0.0004),
)

CURATED_NODE_COUNT = len(KNOWN_TOKENS[ETHEREUM])


def curated_graph(now: float) -> RoutingGraph:
    """Small fallback graph of well-known mainnet assets and pools."""
    graph = RoutingGraph()
    for address, (symbol, decimals) in KNOWN_TOKENS[ETHEREUM].items():
        price = STATIC_USD_PRICES.get(address, 0.0)
        graph.add_node(
            TokenNode(
                address=address,
                symbol=symbol,
                decimals=decimals,
                chain_id=ETHEREUM,
                price_usd=price,
                is_stable=symbol in STABLECOIN_SYMBOLS,
                risk_score=0.2,
            )
        )
    for pool_id, venue, token_a, token_b, liquidity, fee in CURATED_POOLS:
        pool = PoolInfo(id=pool_id, asset_a=token_a, asset_b=token_b, liquidity_usd=liquidity, fee=fee, reliability=0.95)
        for edge in edges_for_pool(pool, venue, ETHEREUM, now):
            edge.pinned = True
            graph.add_edge(edge)
    graph.is_fallback = True
    graph.last_refresh = now
    return graph


class GraphBuilder:
    """Builds and refreshes a RoutingGraph from the external services.

    Args:
        liquidity: Pool listing service
        prices: Price oracle (static table used for missing entries)
        quotes: Quote service used for feasibility probing
        config: Build/refresh settings
        clock: Wall-clock source for edge timestamps
    """

    def __init__(
        self,
        liquidity: LiquidityService | None,
        prices: PriceOracle | None = None,
        quotes: QuoteService | None = None,
        config: GraphConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.liquidity = liquidity
        self.prices = prices
        self.quotes = quotes
        self.config = config or GraphConfig()
        self.clock = clock

    async def build_or_refresh(self, graph: RoutingGraph, chains: tuple[int, ...] | list[int]) -> RoutingGraph:
        """Rebuild ``graph`` in place from the services.

        The build runs under ``config.build_timeout``. On timeout an empty graph
        is replaced by the curated fallback graph; a populated graph is kept
        as it is.
        """
        try:
            staged = await asyncio.wait_for(self._build(chains), timeout=self.config.build_timeout)
        except TimeoutError:
            logger.warning(
                "graph_build_timeout",
                timeout=self.config.build_timeout,
                existing_edges=graph.edge_count,
            )
            if graph.edge_count == 0:
                graph.clear()
                graph.merge(curated_graph(self.clock()))
                graph.is_fallback = True
                graph.last_refresh = self.clock()
            return graph

        if staged.edge_count == 0 and graph.edge_count == 0:
            logger.warning("graph_build_empty", chains=list(chains))
            graph.merge(curated_graph(self.clock()))
            graph.is_fallback = True
        else:
            if staged.edge_count > 0 and graph.is_fallback:
                graph.clear()
            graph.merge(staged)
            graph.is_fallback = graph.is_fallback and staged.edge_count == 0
        graph.sweep_stale(self.clock(), self.config.stale_after)
        logger.info("graph_built", nodes=len(graph.nodes), edges=graph.edge_count, chains=list(chains))
        return graph

    async def _build(self, chains: tuple[int, ...] | list[int]) -> RoutingGraph:
        staged = RoutingGraph()
        for chain_id in chains:
            await self._build_chain(staged, chain_id)
        return staged

    async def _build_chain(self, graph: RoutingGraph, chain_id: int) -> None:
        tokens = KNOWN_TOKENS.get(chain_id, {})
        prices = await self._fetch_prices(list(tokens), chain_id)

        for address, (symbol, decimals) in tokens.items():
            info = prices.get(address)
            price = info.usd if info else STATIC_USD_PRICES.get(address, 0.0)
            market_cap = (info.market_cap or 0.0) if info else 0.0
            graph.add_node(
                TokenNode(
                    address=address,
                    symbol=symbol,
                    decimals=decimals,
                    chain_id=chain_id,
                    price_usd=price,
                    market_cap=market_cap,
                    is_stable=symbol.upper() in STABLECOIN_SYMBOLS,
                    risk_score=token_risk(market_cap, price),
                )
            )

        if self.liquidity is None:
            return

        now = self.clock()
        for venue in KNOWN_VENUES.get(chain_id, ()):
            try:
                pools = await self.liquidity.get_pools(venue, chain_id)
            except ServiceError as e:
                logger.warning("venue_pools_unavailable", venue=venue, chain_id=chain_id, error=str(e))
                continue
            for pool in pools:
                for edge in edges_for_pool(pool, venue, chain_id, now):
                    self._ensure_node(graph, edge.from_token, chain_id)
                    graph.add_edge(edge)

    def _ensure_node(self, graph: RoutingGraph, token: str, chain_id: int) -> None:
        if graph.node(token) is None:
            graph.add_node(
                TokenNode(
                    address=token,
                    symbol=token[:10],
                    decimals=18,
                    chain_id=chain_id,
                    risk_score=token_risk(0.0, 0.0),
                )
            )

    async def _fetch_prices(self, tokens: list[str], chain_id: int) -> dict[str, PriceInfo]:
        if self.prices is None or not tokens:
            return {}
        try:
            prices = await self.prices.get_prices(tokens, chain_id)
        except ServiceError as e:
            logger.warning("price_oracle_unavailable", chain_id=chain_id, error=str(e))
            return {}
        return {normalize_token(k): v for k, v in prices.items()}

    async def probe_feasibility(self, graph: RoutingGraph) -> FeasibilityReport:
        """Quote every untested edge once and record whether it is feasible.

        Probes run in concurrent batches of ``config.probe_batch_size``.
        """
        untested = [e for e in graph.edges() if e.feasible is None]
        if self.quotes is not None:
            size = self.config.probe_batch_size
            for start in range(0, len(untested), size):
                batch = untested[start : start + size]
                results = await asyncio.gather(*(self._probe(edge) for edge in batch))
                for edge, feasible in zip(batch, results, strict=True):
                    edge.feasible = feasible
        else:
            untested = []

        edges = list(graph.edges())
        feasible = sum(1 for e in edges if e.feasible)
        report = FeasibilityReport(
            total_edges=len(edges),
            feasible_edges=feasible,
            infeasible_edges=sum(1 for e in edges if e.feasible is False),
            newly_tested=len(untested),
        )
        logger.info("feasibility_probed", **report.model_dump())
        return report

    async def _probe(self, edge: PoolEdge) -> bool:
        assert self.quotes is not None
        request = QuoteRequest(
            from_asset=edge.from_token,
            to_asset=edge.to_token,
            amount_in=self.config.probe_amount,
            sender_address=ZERO_ADDRESS,
        )
        try:
            quote = await self.quotes.get_quote(request, edge.chain_id)
        except ServiceError:
            return False
        return quote.amount_out > 0
