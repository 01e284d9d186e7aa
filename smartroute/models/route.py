"""Route search parameters, route proposals and search statistics."""

import math

from pydantic import Field, model_validator

from smartroute.models.base import WireModel
from smartroute.models.types import Probability, normalize_token

# Relative tolerance when checking that hop amounts chain
CHAIN_TOLERANCE = 1e-6


class RouteSearchParams(WireModel):
    """Parameters for a single route search."""

    from_token: str = Field(min_length=1)
    to_token: str = Field(min_length=1)
    amount_in: float = Field(gt=0)
    chain_id: int = 1
    max_hops: int = Field(default=3, ge=1, le=6)
    max_slippage: float = Field(default=0.05, ge=0)
    gas_price_gwei: float = Field(default=30.0, ge=0)
    prioritize_gas: bool = False
    prioritize_slippage: bool = False
    exclude_protocols: list[str] = Field(default_factory=list)
    include_only_protocols: list[str] | None = None
    use_live_quotes: bool = True
    sender_address: str | None = None

    @property
    def from_key(self) -> str:
        return normalize_token(self.from_token)

    @property
    def to_key(self) -> str:
        return normalize_token(self.to_token)

    def cache_key(self) -> tuple[object, ...]:
        """Key for the route result cache."""
        return (
            self.from_key,
            self.to_key,
            self.amount_in,
            self.chain_id,
            self.max_hops,
            self.gas_price_gwei,
            self.use_live_quotes,
            self.prioritize_gas,
            self.prioritize_slippage,
            tuple(sorted(self.exclude_protocols)),
            tuple(sorted(self.include_only_protocols or ())),
        )

    def allows_venue(self, venue: str) -> bool:
        """Check venue against the include/exclude lists."""
        if venue in self.exclude_protocols:
            return False
        if self.include_only_protocols is not None:
            return venue in self.include_only_protocols
        return True


class RouteStep(WireModel):
    """One hop of a route."""

    venue: str
    from_token: str
    to_token: str
    amount_in: float = Field(ge=0)
    estimated_output: float = Field(ge=0)
    fee: float = Field(ge=0)
    live_quote: bool = False
    execution_class: str | None = None


class RouteProposal(WireModel):
    """A candidate multi-hop exchange path.

    Hop amounts are chained: each hop consumes exactly what the previous hop
    produced, and no token appears twice along the path.
    """

    id: str
    from_token: str
    to_token: str
    amount_in: float = Field(ge=0)
    chain_id: int = 1
    path: list[RouteStep] = Field(default_factory=list)
    estimated_gas: int = Field(default=0, ge=0)
    estimated_time: float = Field(default=0.0, ge=0)
    estimated_output: float = Field(default=0.0, ge=0)
    price_impact: float = Field(default=0.0, ge=0)
    cost: float = Field(default=0.0, ge=0)
    confidence: Probability = 0.5
    risks: list[str] = Field(default_factory=list)
    advantages: list[str] = Field(default_factory=list)
    proposed_by: str = "external"

    @model_validator(mode="after")
    def _check_chained_path(self) -> "RouteProposal":
        if not self.path:
            return self

        if not _close(self.path[0].amount_in, self.amount_in):
            raise ValueError("first hop amount_in must equal route amount_in")

        for prev, step in zip(self.path, self.path[1:], strict=False):
            if normalize_token(prev.to_token) != normalize_token(step.from_token):
                raise ValueError("consecutive hops must share a token")
            if not _close(step.amount_in, prev.estimated_output):
                raise ValueError("hop amount_in must equal previous hop estimated_output")

        tokens = [normalize_token(self.path[0].from_token)]
        tokens.extend(normalize_token(step.to_token) for step in self.path)
        if len(tokens) != len(set(tokens)):
            raise ValueError("route path must not revisit a token")
        return self

    @property
    def hop_count(self) -> int:
        return len(self.path)

    @property
    def tokens(self) -> list[str]:
        """Token sequence along the path (normalized)."""
        if not self.path:
            return []
        return [normalize_token(self.path[0].from_token)] + [
            normalize_token(s.to_token) for s in self.path
        ]


def _close(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=CHAIN_TOLERANCE, abs_tol=1e-12)


class SearchStats(WireModel):
    """Statistics for one route search."""

    nodes_explored: int = 0
    paths_evaluated: int = 0
    time_spent_ms: float = 0.0
    cache_hits: int = 0
    quote_queries: int = 0
    parallel_batches: int = 0
    pruned_branches: int = 0
    optimality_gap: float = 0.0
    message: str | None = None


class GraphStats(WireModel):
    """Snapshot statistics of the routing graph."""

    total_nodes: int = 0
    total_edges: int = 0
    feasible_edges: int = 0
    liquidity_distribution: dict[str, float] = Field(default_factory=dict)
    venue_coverage: list[str] = Field(default_factory=list)
    is_fallback: bool = False


class PathfindingResult(WireModel):
    """Routes plus the statistics describing how they were found."""

    routes: list[RouteProposal] = Field(default_factory=list)
    search_stats: SearchStats = Field(default_factory=SearchStats)
    graph_stats: GraphStats = Field(default_factory=GraphStats)


class FeasibilityReport(WireModel):
    """Outcome of a feasibility re-probe over untested edges."""

    total_edges: int = 0
    feasible_edges: int = 0
    infeasible_edges: int = 0
    newly_tested: int = 0


class EngineMetrics(WireModel):
    """Aggregate search metrics across the lifetime of an engine."""

    total_searches: int = 0
    successful_searches: int = 0
    cache_hits: int = 0
    total_search_time_ms: float = 0.0

    @property
    def average_search_time_ms(self) -> float:
        return self.total_search_time_ms / self.total_searches if self.total_searches else 0.0

    @property
    def success_rate(self) -> float:
        return self.successful_searches / self.total_searches if self.total_searches else 0.0

    @property
    def cache_hit_rate(self) -> float:
        return self.cache_hits / self.total_searches if self.total_searches else 0.0

    def record(self, result: PathfindingResult, elapsed_ms: float, cache_hit: bool) -> None:
        self.total_searches += 1
        self.total_search_time_ms += elapsed_ms
        if result.routes:
            self.successful_searches += 1
        if cache_hit:
            self.cache_hits += 1
