"""Tunable configuration for the routing engine.

The heuristic values below are empirically motivated defaults, not derived
quantities. They are grouped per subsystem so tests can swap a single group.
"""

from dataclasses import dataclass, field

from smartroute.constants import CHAIN_NAMES, SUPPORTED_CHAINS
from smartroute.models.types import RiskTier


@dataclass(frozen=True)
class SearchConfig:
    """Path search and quote cache settings.

    Attributes:
        quote_ttl: Seconds a cached live quote may be reused (default: 30)
        quote_batch_size: Concurrent quote requests per batch, kept within 3-5
        prune_threshold: Accumulated cost above which the direct-quote
            pruning heuristic is applied (default: 0.10)
        prune_buffer: Multiplicative buffer the direct route must beat the
            accumulated cost by before a branch is discarded (default: 0.20)
        route_cache_ttl: Seconds a full route result is reused (default: 30)
        gas_cost_factor: Scale of the gas term in static edge cost
        mev_penalty_factor: Scale of the adversarial-risk term in static edge cost
        max_feasibility_entries: Per-amount feasibility verdicts kept before the
            oldest is evicted (default: 10000)
    """

    quote_ttl: float = 30.0
    quote_batch_size: int = 5
    prune_threshold: float = 0.10
    prune_buffer: float = 0.20
    route_cache_ttl: float = 30.0
    gas_cost_factor: float = 0.001
    mev_penalty_factor: float = 0.1
    seconds_per_hop: float = 12.0
    max_route_cache_entries: int = 1000
    max_feasibility_entries: int = 10_000

    def __post_init__(self) -> None:
        if not 3 <= self.quote_batch_size <= 5:
            raise ValueError(f"quote_batch_size must be within 3-5, got {self.quote_batch_size}")
        if self.quote_ttl <= 0:
            raise ValueError("quote_ttl must be positive")


@dataclass(frozen=True)
class GraphConfig:
    """Routing graph build and refresh settings.

    Attributes:
        build_timeout: Seconds before a graph build falls back to the curated graph
        stale_after: Edges not updated within this many seconds are dropped
        sweep_interval: Seconds between staleness sweeps
        feasibility_interval: Seconds between feasibility re-probes
        probe_batch_size: Concurrent probes per re-probe batch
        probe_amount: Input amount used to probe untested edges
        freshness_window: Age after which a search triggers a sweep first
    """

    build_timeout: float = 3.0
    stale_after: float = 600.0
    sweep_interval: float = 300.0
    feasibility_interval: float = 1800.0
    probe_batch_size: int = 10
    probe_amount: float = 1_000_000.0
    freshness_window: float = 300.0
    volatility_reset_threshold: float = 0.3


@dataclass(frozen=True)
class ProtectionThreshold:
    """Maximum extra cost (USD) and target effectiveness for a risk tier."""

    max_cost: float
    min_effectiveness: float


DEFAULT_PROTECTION_THRESHOLDS: dict[RiskTier, ProtectionThreshold] = {
    RiskTier.LOW: ProtectionThreshold(max_cost=10.0, min_effectiveness=0.8),
    RiskTier.MEDIUM: ProtectionThreshold(max_cost=25.0, min_effectiveness=0.9),
    RiskTier.HIGH: ProtectionThreshold(max_cost=50.0, min_effectiveness=0.95),
    RiskTier.CRITICAL: ProtectionThreshold(max_cost=100.0, min_effectiveness=0.98),
}


@dataclass(frozen=True)
class RiskConfig:
    """Risk, timing and splitting settings.

    Attributes:
        protection_thresholds: Per-tier protection cost caps
        probability_cap: Upper bound on any single threat probability
        optimal_delay_threshold: Delays below this many seconds are "optimal"
        congestion_utilization: Utilization above which a clear-time wait is
            reported as network congestion
        split_impact_threshold: Price impact above which orders are split
        min_part_interval: Lower bound on seconds between split parts
        part_interval_jitter: +/- seconds of randomization between parts
        size_jitter: +/- fraction of randomization on each part size
        window_length: Seconds each execution window stays open
    """

    protection_thresholds: dict[RiskTier, ProtectionThreshold] = field(
        default_factory=lambda: dict(DEFAULT_PROTECTION_THRESHOLDS)
    )
    probability_cap: float = 0.95
    optimal_delay_threshold: float = 60.0
    congestion_utilization: float = 0.85
    gas_saving_threshold: float = 0.10
    split_impact_threshold: float = 0.01
    min_part_interval: float = 30.0
    part_interval_jitter: float = 10.0
    size_jitter: float = 0.05
    window_length: float = 300.0


@dataclass(frozen=True)
class LearningConfig:
    """Outcome tracking and calibration settings.

    Attributes:
        learning_window: Seconds outcomes are retained (default: 7 days)
        calibration_capacity: Samples kept per risk tier
        calibration_min_samples: Samples required before a tier is calibrated
        calibration_bins: Number of equal-width bins over [0, 1]
        prune_interval: Seconds between outcome pruning passes
    """

    learning_window: float = 7 * 24 * 3600.0
    calibration_capacity: int = 1000
    calibration_min_samples: int = 50
    calibration_bins: int = 10
    prune_interval: float = 3600.0
    slippage_learning_threshold: float = 0.005
    gas_learning_ratio: float = 0.2
    time_learning_threshold: float = 60.0
    insight_window: int = 50


@dataclass(frozen=True)
class EngineConfig:
    """Aggregate configuration for a RoutingEngine instance."""

    chains: tuple[int, ...] = (1,)
    search: SearchConfig = field(default_factory=SearchConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)

    def __post_init__(self) -> None:
        if not self.chains:
            raise ValueError("at least one chain is required")
        unsupported = [c for c in self.chains if c not in SUPPORTED_CHAINS]
        if unsupported:
            supported = ", ".join(f"{CHAIN_NAMES[c]} ({c})" for c in SUPPORTED_CHAINS)
            raise ValueError(f"unsupported chain ids {unsupported}; supported: {supported}")


# Default configuration instance
DEFAULT_ENGINE_CONFIG = EngineConfig()
