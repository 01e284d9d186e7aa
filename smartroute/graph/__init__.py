"""Routing graph, quote cache and path search."""

from smartroute.graph.pathfinding import PathFinder, route_mev_tier
from smartroute.graph.quote_cache import CachedQuote, QuoteCache
from smartroute.graph.routing_graph import GraphBuilder, PoolEdge, RoutingGraph, TokenNode, curated_graph

__all__ = [
    "CachedQuote",
    "GraphBuilder",
    "PathFinder",
    "PoolEdge",
    "QuoteCache",
    "RoutingGraph",
    "TokenNode",
    "curated_graph",
    "route_mev_tier",
]
