"""SmartRoute - live-quote route search and MEV-aware execution strategies."""

__version__ = "0.1.0"

from smartroute.engine import RoutingEngine  # noqa: E402

__all__ = ["RoutingEngine", "__version__"]
