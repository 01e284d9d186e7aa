"""Timing, order splitting, confidence scoring and strategy assembly."""

from smartroute.execution.confidence import ConfidenceScorer, threat_agreement
from smartroute.execution.splitting import OrderSplitPlanner
from smartroute.execution.strategy import StrategyGenerator
from smartroute.execution.timing import TimingOptimizer

__all__ = [
    "ConfidenceScorer",
    "OrderSplitPlanner",
    "StrategyGenerator",
    "TimingOptimizer",
    "threat_agreement",
]
