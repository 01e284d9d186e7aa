"""Data models for route search, risk analysis and learning."""

from smartroute.models.consensus import ConsensusDecision, CriteriaScores
from smartroute.models.market import (
    DecisionCriteria,
    MarketConditions,
    MempoolStatus,
    RiskAssessment,
    UserPreferences,
)
from smartroute.models.outcome import (
    ActualResults,
    CalibrationStats,
    ExecutionOutcome,
    ExecutionPredictions,
    LearningInsights,
    LearningReport,
    LearningState,
    OutcomeDeltas,
    StrategyPerformanceMetrics,
)
from smartroute.models.route import (
    EngineMetrics,
    FeasibilityReport,
    GraphStats,
    PathfindingResult,
    RouteProposal,
    RouteSearchParams,
    RouteStep,
    SearchStats,
)
from smartroute.models.strategy import (
    ExecutionStrategy,
    ExecutionWindow,
    MEVAnalysis,
    MEVThreat,
    OrderSplitPlan,
    ProtectionCandidate,
    ProtectionDecision,
    ProtectionKind,
    ThreatType,
    TimingAnalysis,
)
from smartroute.models.types import RiskTier

__all__ = [
    "ActualResults",
    "CalibrationStats",
    "ConsensusDecision",
    "CriteriaScores",
    "DecisionCriteria",
    "EngineMetrics",
    "ExecutionOutcome",
    "ExecutionPredictions",
    "ExecutionStrategy",
    "ExecutionWindow",
    "FeasibilityReport",
    "GraphStats",
    "LearningInsights",
    "LearningReport",
    "LearningState",
    "MEVAnalysis",
    "MEVThreat",
    "MarketConditions",
    "MempoolStatus",
    "OrderSplitPlan",
    "OutcomeDeltas",
    "PathfindingResult",
    "ProtectionCandidate",
    "ProtectionDecision",
    "ProtectionKind",
    "RiskAssessment",
    "RiskTier",
    "RouteProposal",
    "RouteSearchParams",
    "RouteStep",
    "SearchStats",
    "StrategyPerformanceMetrics",
    "ThreatType",
    "TimingAnalysis",
    "UserPreferences",
]
