"""Consensus selection result."""

from pydantic import Field

from smartroute.models.base import WireModel
from smartroute.models.types import Probability


class CriteriaScores(WireModel):
    """Normalized [0, 1] sub-scores of one candidate route."""

    cost: Probability = 0.0
    time: Probability = 0.0
    security: Probability = 0.0
    reliability: Probability = 0.0
    slippage: Probability = 0.0


class ConsensusDecision(WireModel):
    route_id: str | None
    score: float = 0.0
    scores: CriteriaScores = Field(default_factory=CriteriaScores)
    confidence: Probability = 0.0
    reasoning: list[str] = Field(default_factory=list)
    fallback: bool = False
