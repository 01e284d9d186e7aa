"""Multi-criteria selection among competing route proposals."""

import structlog

from smartroute.models.consensus import ConsensusDecision, CriteriaScores
from smartroute.models.market import DecisionCriteria, RiskAssessment
from smartroute.models.route import RouteProposal
from smartroute.models.strategy import ExecutionStrategy

logger = structlog.get_logger()

# Gas and time at which the cost and time sub-scores reach zero
GAS_SCALE = 500_000
TIME_SCALE = 600.0
# Gas assumed for a route that reports none
UNKNOWN_GAS = 200_000

BASE_SECURITY = 0.5
PROTECTION_BONUS = 0.3
RISK_PENALTY = 0.4

BASE_CONFIDENCE = 0.7
MAX_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.1


def _has_protection(route: RouteProposal, strategy: ExecutionStrategy | None) -> bool:
    if strategy is not None and strategy.protection.enabled:
        return True
    return any("mev" in advantage.lower() for advantage in route.advantages)


def criteria_scores(
    route: RouteProposal,
    assessment: RiskAssessment | None,
    strategy: ExecutionStrategy | None,
) -> CriteriaScores:
    gas = route.estimated_gas or UNKNOWN_GAS
    security = BASE_SECURITY
    if _has_protection(route, strategy):
        security += PROTECTION_BONUS
    if assessment is not None:
        security -= RISK_PENALTY * assessment.overall_risk

    return CriteriaScores(
        cost=max(0.0, 1 - gas / GAS_SCALE),
        time=max(0.0, 1 - route.estimated_time / TIME_SCALE),
        security=min(1.0, max(0.0, security)),
        reliability=route.confidence,
        slippage=max(0.0, 1 - route.price_impact * 100),
    )


def decision_confidence(
    route: RouteProposal,
    assessment: RiskAssessment | None,
    strategy: ExecutionStrategy | None,
) -> float:
    """Grows with how much supporting data the chosen route has."""
    confidence = BASE_CONFIDENCE
    if assessment is not None:
        confidence += 0.1
    if strategy is not None:
        confidence += 0.1
    if len(route.advantages) > 2:
        confidence += 0.05
    if route.path:
        confidence += 0.05
    return min(MAX_CONFIDENCE, confidence)


def weighted_score(scores: CriteriaScores, criteria: DecisionCriteria) -> float:
    weights = criteria.model_dump()
    total = sum(weights.values())
    if total <= 0:
        weights = dict.fromkeys(weights, 1.0)
        total = float(len(weights))
    values = scores.model_dump()
    return sum(weights[name] * values[name] for name in weights) / total


class ConsensusCoordinator:
    """Scores every proposal on five criteria and picks the best one.

    Proposals may come from this engine or from external baselines. Risk
    assessments and strategies are matched to routes by route id.
    """

    def select(
        self,
        routes: list[RouteProposal],
        assessments: list[RiskAssessment] | None = None,
        strategies: list[ExecutionStrategy] | None = None,
        criteria: DecisionCriteria | None = None,
    ) -> ConsensusDecision:
        if not routes:
            logger.warning("consensus_no_routes")
            return ConsensusDecision(
                route_id=None,
                confidence=FALLBACK_CONFIDENCE,
                reasoning=["No route proposals to choose from"],
                fallback=True,
            )

        try:
            return self._select(routes, assessments or [], strategies or [], criteria or DecisionCriteria())
        except Exception:
            logger.exception("consensus_evaluation_failed", routes=len(routes))
            return ConsensusDecision(
                route_id=routes[0].id,
                confidence=FALLBACK_CONFIDENCE,
                reasoning=["Consensus evaluation failed; falling back to the first proposal"],
                fallback=True,
            )

    def _select(
        self,
        routes: list[RouteProposal],
        assessments: list[RiskAssessment],
        strategies: list[ExecutionStrategy],
        criteria: DecisionCriteria,
    ) -> ConsensusDecision:
        by_route_assessment = {a.route_id: a for a in assessments}
        by_route_strategy = {s.route_id: s for s in strategies}

        best: tuple[float, RouteProposal, CriteriaScores] | None = None
        for route in routes:
            scores = criteria_scores(
                route, by_route_assessment.get(route.id), by_route_strategy.get(route.id)
            )
            total = weighted_score(scores, criteria)
            logger.debug("consensus_route_scored", route_id=route.id, score=round(total, 4))
            # Strict comparison keeps the earliest proposal on ties
            if best is None or total > best[0]:
                best = (total, route, scores)

        score, route, scores = best
        assessment = by_route_assessment.get(route.id)
        strategy = by_route_strategy.get(route.id)
        confidence = decision_confidence(route, assessment, strategy)

        reasoning = [
            f"Selected {route.id} from {len(routes)} proposals with score {score:.3f}",
            f"Cost {scores.cost:.2f}, time {scores.time:.2f}, security {scores.security:.2f}, "
            f"reliability {scores.reliability:.2f}, slippage {scores.slippage:.2f}",
        ]
        if route.proposed_by:
            reasoning.append(f"Proposed by {route.proposed_by}")
        if assessment is None:
            reasoning.append("No risk assessment available for the selected route")

        logger.info("consensus_selected", route_id=route.id, score=round(score, 4), confidence=confidence)
        return ConsensusDecision(
            route_id=route.id,
            score=score,
            scores=scores,
            confidence=confidence,
            reasoning=reasoning,
        )
