"""API endpoints for the routing engine."""

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Request

from smartroute.engine import RoutingEngine
from smartroute.errors import InvalidRequestError, TaskCancelledError
from smartroute.models.outcome import LearningReport

logger = structlog.get_logger()

router = APIRouter()


def get_engine(request: Request) -> RoutingEngine:
    """Dependency provider for the engine instance.

    The engine is created by the application lifespan and stored on
    ``app.state``. Override this in tests to inject a prepared engine:
        app.dependency_overrides[get_engine] = lambda: engine
    """
    engine: RoutingEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


@router.post("/tasks")
async def run_task(
    payload: dict[str, Any] = Body(...),
    engine: RoutingEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Run one tagged task.

    Error Handling:
        - Unknown kind or invalid fields: 422 with the offending field names
        - Cancelled before handling: 409
        - Upstream failures: handled inside the engine (degraded result, 200)
    """
    kind = payload.get("kind")
    logger.info("received_task", kind=kind, request_id=payload.get("requestId") or payload.get("request_id"))

    try:
        response = await engine.dispatch(payload)
    except InvalidRequestError as e:
        logger.warning("invalid_task", kind=kind, fields=e.fields, error=str(e))
        raise HTTPException(status_code=422, detail={"message": str(e), "fields": e.fields}) from e
    except TaskCancelledError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    logger.info("returning_task_result", kind=response.kind)
    # Dumped here so the result keeps its concrete model fields
    return response.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/metrics/learning", response_model_exclude_none=True)
async def learning_metrics(
    limit: int = 10,
    engine: RoutingEngine = Depends(get_engine),
) -> LearningReport:
    """Per-tier performance metrics, calibration statistics and insights."""
    return engine.learning_report(limit)


@router.get("/metrics/search")
async def search_metrics(engine: RoutingEngine = Depends(get_engine)) -> dict[str, object]:
    metrics = engine.search_metrics
    return {
        "totalSearches": metrics.total_searches,
        "averageSearchTimeMs": metrics.average_search_time_ms,
        "successRate": metrics.success_rate,
        "cacheHitRate": metrics.cache_hit_rate,
        "graph": engine.graph.stats().model_dump(by_alias=True),
    }
