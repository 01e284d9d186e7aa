"""FastAPI application for the routing engine.

Note: Rate limiting is not implemented at the application level. It belongs
to the infrastructure layer (reverse proxy / load balancer).
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from smartroute import __version__
from smartroute.api.endpoints import router
from smartroute.config import EngineConfig
from smartroute.engine import RoutingEngine
from smartroute.services.http import HttpGasOracle, HttpLiquidityService, HttpPriceOracle, HttpQuoteService

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("SMARTROUTE_HOST", "0.0.0.0")
PORT = int(os.environ.get("SMARTROUTE_PORT", "8000"))
DEBUG = os.environ.get("SMARTROUTE_DEBUG", "false").lower() in ("true", "1", "yes")

QUOTE_URL = os.environ.get("SMARTROUTE_QUOTE_URL")
QUOTE_API_KEY = os.environ.get("SMARTROUTE_QUOTE_API_KEY")
PRICE_URL = os.environ.get("SMARTROUTE_PRICE_URL")
LIQUIDITY_URL = os.environ.get("SMARTROUTE_LIQUIDITY_URL")
GAS_URL = os.environ.get("SMARTROUTE_GAS_URL")
CHAINS = tuple(int(c) for c in os.environ.get("SMARTROUTE_CHAINS", "1").split(",") if c.strip())

# Maximum request body size (10 MB)
MAX_REQUEST_SIZE = 10 * 1024 * 1024


def build_engine() -> RoutingEngine:
    """Engine wired to the HTTP services configured in the environment.

    Services without a configured URL are left out; the engine then works
    from static prices and the curated graph.
    """
    return RoutingEngine(
        quotes=HttpQuoteService(QUOTE_URL, api_key=QUOTE_API_KEY) if QUOTE_URL else None,
        prices=HttpPriceOracle(PRICE_URL) if PRICE_URL else None,
        liquidity=HttpLiquidityService(LIQUIDITY_URL) if LIQUIDITY_URL else None,
        gas_oracle=HttpGasOracle(GAS_URL) if GAS_URL else None,
        config=EngineConfig(chains=CHAINS or (1,)),
    )


async def _close_services(engine: RoutingEngine) -> None:
    services = [engine.quotes, engine.builder.prices, engine.builder.liquidity, engine.gas.oracle]
    for service in services:
        aclose = getattr(service, "aclose", None)
        if aclose is not None:
            await aclose()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine = build_engine()
    await engine.initialize()
    app.state.engine = engine
    try:
        yield
    finally:
        await engine.cleanup()
        await _close_services(engine)
        app.state.engine = None


app = FastAPI(
    title="SmartRoute",
    description="Live-quote route search and MEV-aware execution strategies",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


app.include_router(router)


@app.get("/health")
async def health(request: Request) -> dict[str, object]:
    """Health check endpoint."""
    engine: RoutingEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        return {"status": "starting"}
    return {
        "status": "ok",
        "graph_nodes": len(engine.graph.nodes),
        "graph_edges": engine.graph.edge_count,
        "fallback_graph": engine.graph.is_fallback,
        "live_quotes": engine.quotes is not None,
    }


def configure_logging(debug: bool = DEBUG) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
    )


def run() -> None:
    """Run the routing API server.

    Configuration via environment variables:
    - SMARTROUTE_HOST: Host to bind to (default: 0.0.0.0)
    - SMARTROUTE_PORT: Port to bind to (default: 8000)
    - SMARTROUTE_DEBUG: Enable debug/reload mode (default: false)
    - SMARTROUTE_QUOTE_URL / SMARTROUTE_QUOTE_API_KEY: Live quote service
    - SMARTROUTE_PRICE_URL, SMARTROUTE_LIQUIDITY_URL, SMARTROUTE_GAS_URL
    - SMARTROUTE_CHAINS: Comma-separated chain ids (default: 1)
    """
    configure_logging()
    uvicorn.run(
        "smartroute.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
