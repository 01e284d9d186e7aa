"""Pytest configuration and fixtures."""

import random

import pytest

from smartroute.config import EngineConfig, GraphConfig
from smartroute.engine import RoutingEngine
from smartroute.services.mock import (
    MockGasOracle,
    MockLiquidityService,
    MockPriceOracle,
    MockQuoteService,
)

from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded generator so split jitter is reproducible."""
    return random.Random(0)


@pytest.fixture
def quote_service() -> MockQuoteService:
    return MockQuoteService()


@pytest.fixture
def gas_oracle() -> MockGasOracle:
    return MockGasOracle()


@pytest.fixture
def engine(
    quote_service: MockQuoteService,
    gas_oracle: MockGasOracle,
    clock: FakeClock,
    rng: random.Random,
) -> RoutingEngine:
    """Engine wired to in-process mocks with an empty graph.

    Not initialized: tests merge their own graphs into ``engine.graph`` and
    set ``last_refresh`` to the fake clock.
    """
    config = EngineConfig(graph=GraphConfig(build_timeout=0.5))
    return RoutingEngine(
        quotes=quote_service,
        prices=MockPriceOracle(),
        liquidity=MockLiquidityService(),
        gas_oracle=gas_oracle,
        config=config,
        clock=clock,
        rng=rng,
    )
