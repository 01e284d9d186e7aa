"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token addresses and symbolic token ids
- factories: Graph, route, market and analysis factories plus a fake clock
"""

from tests.helpers.constants import (
    DAI,
    TOKEN_A,
    TOKEN_B,
    TOKEN_C,
    TOKEN_D,
    TOKEN_X,
    TOKEN_Y,
    USDC,
    USDT,
    WBTC,
    WETH,
)
from tests.helpers.factories import (
    FakeClock,
    make_analysis,
    make_candidate,
    make_graph,
    make_market,
    make_pool,
    make_route,
)

__all__ = [
    # Constants
    "WETH",
    "USDC",
    "DAI",
    "USDT",
    "WBTC",
    "TOKEN_A",
    "TOKEN_B",
    "TOKEN_C",
    "TOKEN_D",
    "TOKEN_X",
    "TOKEN_Y",
    # Factories
    "FakeClock",
    "make_analysis",
    "make_candidate",
    "make_graph",
    "make_market",
    "make_pool",
    "make_route",
]
