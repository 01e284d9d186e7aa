"""External collaborators: interfaces, decoding, HTTP clients and mocks."""

from smartroute.services.base import (
    GasOracle,
    GasPriceTiers,
    LiquidityService,
    PoolInfo,
    PriceInfo,
    PriceOracle,
    QuoteRequest,
    QuoteResponse,
    QuoteService,
)
from smartroute.services.gas import GasPriceTracker

__all__ = [
    "GasOracle",
    "GasPriceTiers",
    "GasPriceTracker",
    "LiquidityService",
    "PoolInfo",
    "PriceInfo",
    "PriceOracle",
    "QuoteRequest",
    "QuoteResponse",
    "QuoteService",
]
