"""In-process service implementations for tests and offline runs.

Configure them with expected answers and inspect ``calls`` for assertions.
"""

import asyncio

from smartroute.errors import QuoteError, ServiceError
from smartroute.models.types import normalize_token
from smartroute.services.base import (
    GasPriceTiers,
    PoolInfo,
    PriceInfo,
    QuoteRequest,
    QuoteResponse,
    TxDescriptor,
    VenueShare,
)


def _pair(from_token: str, to_token: str) -> tuple[str, str]:
    return normalize_token(from_token), normalize_token(to_token)


class MockQuoteService:
    """Quote service answering from configured rates.

    Args:
        rates: (from, to) -> output per unit input
        fixed: (from, to, amount_in) -> exact output amount
        default_rate: Rate for unconfigured pairs; None raises QuoteError
        failing: Pairs for which the service raises QuoteError
        venue: Venue name reported in ``venues_used``
        gas: Gas reported in the transaction descriptor
    """

    def __init__(
        self,
        rates: dict[tuple[str, str], float] | None = None,
        fixed: dict[tuple[str, str, float], float] | None = None,
        default_rate: float | None = None,
        failing: set[tuple[str, str]] | None = None,
        venue: str = "mock-amm",
        gas: int = 150_000,
    ) -> None:
        self.rates = {_pair(a, b): r for (a, b), r in (rates or {}).items()}
        self.fixed = {(*_pair(a, b), amt): out for (a, b, amt), out in (fixed or {}).items()}
        self.default_rate = default_rate
        self.failing = {_pair(a, b) for a, b in (failing or set())}
        self.venue = venue
        self.gas = gas
        self.calls: list[tuple[str, str, float]] = []

    def set_rate(self, from_token: str, to_token: str, rate: float) -> None:
        self.rates[_pair(from_token, to_token)] = rate

    async def get_quote(self, request: QuoteRequest, chain_id: int) -> QuoteResponse:
        pair = _pair(request.from_asset, request.to_asset)
        self.calls.append((pair[0], pair[1], request.amount_in))

        if pair in self.failing:
            raise QuoteError(f"no liquidity for {pair[0]}->{pair[1]}")

        key = (*pair, request.amount_in)
        if key in self.fixed:
            amount_out = self.fixed[key]
        elif pair in self.rates:
            amount_out = request.amount_in * self.rates[pair]
        elif self.default_rate is not None:
            amount_out = request.amount_in * self.default_rate
        else:
            raise QuoteError(f"no quote configured for {pair[0]}->{pair[1]}")

        return QuoteResponse(
            amount_out=amount_out,
            tx=TxDescriptor(to=request.to_asset, gas=self.gas),
            venues_used=[[VenueShare(name=self.venue, from_asset=pair[0], to_asset=pair[1])]],
        )


class MockPriceOracle:
    def __init__(self, prices: dict[str, float] | None = None, fail: bool = False) -> None:
        self.prices = {normalize_token(k): v for k, v in (prices or {}).items()}
        self.fail = fail
        self.calls: list[list[str]] = []

    async def get_prices(self, tokens: list[str], chain_id: int) -> dict[str, PriceInfo]:
        self.calls.append(list(tokens))
        if self.fail:
            raise ServiceError("price oracle unavailable")
        return {
            normalize_token(t): PriceInfo(usd=self.prices[normalize_token(t)])
            for t in tokens
            if normalize_token(t) in self.prices
        }


class MockLiquidityService:
    """Liquidity service serving a fixed pool list per venue.

    Args:
        pools: venue -> pools
        delay: Seconds to sleep before answering (to exercise build timeouts)
        fail: Raise ServiceError for every request
    """

    def __init__(
        self,
        pools: dict[str, list[PoolInfo]] | None = None,
        delay: float = 0.0,
        fail: bool = False,
    ) -> None:
        self.pools = pools or {}
        self.delay = delay
        self.fail = fail
        self.calls: list[tuple[str, int]] = []

    async def get_pools(self, venue: str, chain_id: int) -> list[PoolInfo]:
        self.calls.append((venue, chain_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ServiceError("liquidity service unavailable")
        return list(self.pools.get(venue, []))


class MockGasOracle:
    def __init__(self, tiers: GasPriceTiers | None = None, fail: bool = False) -> None:
        self.tiers = tiers or GasPriceTiers(fast=40.0, standard=30.0, safe=20.0)
        self.fail = fail
        self.calls = 0

    async def get_gas_prices(self, chain_id: int) -> GasPriceTiers:
        self.calls += 1
        if self.fail:
            raise ServiceError("gas oracle unavailable")
        return self.tiers
