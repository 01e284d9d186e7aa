"""Interfaces and typed payloads for external collaborators.

Quote, price, liquidity and gas data come from swappable services. Each one
is a Protocol so the engine can be wired with HTTP clients in production and
in-process mocks in tests.
"""

from typing import Protocol

from pydantic import Field

from smartroute.models.base import WireModel
from smartroute.models.types import Probability


class QuoteRequest(WireModel):
    from_asset: str
    to_asset: str
    amount_in: float = Field(gt=0)
    sender_address: str
    gas_limit: int | None = None
    gas_price: float | None = None


class TxDescriptor(WireModel):
    to: str = ""
    data: str = "0x"
    value: str = "0"
    gas: int = 0
    gas_price: str = "0"


class VenueShare(WireModel):
    name: str
    share_percent: float = 100.0
    from_asset: str = ""
    to_asset: str = ""


class QuoteResponse(WireModel):
    amount_out: float = Field(ge=0)
    tx: TxDescriptor = Field(default_factory=TxDescriptor)
    venues_used: list[list[VenueShare]] = Field(default_factory=list)

    @property
    def gas(self) -> int | None:
        return self.tx.gas or None

    @property
    def execution_class(self) -> str:
        """Classify the quote as rfq, private or public from its venue names."""
        names = [v.name.lower() for hop in self.venues_used for v in hop]
        if any("rfq" in n for n in names):
            return "rfq"
        if any("private" in n for n in names):
            return "private"
        return "public"


class PriceInfo(WireModel):
    usd: float = Field(ge=0)
    market_cap: float | None = None
    volume_24h: float | None = None


class PoolInfo(WireModel):
    id: str
    asset_a: str
    asset_b: str
    liquidity_usd: float = Field(ge=0)
    fee: float = Field(ge=0, lt=1)
    reliability: Probability = 0.9


class GasPriceTiers(WireModel):
    """Gas price tiers in gwei."""

    fast: float = Field(ge=0)
    standard: float = Field(ge=0)
    safe: float = Field(ge=0)


class QuoteService(Protocol):
    """Live quoting service.

    Raises QuoteError when no quote is available for the pair and amount.
    """

    async def get_quote(self, request: QuoteRequest, chain_id: int) -> QuoteResponse: ...


class PriceOracle(Protocol):
    """Batch USD price lookup. Missing entries are simply absent from the result."""

    async def get_prices(self, tokens: list[str], chain_id: int) -> dict[str, PriceInfo]: ...


class LiquidityService(Protocol):
    """Pools available on a venue."""

    async def get_pools(self, venue: str, chain_id: int) -> list[PoolInfo]: ...


class GasOracle(Protocol):
    async def get_gas_prices(self, chain_id: int) -> GasPriceTiers: ...
