"""httpx clients for the external quote, price, liquidity and gas services.

Each call carries its own timeout so one slow upstream cannot stall a search
beyond that deadline. Responses are decoded by ``smartroute.services.decoding``.
"""

from typing import Any

import httpx
import structlog

from smartroute.errors import DecodeError, QuoteError, ServiceError
from smartroute.services.base import (
    GasPriceTiers,
    PoolInfo,
    PriceInfo,
    QuoteRequest,
    QuoteResponse,
)
from smartroute.services.decoding import decode_gas, decode_pools, decode_prices, decode_quote

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 5.0


class HttpService:
    """Shared plumbing for JSON-over-HTTP collaborators.

    Args:
        base_url: Service root, without trailing slash
        api_key: Optional bearer token
        timeout: Per-call timeout in seconds
        client: Optional shared AsyncClient (owned by the caller)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a JSON document.

        Raises:
            ServiceError: On transport errors, timeouts or non-2xx status
        """
        url = f"{self.base_url}{path}"
        try:
            response = await self._get_client().get(
                url, params=params, headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise ServiceError(f"timeout calling {url}") from e
        except httpx.HTTPStatusError as e:
            raise ServiceError(f"{url} returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ServiceError(f"request to {url} failed: {e}") from e

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class HttpQuoteService(HttpService):
    """Aggregator-style quote endpoint: ``GET {base}/{chain_id}/quote``."""

    async def get_quote(self, request: QuoteRequest, chain_id: int) -> QuoteResponse:
        params: dict[str, Any] = {
            "src": request.from_asset,
            "dst": request.to_asset,
            "amount": repr(request.amount_in),
            "from": request.sender_address,
            "includeProtocols": "true",
            "includeGas": "true",
        }
        if request.gas_limit is not None:
            params["gasLimit"] = request.gas_limit
        if request.gas_price is not None:
            params["gasPrice"] = repr(request.gas_price)

        try:
            raw = await self._get_json(f"/{chain_id}/quote", params)
            quote = decode_quote(raw)
        except DecodeError as e:
            raise QuoteError(f"undecodable quote {request.from_asset}->{request.to_asset}") from e
        except ServiceError as e:
            raise QuoteError(str(e)) from e
        return quote


class HttpPriceOracle(HttpService):
    """Batch price endpoint: ``GET {base}/{chain_id}?tokens=a,b,c``."""

    async def get_prices(self, tokens: list[str], chain_id: int) -> dict[str, PriceInfo]:
        if not tokens:
            return {}
        raw = await self._get_json(f"/{chain_id}", {"tokens": ",".join(tokens), "currency": "USD"})
        return decode_prices(raw)


class HttpLiquidityService(HttpService):
    """Pool listing endpoint: ``GET {base}/{chain_id}/pools?venue=...``."""

    async def get_pools(self, venue: str, chain_id: int) -> list[PoolInfo]:
        raw = await self._get_json(f"/{chain_id}/pools", {"venue": venue})
        pools = decode_pools(raw)
        logger.debug("pools_fetched", venue=venue, chain_id=chain_id, count=len(pools))
        return pools


class HttpGasOracle(HttpService):
    """Gas tier endpoint: ``GET {base}/{chain_id}``."""

    async def get_gas_prices(self, chain_id: int) -> GasPriceTiers:
        raw = await self._get_json(f"/{chain_id}")
        return decode_gas(raw)
