"""Tests for the httpx service clients, using httpx.MockTransport."""

import httpx
import pytest

from smartroute.errors import QuoteError, ServiceError
from smartroute.services.base import QuoteRequest
from smartroute.services.http import (
    HttpGasOracle,
    HttpLiquidityService,
    HttpPriceOracle,
    HttpQuoteService,
)


def client_for(handler) -> httpx.AsyncClient:  # type: ignore[no-untyped-def]
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def quote_request(amount_in: float = 1000.0) -> QuoteRequest:
    return QuoteRequest(from_asset="0xaaa", to_asset="0xbbb", amount_in=amount_in, sender_address="0xme")


class TestHttpQuoteService:
    @pytest.mark.asyncio
    async def test_request_and_decode(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"dstAmount": "997", "tx": {"gas": 120000}})

        service = HttpQuoteService("https://quotes.test/", api_key="secret", client=client_for(handler))
        quote = await service.get_quote(quote_request(), chain_id=1)

        assert quote.amount_out == 997.0
        assert quote.gas == 120_000
        request = seen[0]
        assert request.url.path == "/1/quote"
        assert request.url.params["src"] == "0xaaa"
        assert request.url.params["dst"] == "0xbbb"
        assert request.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_status_error_becomes_quote_error(self) -> None:
        service = HttpQuoteService(
            "https://quotes.test", client=client_for(lambda r: httpx.Response(400, json={"error": "no route"}))
        )
        with pytest.raises(QuoteError, match="400"):
            await service.get_quote(quote_request(), chain_id=1)

    @pytest.mark.asyncio
    async def test_undecodable_body_becomes_quote_error(self) -> None:
        service = HttpQuoteService("https://quotes.test", client=client_for(lambda r: httpx.Response(200, json={})))
        with pytest.raises(QuoteError, match="undecodable"):
            await service.get_quote(quote_request(), chain_id=1)

    @pytest.mark.asyncio
    async def test_timeout_becomes_quote_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        service = HttpQuoteService("https://quotes.test", client=client_for(handler))
        with pytest.raises(QuoteError, match="timeout"):
            await service.get_quote(quote_request(), chain_id=1)

    @pytest.mark.asyncio
    async def test_shared_client_not_closed(self) -> None:
        client = client_for(lambda r: httpx.Response(200, json={"amountOut": 1}))
        service = HttpQuoteService("https://quotes.test", client=client)

        await service.aclose()

        assert not client.is_closed
        await client.aclose()


class TestOtherClients:
    @pytest.mark.asyncio
    async def test_prices(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["tokens"] == "0xaaa,0xbbb"
            return httpx.Response(200, json={"0xaaa": 2000, "0xbbb": {"usd": 1}})

        oracle = HttpPriceOracle("https://prices.test", client=client_for(handler))
        prices = await oracle.get_prices(["0xaaa", "0xbbb"], chain_id=1)

        assert prices["0xaaa"].usd == 2000.0
        assert prices["0xbbb"].usd == 1.0

    @pytest.mark.asyncio
    async def test_prices_empty_request_skips_call(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        oracle = HttpPriceOracle("https://prices.test", client=client_for(handler))
        assert await oracle.get_prices([], chain_id=1) == {}

    @pytest.mark.asyncio
    async def test_pools(self) -> None:
        pool = {"id": "p1", "assetA": "0xaaa", "assetB": "0xbbb", "liquidityUsd": 1e6, "fee": 0.003}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/1/pools"
            assert request.url.params["venue"] == "curve"
            return httpx.Response(200, json={"pools": [pool]})

        service = HttpLiquidityService("https://pools.test", client=client_for(handler))
        pools = await service.get_pools("curve", chain_id=1)

        assert [p.id for p in pools] == ["p1"]

    @pytest.mark.asyncio
    async def test_gas(self) -> None:
        oracle = HttpGasOracle(
            "https://gas.test",
            client=client_for(lambda r: httpx.Response(200, json={"fast": 40, "standard": 30, "safe": 20})),
        )
        tiers = await oracle.get_gas_prices(1)
        assert tiers.standard == 30.0

    @pytest.mark.asyncio
    async def test_server_error_is_service_error(self) -> None:
        oracle = HttpGasOracle("https://gas.test", client=client_for(lambda r: httpx.Response(503)))
        with pytest.raises(ServiceError, match="503"):
            await oracle.get_gas_prices(1)

    @pytest.mark.asyncio
    async def test_non_json_body_is_service_error(self) -> None:
        oracle = HttpGasOracle("https://gas.test", client=client_for(lambda r: httpx.Response(200, text="<html>")))
        with pytest.raises(ServiceError):
            await oracle.get_gas_prices(1)
