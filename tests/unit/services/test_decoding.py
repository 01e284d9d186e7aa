"""Tests for decoding external payloads."""

import pytest

from smartroute.errors import DecodeError
from smartroute.services.decoding import decode_gas, decode_pools, decode_prices, decode_quote


class TestDecodeQuote:
    def test_generic_shape(self) -> None:
        quote = decode_quote(
            {
                "amountOut": "997.5",
                "tx": {"to": "0xrouter", "gas": 140000},
                "venuesUsed": [[{"name": "uniswap-v3", "sharePercent": 100}]],
            }
        )
        assert quote.amount_out == 997.5
        assert quote.gas == 140_000
        assert quote.execution_class == "public"

    def test_aggregator_shape(self) -> None:
        quote = decode_quote(
            {
                "dstAmount": "1000",
                "protocols": [[[{"name": "HASHFLOW_RFQ", "part": 100, "fromTokenAddress": "a", "toTokenAddress": "b"}]]],
            }
        )
        assert quote.amount_out == 1000.0
        assert quote.venues_used[0][0].name == "HASHFLOW_RFQ"
        assert quote.execution_class == "rfq"

    def test_private_venue(self) -> None:
        quote = decode_quote({"toAmount": 5, "venuesUsed": [[{"name": "private-orderflow"}]]})
        assert quote.execution_class == "private"

    def test_missing_gas_is_none(self) -> None:
        assert decode_quote({"amountOut": 1}).gas is None

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"amountOut": "lots"},
            {"amountOut": -1},
            {"amountOut": 1, "protocols": "uniswap"},
            {"amountOut": 1, "tx": {"gas": "many"}},
            [1, 2, 3],
        ],
    )
    def test_malformed(self, payload: object) -> None:
        with pytest.raises(DecodeError):
            decode_quote(payload)


class TestDecodePrices:
    def test_numbers_and_objects(self) -> None:
        prices = decode_prices({"0xAAA": 2000, "0xbbb": "1.01", "0xccc": {"usd": 5, "marketCap": 1e9}})
        assert prices["0xaaa"].usd == 2000.0
        assert prices["0xbbb"].usd == 1.01
        assert prices["0xccc"].market_cap == 1e9

    def test_bad_entries_skipped(self) -> None:
        prices = decode_prices({"0xaaa": "n/a", "0xbbb": {"usd": -1}, "0xccc": 3})
        assert list(prices) == ["0xccc"]

    def test_not_an_object(self) -> None:
        with pytest.raises(DecodeError):
            decode_prices([2000])


class TestDecodePools:
    def test_wrapped_and_bare(self) -> None:
        pool = {"id": "p1", "assetA": "a", "assetB": "b", "liquidityUsd": 1e6, "fee": 0.003}
        assert decode_pools({"pools": [pool]})[0].id == "p1"
        assert decode_pools([pool])[0].reliability == 0.9

    def test_malformed_pool(self) -> None:
        with pytest.raises(DecodeError):
            decode_pools([{"id": "p1", "fee": 2}])


class TestDecodeGas:
    def test_tiers_in_gwei(self) -> None:
        tiers = decode_gas({"fast": 40, "standard": 30, "safe": 20})
        assert (tiers.fast, tiers.standard, tiers.safe) == (40.0, 30.0, 20.0)

    def test_eip1559_in_wei(self) -> None:
        tiers = decode_gas(
            {
                "high": {"maxFeePerGas": "45000000000"},
                "medium": {"maxFeePerGas": "30000000000"},
                "low": {"maxFeePerGas": "15000000000"},
            }
        )
        assert (tiers.fast, tiers.standard, tiers.safe) == (45.0, 30.0, 15.0)

    @pytest.mark.parametrize("payload", [{"fast": 1}, {"fast": -1, "standard": 1, "safe": 1}, "30"])
    def test_malformed(self, payload: object) -> None:
        with pytest.raises(DecodeError):
            decode_gas(payload)
