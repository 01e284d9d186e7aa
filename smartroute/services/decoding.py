"""Decode raw external payloads into typed service models.

Every external JSON payload passes through here before reaching the engine.
Shapes that cannot be decoded raise DecodeError instead of leaking partially
parsed dicts.
"""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from smartroute.errors import DecodeError
from smartroute.services.base import (
    GasPriceTiers,
    PoolInfo,
    PriceInfo,
    QuoteResponse,
    TxDescriptor,
    VenueShare,
)

_POOL_LIST = TypeAdapter(list[PoolInfo])

WEI_PER_GWEI = 10**9


def _require_mapping(raw: Any, what: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise DecodeError(f"{what} payload must be an object, got {type(raw).__name__}")
    return raw


def _to_float(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"{what} is not numeric: {value!r}") from e


def decode_quote(raw: Any) -> QuoteResponse:
    """Decode a quote response.

    Accepts the generic shape (``amountOut``, ``tx``, ``venuesUsed``) as well as
    aggregator-style payloads (``toAmount`` / ``dstAmount``, ``protocols``).

    Raises:
        DecodeError: If the payload has no output amount or a malformed field
    """
    data = _require_mapping(raw, "quote")

    amount = data.get("amountOut", data.get("toAmount", data.get("dstAmount")))
    if amount is None:
        raise DecodeError("quote payload has no output amount")
    amount_out = _to_float(amount, "quote output amount")
    if amount_out < 0:
        raise DecodeError(f"quote output amount is negative: {amount_out}")

    try:
        tx = TxDescriptor.model_validate(data.get("tx") or {})
        venues = data.get("venuesUsed")
        if venues is None:
            venues = _venues_from_protocols(data.get("protocols"))
        venues_used = [[VenueShare.model_validate(v) for v in hop] for hop in venues]
    except (ValidationError, TypeError) as e:
        raise DecodeError(f"malformed quote payload: {e}") from e

    return QuoteResponse(amount_out=amount_out, tx=tx, venues_used=venues_used)


def _venues_from_protocols(protocols: Any) -> list[list[dict[str, Any]]]:
    """Flatten aggregator ``protocols`` (routes -> hops -> parts) for the first route."""
    if not protocols:
        return []
    if not isinstance(protocols, list) or not isinstance(protocols[0], list):
        raise DecodeError("quote protocols must be a nested list")

    hops = []
    for hop in protocols[0]:
        parts = hop if isinstance(hop, list) else [hop]
        hops.append(
            [
                {
                    "name": p.get("name", "unknown"),
                    "share_percent": p.get("part", 100.0),
                    "from_asset": p.get("fromTokenAddress", ""),
                    "to_asset": p.get("toTokenAddress", ""),
                }
                for p in parts
                if isinstance(p, dict)
            ]
        )
    return hops


def decode_prices(raw: Any) -> dict[str, PriceInfo]:
    """Decode a price batch keyed by token.

    Values may be plain numbers (or numeric strings) or objects with ``usd``,
    ``marketCap`` and ``volume24h``. Unparseable entries are skipped so the
    static fallback table can fill them.
    """
    data = _require_mapping(raw, "price")
    prices: dict[str, PriceInfo] = {}
    for token, value in data.items():
        try:
            if isinstance(value, dict):
                prices[token.lower()] = PriceInfo.model_validate(value)
            else:
                prices[token.lower()] = PriceInfo(usd=float(value))
        except (ValidationError, TypeError, ValueError):
            continue
    return prices


def decode_pools(raw: Any) -> list[PoolInfo]:
    """Decode a pool listing, either a bare list or ``{"pools": [...]}``.

    Raises:
        DecodeError: If any pool entry is malformed
    """
    if isinstance(raw, dict):
        raw = raw.get("pools", [])
    try:
        return _POOL_LIST.validate_python(raw)
    except ValidationError as e:
        raise DecodeError(f"malformed pool listing: {e}") from e


def decode_gas(raw: Any) -> GasPriceTiers:
    """Decode gas price tiers.

    Accepts ``{fast, standard, safe}`` in gwei, or an EIP-1559 style payload
    with ``high``/``medium``/``low`` objects carrying ``maxFeePerGas`` in wei.

    Raises:
        DecodeError: If neither shape matches
    """
    data = _require_mapping(raw, "gas")

    if {"fast", "standard", "safe"} <= data.keys():
        try:
            return GasPriceTiers.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"malformed gas tiers: {e}") from e

    if {"high", "medium", "low"} <= data.keys():

        def gwei(tier: str) -> float:
            entry = data[tier]
            value = entry.get("maxFeePerGas") if isinstance(entry, dict) else entry
            return _to_float(value, f"gas {tier}") / WEI_PER_GWEI

        return GasPriceTiers(fast=gwei("high"), standard=gwei("medium"), safe=gwei("low"))

    raise DecodeError(f"unrecognized gas payload keys: {sorted(data)}")
