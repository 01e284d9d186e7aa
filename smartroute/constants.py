"""Well-known assets, venues and static fallback tables.

Centralizes chain ids, token addresses and the hard-coded defaults used when
upstream services are unavailable.
"""

from smartroute.models.types import is_valid_address


def _validate_token_address(name: str, address: str) -> str:
    """Validate and return a lowercase token address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address.lower()


ETHEREUM = 1
BSC = 56
POLYGON = 137
ARBITRUM = 42161

SUPPORTED_CHAINS = (ETHEREUM, POLYGON, BSC, ARBITRUM)

CHAIN_NAMES = {
    ETHEREUM: "ethereum",
    POLYGON: "polygon",
    BSC: "bsc",
    ARBITRUM: "arbitrum",
}

# Placeholder sender used for indicative quotes
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Mainnet tokens (validated at import time to catch typos early)
WETH = _validate_token_address("WETH", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2")
USDC = _validate_token_address("USDC", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
USDT = _validate_token_address("USDT", "0xdac17f958d2ee523a2206206994597c13d831ec7")
DAI = _validate_token_address("DAI", "0x6b175474e89094c44da98b954eedeac495271d0f")
WBTC = _validate_token_address("WBTC", "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599")

STABLECOIN_SYMBOLS = frozenset({"USDC", "USDT", "DAI", "BUSD", "FRAX", "LUSD"})

# Known assets per chain: address -> (symbol, decimals)
KNOWN_TOKENS: dict[int, dict[str, tuple[str, int]]] = {
    ETHEREUM: {
        WETH: ("WETH", 18),
        USDC: ("USDC", 6),
        USDT: ("USDT", 6),
        DAI: ("DAI", 18),
        WBTC: ("WBTC", 8),
    },
}

# Venues enumerated per chain during graph build
KNOWN_VENUES: dict[int, tuple[str, ...]] = {
    ETHEREUM: ("uniswap-v2", "uniswap-v3", "sushiswap", "curve", "balancer"),
    POLYGON: ("uniswap-v3", "sushiswap", "balancer"),
    BSC: ("uniswap-v2", "sushiswap"),
    ARBITRUM: ("uniswap-v3", "sushiswap", "curve", "balancer"),
}

# Static per-venue swap gas
VENUE_GAS_ESTIMATES = {
    "uniswap-v2": 150_000,
    "uniswap-v3": 180_000,
    "sushiswap": 150_000,
    "curve": 200_000,
    "balancer": 250_000,
    "aggregator": 120_000,
}
DEFAULT_VENUE_GAS = 150_000

# Base adversarial-extraction risk per venue
VENUE_MEV_RISK = {
    "uniswap-v2": 0.6,
    "uniswap-v3": 0.7,
    "sushiswap": 0.5,
    "curve": 0.3,
    "balancer": 0.4,
    "aggregator": 0.2,
}
DEFAULT_VENUE_MEV_RISK = 0.5

# USD prices used when the price oracle has no entry
STATIC_USD_PRICES = {
    WETH: 2000.0,
    USDC: 1.0,
    USDT: 1.0,
    DAI: 1.0,
    WBTC: 40000.0,
}

# Gas price tiers in gwei used when the gas oracle has never answered
DEFAULT_GAS_TIERS: dict[int, tuple[float, float, float]] = {
    ETHEREUM: (50.0, 30.0, 20.0),
    POLYGON: (30.0, 25.0, 20.0),
    BSC: (5.0, 3.0, 1.0),
    ARBITRUM: (0.1, 0.05, 0.01),
}
FALLBACK_GAS_TIERS = (50.0, 30.0, 20.0)
