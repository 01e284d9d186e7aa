"""Shared type definitions for routing models."""

from enum import Enum
from typing import Annotated

from pydantic import Field

# EVM address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# Fraction in [0, 1]
Probability = Annotated[float, Field(ge=0.0, le=1.0)]


class RiskTier(str, Enum):
    """Adversarial-extraction risk tier, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def is_elevated(self) -> bool:
        """True for high and critical tiers."""
        return self in (RiskTier.HIGH, RiskTier.CRITICAL)

    @classmethod
    def from_probability(cls, probability: float) -> "RiskTier":
        """Map a maximum threat probability onto a tier using fixed cutoffs."""
        if probability < 0.2:
            return cls.LOW
        if probability < 0.5:
            return cls.MEDIUM
        if probability < 0.8:
            return cls.HIGH
        return cls.CRITICAL


def normalize_address(address: str, *, validate: bool = False) -> str:
    """Normalize an address to lowercase with 0x prefix.

    Args:
        address: An address (with or without 0x prefix)
        validate: If True, raises ValueError for invalid addresses

    Returns:
        Lowercase address with 0x prefix

    Raises:
        ValueError: If validate=True and address is not a valid address
    """
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr

    if validate and not is_valid_address(addr):
        raise ValueError(f"Invalid address: {address}")

    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid EVM address."""
    if not isinstance(address, str):
        return False
    if not address.startswith("0x"):
        return False
    if len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def normalize_token(token: str) -> str:
    """Normalize a token identifier (address or symbolic id) for graph lookups."""
    return token.strip().lower()
