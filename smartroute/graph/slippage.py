"""Static slippage models per venue family.

Each model maps (input size, pool liquidity) in USD to a fractional slippage.
They are only used when no live quote is available for an edge.
"""

import math
from dataclasses import dataclass, field
from enum import Enum


class SlippageKind(str, Enum):
    CONSTANT = "constant"
    UNISWAP_V2 = "uniswap_v2"
    UNISWAP_V3 = "uniswap_v3"
    CURVE = "curve"
    BALANCER = "balancer"


# Upper bounds per model
V2_CAP = 0.3
V3_CAP = 0.2
CURVE_CAP = 0.1
BALANCER_CAP = 0.15
DEFAULT_CONSTANT_SLIPPAGE = 0.005


@dataclass(frozen=True)
class SlippageModel:
    """Slippage as a function of input amount and liquidity.

    Attributes:
        kind: Model family
        params: Model parameters (``fee`` for v2, ``A`` for curve,
            ``weight`` for balancer, ``slippage`` for constant)
    """

    kind: SlippageKind = SlippageKind.CONSTANT
    params: dict[str, float] = field(default_factory=dict)

    def __call__(self, amount_in: float, liquidity: float) -> float:
        if amount_in <= 0:
            return 0.0
        liquidity = liquidity or 1.0

        if self.kind is SlippageKind.UNISWAP_V2:
            # Symmetric constant-product pool holding `liquidity` on each side
            fee = self.params.get("fee", 0.003)
            k = self.params.get("k", liquidity * liquidity)
            reserve_in = math.sqrt(k)
            reserve_out = k / reserve_in
            amount_in_with_fee = amount_in * (1 - fee)
            amount_out = reserve_out * amount_in_with_fee / (reserve_in + amount_in_with_fee)
            spot_out = amount_in_with_fee * reserve_out / reserve_in
            return min(1 - amount_out / spot_out, V2_CAP)

        utilization = amount_in / liquidity
        if self.kind is SlippageKind.UNISWAP_V3:
            return min(utilization * 0.1, V3_CAP)
        if self.kind is SlippageKind.CURVE:
            amp = self.params.get("A", 100.0)
            return min(utilization * utilization / amp, CURVE_CAP)
        if self.kind is SlippageKind.BALANCER:
            weight = self.params.get("weight", 0.5)
            return min(utilization / weight, BALANCER_CAP)
        return self.params.get("slippage", DEFAULT_CONSTANT_SLIPPAGE)


def model_for_venue(venue: str, fee: float = 0.003) -> SlippageModel:
    """Pick the slippage model matching a venue name."""
    name = venue.lower()
    if "uniswap-v3" in name or "uniswap_v3" in name:
        return SlippageModel(SlippageKind.UNISWAP_V3)
    if "uniswap" in name or "sushi" in name:
        return SlippageModel(SlippageKind.UNISWAP_V2, {"fee": fee})
    if "curve" in name:
        return SlippageModel(SlippageKind.CURVE, {"A": 100.0})
    if "balancer" in name:
        return SlippageModel(SlippageKind.BALANCER, {"weight": 0.5})
    return SlippageModel(SlippageKind.CONSTANT)
