"""Gas price tracking with rolling-average fallback and simple predictions."""

from collections import deque

import structlog

from smartroute.constants import DEFAULT_GAS_TIERS, FALLBACK_GAS_TIERS
from smartroute.errors import ServiceError
from smartroute.models.strategy import GasPrediction
from smartroute.services.base import GasOracle, GasPriceTiers

logger = structlog.get_logger()

# Number of locally observed samples kept per chain
HISTORY_SIZE = 10

# (time_to_reach seconds, confidence) for the three prediction horizons
PREDICTION_HORIZONS = ((300.0, 0.7), (600.0, 0.6), (1200.0, 0.5))


def default_tiers(chain_id: int) -> GasPriceTiers:
    fast, standard, safe = DEFAULT_GAS_TIERS.get(chain_id, FALLBACK_GAS_TIERS)
    return GasPriceTiers(fast=fast, standard=standard, safe=safe)


class GasPriceTracker:
    """Wraps a GasOracle and remembers what it has seen.

    On oracle failure the rolling average of the last samples is returned,
    or hard-coded per-chain defaults if nothing has been observed yet.
    """

    def __init__(self, oracle: GasOracle | None = None, history_size: int = HISTORY_SIZE) -> None:
        self.oracle = oracle
        self.history_size = history_size
        self._history: dict[int, deque[GasPriceTiers]] = {}

    def record(self, chain_id: int, tiers: GasPriceTiers) -> None:
        history = self._history.setdefault(chain_id, deque(maxlen=self.history_size))
        history.append(tiers)

    def history(self, chain_id: int) -> list[GasPriceTiers]:
        return list(self._history.get(chain_id, ()))

    def rolling_average(self, chain_id: int) -> GasPriceTiers | None:
        samples = self._history.get(chain_id)
        if not samples:
            return None
        n = len(samples)
        return GasPriceTiers(
            fast=sum(s.fast for s in samples) / n,
            standard=sum(s.standard for s in samples) / n,
            safe=sum(s.safe for s in samples) / n,
        )

    async def get_gas_prices(self, chain_id: int) -> GasPriceTiers:
        """Current tiers from the oracle, or the best available fallback."""
        if self.oracle is not None:
            try:
                tiers = await self.oracle.get_gas_prices(chain_id)
            except ServiceError as e:
                logger.warning("gas_oracle_unavailable", chain_id=chain_id, error=str(e))
            else:
                self.record(chain_id, tiers)
                return tiers

        average = self.rolling_average(chain_id)
        if average is not None:
            return average
        return default_tiers(chain_id)

    def predictions(self, chain_id: int) -> list[GasPrediction]:
        """Predicted standard gas prices at three horizons.

        Uses observed history (mean, safe tier, minimum) when available,
        otherwise fixed defaults scaled to the chain's standard tier.
        """
        samples = self._history.get(chain_id)
        if samples:
            standards = [s.standard for s in samples]
            prices = [
                sum(standards) / len(standards),
                samples[-1].safe,
                min(min(standards), samples[-1].safe),
            ]
        else:
            standard = default_tiers(chain_id).standard
            # 25/20/18 gwei against a 30 gwei standard
            prices = [standard * 25 / 30, standard * 20 / 30, standard * 18 / 30]

        return [
            GasPrediction(price_gwei=price, time_to_reach=horizon, confidence=confidence)
            for price, (horizon, confidence) in zip(prices, PREDICTION_HORIZONS, strict=True)
        ]
