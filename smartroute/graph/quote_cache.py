"""TTL cache for live quote results."""

import time
from collections.abc import Callable
from dataclasses import dataclass

from smartroute.models.types import normalize_token

QuoteKey = tuple[str, str, float]


def quote_key(from_token: str, to_token: str, amount_in: float) -> QuoteKey:
    return normalize_token(from_token), normalize_token(to_token), amount_in


@dataclass(frozen=True)
class CachedQuote:
    """A live quote and the cost it implies.

    Attributes:
        amount_in: Input amount quoted
        amount_out: Output amount returned by the quote service
        cost: Implied fractional cost, never negative
        gas: Gas estimate from the quote, if any
        execution_class: rfq, private or public
        fetched_at: Clock reading when the quote was stored
        ttl: Seconds the entry may be read
    """

    amount_in: float
    amount_out: float
    cost: float
    gas: int | None
    execution_class: str
    fetched_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now >= self.fetched_at + self.ttl


class QuoteCache:
    """Quote results keyed by (from, to, amount).

    An entry is never returned once its ttl has elapsed; the expired entry is
    dropped on read so the caller re-fetches. Writes are last-writer-wins.
    """

    def __init__(self, ttl: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[QuoteKey, CachedQuote] = {}
        self.hits = 0
        self.misses = 0

    def get(self, from_token: str, to_token: str, amount_in: float) -> CachedQuote | None:
        key = quote_key(from_token, to_token, amount_in)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if entry.expired(self.clock()):
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return entry

    def put(
        self,
        from_token: str,
        to_token: str,
        amount_in: float,
        amount_out: float,
        *,
        gas: int | None = None,
        execution_class: str = "public",
    ) -> CachedQuote:
        entry = CachedQuote(
            amount_in=amount_in,
            amount_out=amount_out,
            cost=implied_cost(amount_in, amount_out),
            gas=gas,
            execution_class=execution_class,
            fetched_at=self.clock(),
            ttl=self.ttl,
        )
        self._entries[quote_key(from_token, to_token, amount_in)] = entry
        return entry

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [k for k, v in self._entries.items() if v.expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def implied_cost(amount_in: float, amount_out: float) -> float:
    """Fractional loss implied by a quote, clamped to >= 0."""
    if amount_in <= 0:
        return 0.0
    return max(0.0, 1.0 - amount_out / amount_in)
