"""Short-lived quote cache keeping one flow's quote consistent."""

import time
from collections.abc import Callable

import structlog

from ..core.types import Quote

logger = structlog.get_logger(__name__)


class QuoteCache:
    """Quotes keyed by (token_in, token_out, amount_in, fee) with a TTL.

    Not a correctness guarantee; the chain re-validates every swap.
    """

    def __init__(
        self, ttl_seconds: float = 30.0, now_fn: Callable[[], float] | None = None
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._now_fn = now_fn or time.time
        self._entries: dict[tuple[str, str, int, int], tuple[Quote, float]] = {}

    def put(self, quote: Quote) -> None:
        self._entries[quote.key] = (quote, self._now_fn())

    def get(
        self, token_in: str, token_out: str, amount_in: int, fee: int
    ) -> Quote | None:
        key = (token_in.lower(), token_out.lower(), amount_in, int(fee))
        entry = self._entries.get(key)
        if entry is None:
            return None
        quote, stored_at = entry
        if self._now_fn() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return quote

    def latest(self, token_in: str, token_out: str, amount_in: int) -> Quote | None:
        """Freshest cached quote for the amount at any fee tier."""
        best: tuple[Quote, float] | None = None
        for key, (quote, stored_at) in list(self._entries.items()):
            if key[:3] != (token_in.lower(), token_out.lower(), amount_in):
                continue
            if self._now_fn() - stored_at > self.ttl_seconds:
                del self._entries[key]
                continue
            if best is None or stored_at > best[1]:
                best = (quote, stored_at)
        return best[0] if best else None

    def invalidate(self, quote: Quote) -> None:
        self._entries.pop(quote.key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
