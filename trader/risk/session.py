"""Per-session trading state: settings store, cooldowns and the event log."""

import asyncio
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime

import structlog

from ..core.types import TradeEvent, TradeSettings

logger = structlog.get_logger(__name__)

MAX_EVENTS = 50


class SessionState:
    """Single-writer state owned by one trading session.

    Token keys are normalized to lowercase addresses.
    """

    def __init__(
        self,
        settings: dict[str, TradeSettings] | None = None,
        bypass_mode: bool = False,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        self._now_fn = now_fn or time.time
        self._settings: dict[str, TradeSettings] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.bypass_mode = bypass_mode
        self.events: deque[TradeEvent] = deque(maxlen=MAX_EVENTS)

        for token, token_settings in (settings or {}).items():
            self.set_settings(token, token_settings)

    @staticmethod
    def _key(token: str) -> str:
        return token.lower()

    def tokens(self) -> list[str]:
        return list(self._settings)

    def has_token(self, token: str) -> bool:
        return self._key(token) in self._settings

    def get_settings(self, token: str) -> TradeSettings | None:
        return self._settings.get(self._key(token))

    def set_settings(self, token: str, token_settings: TradeSettings) -> None:
        self._settings[self._key(token)] = token_settings

    def update_settings(self, token: str, **changes) -> TradeSettings:
        """Apply field changes to a token's settings."""
        current = self._settings.get(self._key(token)) or TradeSettings()
        updated = TradeSettings.model_validate({**current.model_dump(), **changes})
        self._settings[self._key(token)] = updated
        logger.info("Updated trade settings", token=token, changes=changes)
        return updated

    def last_fired_at(self, token: str) -> float | None:
        token_settings = self.get_settings(token)
        return token_settings.cooldown_last_fired_at if token_settings else None

    def record_trade(self, token: str, at: float | None = None) -> None:
        """Start the cooldown for a token after a successful trade."""
        fired_at = self._now_fn() if at is None else at
        self.update_settings(token, cooldown_last_fired_at=fired_at)

    def lock_for(self, token: str) -> asyncio.Lock:
        """In-process lock serializing trade flows for one token."""
        return self._locks.setdefault(self._key(token), asyncio.Lock())

    def add_event(
        self,
        message: str,
        level: str = "info",
        token: str | None = None,
        code: str | None = None,
        tx_hash: str | None = None,
    ) -> TradeEvent:
        """Record an event; the log keeps the newest entries first."""
        event = TradeEvent(
            timestamp=datetime.fromtimestamp(self._now_fn()),
            level=level,
            message=message,
            token=token,
            code=code,
            tx_hash=tx_hash,
        )
        self.events.appendleft(event)
        return event
