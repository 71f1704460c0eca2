"""Telegram alert sink for trade notifications."""

import json
from html import escape
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog

from ..core.interfaces import AlertSink

logger = structlog.get_logger(__name__)

MAX_MESSAGE_LENGTH = 4000


@runtime_checkable
class StatusProvider(Protocol):
    """Anything able to describe the running engine."""

    def get_status(self) -> dict[str, Any]:
        """Current engine status."""
        ...


class TelegramAPIError(Exception):
    """Telegram answered with ok=false."""


class TelegramAlertSink(AlertSink):
    """Pushes trade events to a list of Telegram chats."""

    def __init__(
        self,
        bot_token: str,
        admin_user_ids: list[int],
        session: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            bot_token: Telegram bot token
            admin_user_ids: Chats that receive trade alerts
            session: Optional HTTP client, mainly for tests
        """
        self.admin_user_ids = admin_user_ids
        self.session = session or httpx.AsyncClient(timeout=10.0)
        self.base_url = f"https://api.telegram.org/bot{bot_token}"

        logger.info("Telegram alert sink initialized", admin_count=len(admin_user_ids))

    async def push(self, message: str) -> None:
        """Send a message to every admin chat.

        Delivery failures are logged per chat and never propagate into the
        trade flow.
        """
        if not self.admin_user_ids:
            logger.warning("No admin users configured, skipping alert")
            return

        delivered = 0
        for user_id in self.admin_user_ids:
            try:
                await self._send_message(user_id, message)
                delivered += 1
            except (httpx.HTTPError, TelegramAPIError) as e:
                logger.error("Failed to send alert", user_id=user_id, error=str(e))

        logger.debug(
            "Alert push completed",
            total_admins=len(self.admin_user_ids),
            delivered=delivered,
        )

    async def _send_message(self, chat_id: int, text: str) -> None:
        response = await self.session.post(
            f"{self.base_url}/sendMessage",
            json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
        )
        response.raise_for_status()

        result = response.json()
        if not result.get("ok"):
            raise TelegramAPIError(result.get("description", "Unknown error"))

    def render_status(self, provider: StatusProvider | None) -> str:
        """Render the /status reply for a provider."""
        if provider is None:
            return "⚠️ Status provider not available"

        status_json = json.dumps(provider.get_status(), indent=2, default=str)
        if len(status_json) > MAX_MESSAGE_LENGTH:
            status_json = status_json[:MAX_MESSAGE_LENGTH] + "\n... (truncated)"
        body = escape(status_json, quote=False)
        return f"📊 <b>Trader Status</b>\n\n<pre>{body}</pre>"

    async def close(self) -> None:
        await self.session.aclose()
        logger.info("Telegram alert sink closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
