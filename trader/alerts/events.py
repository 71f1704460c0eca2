"""Trade event recording: session log, structured log and alert fan-out."""

from html import escape

import structlog

from ..core.errors import TradeError
from ..core.interfaces import AlertSink
from ..core.types import TradeEvent
from ..risk.session import SessionState

logger = structlog.get_logger(__name__)

_ICONS = {"info": "ℹ️", "success": "✅", "warning": "⚠️", "error": "❌"}


def format_alert(event: TradeEvent) -> str:
    """Render an event as an HTML alert message.

    Event fields can carry node or revert text, so every field is escaped.
    """
    lines = [f"{_ICONS.get(event.level, '')} <b>{escape(event.message)}</b>"]
    if event.token:
        lines.append(f"Token: <code>{escape(event.token)}</code>")
    if event.code:
        lines.append(f"Code: {escape(event.code)}")
    if event.tx_hash:
        lines.append(f"Tx: <code>{escape(event.tx_hash)}</code>")
    return "\n".join(lines)


class EventRecorder:
    """Emits every trade-flow event to the session log, structlog and sinks."""

    def __init__(
        self,
        session: SessionState,
        sinks: list[AlertSink] | None = None,
        alert_levels: tuple[str, ...] = ("success", "error"),
    ) -> None:
        self.session = session
        self.sinks = list(sinks or [])
        self.alert_levels = alert_levels

    async def emit(
        self,
        message: str,
        level: str = "info",
        token: str | None = None,
        code: str | None = None,
        tx_hash: str | None = None,
    ) -> TradeEvent:
        event = self.session.add_event(
            message, level=level, token=token, code=code, tx_hash=tx_hash
        )

        log = logger.bind(token=token, code=code, tx_hash=tx_hash)
        if level == "error":
            log.error(message)
        elif level == "warning":
            log.warning(message)
        else:
            log.info(message, level=level)

        if level in self.alert_levels:
            text = format_alert(event)
            for sink in self.sinks:
                await sink.push(text)
        return event

    async def failure(self, error: TradeError, token: str | None = None) -> TradeEvent:
        """Record a classified failure, with its remediation hint if any."""
        message = error.message
        hint = getattr(error, "hint", None)
        if hint:
            message = f"{message}. {hint}"
        return await self.emit(
            message,
            level="error",
            token=token or error.token,
            code=error.code,
            tx_hash=getattr(error, "tx_hash", None),
        )
