"""Pre-trade business rules.

Pure decision logic: given fixed inputs and a clock, the outcome is fully
determined. The only side effect is logging.
"""

import time
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation

import structlog

from ..core.errors import RejectReason, ValidationRejected
from ..core.types import Prediction, Quote, TradeRequest, TradeSettings, ValidationDecision
from ..core.units import apply_slippage, to_base_units

logger = structlog.get_logger(__name__)


def _reject(
    reason: RejectReason, detail: str, warnings: list[str], **extra
) -> ValidationDecision:
    return ValidationDecision(
        accepted=False,
        reason=reason.value,
        detail=detail,
        warnings=warnings,
        **extra,
    )


class TradeValidator:
    """Decides whether a trade attempt may proceed."""

    def __init__(
        self,
        cooldown_seconds: int = 300,
        max_prediction_age_seconds: int | None = 900,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        """Initialize trade validator.

        Args:
            cooldown_seconds: Minimum time between trades on one token
            max_prediction_age_seconds: Oldest usable prediction, None disables
            now_fn: Optional function to get current timestamp (for testing)
        """
        self.cooldown_seconds = cooldown_seconds
        self.max_prediction_age_seconds = max_prediction_age_seconds
        self._now_fn = now_fn or time.time

    def validate(
        self,
        token_in: str,
        token_out: str,
        settings: TradeSettings,
        prediction: Prediction | None,
        whitelist: Mapping[str, bool],
        bypass: bool = False,
        decimals: int | None = None,
    ) -> ValidationDecision:
        """Run the pre-quote checks for a trade on token_out.

        Strict mode short-circuits on the first failing check. Bypass mode
        turns cooldown and prediction failures into warnings.
        """
        warnings: list[str] = []

        def soft_fail(reason: RejectReason, detail: str, **extra):
            if not bypass:
                return _reject(reason, detail, warnings, **extra)
            warnings.append(f"{reason.value}: {detail}")
            logger.warning(
                "Bypassing failed check", token=token_out, reason=reason.value,
                detail=detail,
            )
            return None

        if not settings.enabled:
            return self._log(
                token_out,
                _reject(
                    RejectReason.TRADING_DISABLED,
                    "Trading is disabled for this token",
                    warnings,
                ),
            )

        amount_error = self._check_amount(settings.trade_amount, decimals)
        if amount_error:
            return self._log(
                token_out, _reject(RejectReason.INVALID_AMOUNT, amount_error, warnings)
            )

        missing = [t for t in (token_in, token_out) if not self._listed(whitelist, t)]
        if missing:
            return self._log(
                token_out,
                _reject(
                    RejectReason.TOKEN_NOT_WHITELISTED,
                    f"Not whitelisted for trading: {', '.join(missing)}",
                    warnings,
                ),
            )

        now = self._now_fn()
        remaining = self.cooldown_remaining(settings, now)
        if remaining > 0:
            decision = soft_fail(
                RejectReason.COOLDOWN_ACTIVE,
                f"Cooldown active, wait {remaining:.0f} seconds",
                cooldown_remaining=remaining,
            )
            if decision:
                return self._log(token_out, decision)

        for check in (self._check_prediction_present, self._check_fresh):
            failure = check(prediction, now)
            if failure:
                decision = soft_fail(*failure)
                if decision:
                    return self._log(token_out, decision)

        if prediction is not None:
            if prediction.confidence < settings.min_confidence:
                decision = soft_fail(
                    RejectReason.CONFIDENCE_TOO_LOW,
                    f"Confidence too low ({prediction.confidence}% < "
                    f"{settings.min_confidence}%)",
                )
                if decision:
                    return self._log(token_out, decision)

            if prediction.risk_score > settings.max_risk_score:
                decision = soft_fail(
                    RejectReason.RISK_TOO_HIGH,
                    f"Risk score too high ({prediction.risk_score} > "
                    f"{settings.max_risk_score})",
                )
                if decision:
                    return self._log(token_out, decision)

            if prediction.is_honeypot:
                decision = soft_fail(
                    RejectReason.HONEYPOT, "Target token is a potential honeypot"
                )
                if decision:
                    return self._log(token_out, decision)

        return self._log(token_out, ValidationDecision(accepted=True, warnings=warnings))

    def cooldown_remaining(self, settings: TradeSettings, now: float | None = None) -> float:
        """Seconds until the token may trade again (0 when clear)."""
        last = settings.cooldown_last_fired_at
        if last is None:
            return 0.0
        now = self._now_fn() if now is None else now
        return max(0.0, last + self.cooldown_seconds - now)

    def validate_quote(
        self,
        quote: Quote | None,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_trade_amount: int,
    ) -> ValidationDecision:
        """Quote-dependent checks run after resolution."""
        if amount_in < min_trade_amount:
            return self._log(
                token_out,
                _reject(
                    RejectReason.BELOW_MIN_TRADE,
                    f"Trade amount {amount_in} below minimum {min_trade_amount}",
                    [],
                ),
            )

        if quote is None or quote.key[:3] != (
            token_in.lower(),
            token_out.lower(),
            amount_in,
        ):
            return self._log(
                token_out,
                _reject(
                    RejectReason.QUOTE_MISMATCH,
                    "No quote for this exact trade in the current flow",
                    [],
                ),
            )

        return ValidationDecision(accepted=True)

    @staticmethod
    def _listed(whitelist: Mapping[str, bool], token: str) -> bool:
        return bool(whitelist.get(token) or whitelist.get(token.lower()))

    @staticmethod
    def _check_amount(trade_amount: str, decimals: int | None) -> str | None:
        if decimals is not None:
            try:
                to_base_units(trade_amount, decimals)
            except ValueError as e:
                return str(e)
            return None

        try:
            value = Decimal((trade_amount or "").strip())
        except InvalidOperation:
            return f"Invalid amount: {trade_amount!r}"
        if not value.is_finite() or value <= 0:
            return f"Amount must be positive: {trade_amount!r}"
        return None

    @staticmethod
    def _check_prediction_present(prediction: Prediction | None, now: float):
        if prediction is None:
            return RejectReason.PREDICTION_UNAVAILABLE, "No prediction available"
        return None

    def _check_fresh(self, prediction: Prediction | None, now: float):
        if prediction is None or self.max_prediction_age_seconds is None:
            return None
        age = now - prediction.timestamp
        if prediction.timestamp == 0 or age > self.max_prediction_age_seconds:
            return (
                RejectReason.PREDICTION_STALE,
                f"Prediction is {age:.0f}s old (max "
                f"{self.max_prediction_age_seconds}s)",
            )
        return None

    @staticmethod
    def _log(token: str, decision: ValidationDecision) -> ValidationDecision:
        if decision.accepted:
            logger.info(
                "Trade validated", token=token, warnings=decision.warnings
            )
        else:
            logger.info(
                "Trade rejected",
                token=token,
                reason=decision.reason,
                detail=decision.detail,
            )
        return decision


def require(decision: ValidationDecision, token: str | None = None) -> None:
    """Raise ValidationRejected for a rejected decision."""
    if decision.accepted:
        return
    raise ValidationRejected(
        RejectReason(decision.reason),
        decision.detail or decision.reason,
        token=token,
        cooldown_remaining=decision.cooldown_remaining,
    )


def build_trade_request(
    quote: Quote, recipient: str, slippage_bps: int
) -> TradeRequest:
    """Price a request against its quote with integer slippage math."""
    return TradeRequest(
        token_in=quote.token_in,
        token_out=quote.token_out,
        amount_in=quote.amount_in,
        recipient=recipient,
        min_amount_out=apply_slippage(quote.amount_out, slippage_bps),
        quote=quote,
    )
