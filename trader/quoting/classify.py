"""Failure classification for quote simulations and swap execution.

Typed exceptions are inspected first; matching on revert strings is only the
fallback, and it happens here and nowhere else.
"""

import re

import structlog
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3RPCError

from ..chain.client import TRANSPORT_ERRORS
from ..core.errors import (
    ConnectivityError,
    ContractReadFailed,
    ExecutionReverted,
    InsufficientAllowance,
    InsufficientGasFunds,
    QuoteFailureKind,
    TradeError,
)

logger = structlog.get_logger(__name__)

_QUOTE_PATTERNS: list[tuple[re.Pattern[str], QuoteFailureKind]] = [
    (re.compile(r"missing revert data", re.I), QuoteFailureKind.POOL_UNINITIALIZED),
    (re.compile(r"not initiali[sz]ed", re.I), QuoteFailureKind.POOL_UNINITIALIZED),
    (re.compile(r"\bLOK\b"), QuoteFailureKind.POOL_UNINITIALIZED),
    (re.compile(r"\bSPL\b"), QuoteFailureKind.POOL_UNINITIALIZED),
    (re.compile(r"insufficient liquidity", re.I), QuoteFailureKind.INSUFFICIENT_LIQUIDITY),
    (re.compile(r"zero output", re.I), QuoteFailureKind.INSUFFICIENT_LIQUIDITY),
    (re.compile(r"\bIIA\b"), QuoteFailureKind.INSUFFICIENT_LIQUIDITY),
    (re.compile(r"revert", re.I), QuoteFailureKind.SIMULATION_REVERTED),
]


def _error_text(exc: BaseException) -> str:
    message = getattr(exc, "message", None) or str(exc)
    data = getattr(exc, "data", None)
    if isinstance(data, str) and data not in message:
        message = f"{message} {data}"
    return message


def classify_quote_error(exc: BaseException) -> QuoteFailureKind:
    """Map a failed quote simulation to a failure kind."""
    text = _error_text(exc)

    if isinstance(exc, ContractLogicError):
        data = exc.data
        if not data or data == "0x":
            reason = exc.message or ""
            if not reason.strip() or reason.strip() == "execution reverted":
                # Reverts without data come from pools with no price set.
                return QuoteFailureKind.POOL_UNINITIALIZED

    for pattern, kind in _QUOTE_PATTERNS:
        if pattern.search(text):
            return kind

    if isinstance(exc, ContractLogicError):
        return QuoteFailureKind.SIMULATION_REVERTED
    return QuoteFailureKind.UNKNOWN


def classify_execution_error(exc: BaseException, token: str | None = None) -> TradeError:
    """Map a gas-estimation or submission failure to a classified error."""
    if isinstance(exc, TradeError):
        return exc

    if isinstance(exc, TRANSPORT_ERRORS):
        return ConnectivityError(f"RPC node unreachable: {exc}", token=token)

    text = _error_text(exc)
    lowered = text.lower()

    if "insufficient funds" in lowered:
        return InsufficientGasFunds(
            "Not enough native balance to pay for gas", token=token
        )
    if re.search(r"\bSTF\b", text) or "exceeds allowance" in lowered:
        return InsufficientAllowance(
            "Token transfer failed, check balance and allowance", token=token
        )
    if "exceeds balance" in lowered:
        return InsufficientAllowance(
            "Token transfer failed, balance too low", token=token
        )
    if "too little received" in lowered:
        return ExecutionReverted(
            "Price moved beyond slippage tolerance", token=token
        )

    if isinstance(exc, ContractLogicError):
        return ExecutionReverted(f"Execution reverted: {text}", token=token)

    logger.debug("Unclassified execution error", error=text, error_type=type(exc).__name__)
    return ExecutionReverted(f"Execution failed: {text}", token=token)


def classify_read_error(exc: BaseException, token: str | None = None) -> TradeError:
    """Map a failed chain read (view call, metadata, log query) to a classified error."""
    if isinstance(exc, TradeError):
        return exc

    if isinstance(exc, TRANSPORT_ERRORS):
        return ConnectivityError(f"RPC node unreachable: {exc}", token=token)

    text = _error_text(exc)
    if isinstance(exc, (ContractLogicError, BadFunctionCallOutput)):
        return ContractReadFailed(f"Contract read failed: {text}", token=token)
    if isinstance(exc, Web3RPCError):
        # e.g. "header not found" from a lagging node behind a load balancer
        return ConnectivityError(f"RPC error: {text}", token=token)

    logger.debug("Unclassified read error", error=text, error_type=type(exc).__name__)
    return ContractReadFailed(f"Chain read failed: {text}", token=token)
