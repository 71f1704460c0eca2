"""Classified failures raised by the trade engine."""

from enum import Enum


class ErrorKind(str, Enum):
    """Top-level failure categories."""

    CONNECTIVITY = "connectivity"
    VALIDATION = "validation"
    LIQUIDITY = "liquidity"
    BALANCE = "balance"
    EXECUTION = "execution"


class RejectReason(str, Enum):
    """Validator reject reasons."""

    TRADING_DISABLED = "TradingDisabled"
    INVALID_AMOUNT = "InvalidAmount"
    TOKEN_NOT_WHITELISTED = "TokenNotWhitelisted"
    COOLDOWN_ACTIVE = "CooldownActive"
    PREDICTION_UNAVAILABLE = "PredictionUnavailable"
    PREDICTION_STALE = "PredictionStale"
    CONFIDENCE_TOO_LOW = "ConfidenceTooLow"
    RISK_TOO_HIGH = "RiskTooHigh"
    HONEYPOT = "HoneypotDetected"
    BELOW_MIN_TRADE = "BelowMinimumTrade"
    QUOTE_MISMATCH = "QuoteMismatch"


class QuoteFailureKind(str, Enum):
    """Why a single quote attempt failed."""

    POOL_UNINITIALIZED = "PoolUninitialized"
    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"
    SIMULATION_REVERTED = "SimulationReverted"
    UNKNOWN = "Unknown"

    @property
    def hint(self) -> str:
        """Remediation hint shown to the user."""
        return _QUOTE_HINTS[self]


_QUOTE_HINTS = {
    QuoteFailureKind.POOL_UNINITIALIZED: "Pool is not ready yet, try again later",
    QuoteFailureKind.INSUFFICIENT_LIQUIDITY: "Try a smaller amount",
    QuoteFailureKind.SIMULATION_REVERTED: "Try a different fee tier or a smaller amount",
    QuoteFailureKind.UNKNOWN: "Check pool liquidity and try again",
}


class TradeError(Exception):
    """Base class for classified trade failures."""

    kind: ErrorKind = ErrorKind.EXECUTION
    code: str = "TradeError"

    def __init__(self, message: str, token: str | None = None) -> None:
        self.message = message
        self.token = token
        super().__init__(message)


class ConnectivityError(TradeError):
    """Node or wallet unreachable."""

    kind = ErrorKind.CONNECTIVITY
    code = "Connectivity"


class WrongNetworkError(ConnectivityError):
    """Provider is connected to an unexpected chain."""

    code = "WrongNetwork"

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Connected to chain {actual}, expected chain {expected}")


class ValidationRejected(TradeError):
    """Business rule rejected the trade."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        reason: RejectReason,
        message: str,
        token: str | None = None,
        cooldown_remaining: float | None = None,
    ) -> None:
        self.reason = reason
        self.code = reason.value
        self.cooldown_remaining = cooldown_remaining
        super().__init__(message, token=token)


class NoPoolFound(TradeError):
    """No pool deployed for the pair at any supported fee tier."""

    kind = ErrorKind.LIQUIDITY
    code = "NoPoolFound"

    def __init__(self, token_in: str, token_out: str) -> None:
        self.token_in = token_in
        self.token_out = token_out
        super().__init__(f"No pool found for {token_in} -> {token_out}")


class QuoteFailed(TradeError):
    """A single quote attempt failed."""

    kind = ErrorKind.LIQUIDITY

    def __init__(self, failure: QuoteFailureKind, message: str) -> None:
        self.failure = failure
        self.code = failure.value
        super().__init__(message)

    @property
    def hint(self) -> str:
        return self.failure.hint


class NoQuoteAvailable(TradeError):
    """Every candidate pool failed to quote; a hard stop for execution."""

    kind = ErrorKind.LIQUIDITY
    code = "NoQuoteAvailable"

    def __init__(self, failures: list[tuple[int, QuoteFailed]]) -> None:
        self.failures = failures
        detail = ", ".join(f"fee {fee}: {err.code}" for fee, err in failures)
        super().__init__(f"No quote available ({detail or 'no candidates'})")

    @property
    def hint(self) -> str:
        if not self.failures:
            return QuoteFailureKind.UNKNOWN.hint
        return self.failures[0][1].hint


class InsufficientBalance(TradeError):
    """Account holds less of the input token than the trade needs."""

    kind = ErrorKind.BALANCE
    code = "InsufficientBalance"

    def __init__(self, token: str, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient balance: have {balance}, need {required}", token=token
        )


class InsufficientAllowance(TradeError):
    """Allowance still too low after the approval step."""

    kind = ErrorKind.BALANCE
    code = "InsufficientAllowance"


class InsufficientGasFunds(TradeError):
    """Not enough native currency to pay for gas."""

    kind = ErrorKind.BALANCE
    code = "InsufficientGasFunds"


class ExecutionReverted(TradeError):
    """Gas estimation or submission reverted before inclusion."""

    kind = ErrorKind.EXECUTION
    code = "ExecutionReverted"


class ContractReadFailed(TradeError):
    """A contract read reverted or returned undecodable data."""

    kind = ErrorKind.EXECUTION
    code = "ContractReadFailed"


class TransactionFailed(TradeError):
    """Transaction was mined but the receipt reports failure."""

    kind = ErrorKind.EXECUTION
    code = "TransactionFailed"

    def __init__(self, tx_hash: str, token: str | None = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} mined with failure status", token)


class TransactionNotConfirmed(TradeError):
    """Inclusion of a sent transaction could not be confirmed.

    Either the confirmation timeout elapsed or the node stopped answering
    while waiting. The transaction may still land.
    """

    kind = ErrorKind.EXECUTION
    code = "TransactionNotConfirmed"

    def __init__(
        self,
        tx_hash: str,
        timeout: float,
        token: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        self.reason = reason
        if reason:
            message = f"Transaction {tx_hash} unconfirmed, receipt lookup failed: {reason}"
        else:
            message = f"Transaction {tx_hash} not confirmed within {timeout:.0f}s"
        super().__init__(message, token)
