"""Protocols for the external collaborators the engine talks to."""

from typing import Any, Protocol, runtime_checkable

from .types import AutoTradingConfig, PortfolioInfo, Prediction, TokenRef, TradeRequest


class TokenClient(Protocol):
    """ERC-20 token reads and approvals."""

    async def balance_of(self, token: str, owner: str) -> int:
        """Token balance of owner in base units."""
        ...

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        """Allowance granted by owner to spender."""
        ...

    async def approve(self, token: str, spender: str, amount: int) -> str:
        """Submit an approval and return its transaction hash."""
        ...

    async def metadata(self, token: str) -> TokenRef:
        """Resolve symbol, decimals and name."""
        ...


class PoolFactory(Protocol):
    """DEX factory lookups."""

    async def get_pool(self, token_a: str, token_b: str, fee: int) -> str:
        """Pool address for a pair and fee tier, or the zero address."""
        ...


class QuoteService(Protocol):
    """Off-chain simulated DEX quotes."""

    async def quote_exact_input_single(
        self, token_in: str, token_out: str, fee: int, amount_in: int
    ) -> int:
        """Output amount for a single-hop swap."""
        ...

    async def quote_exact_input(self, path: bytes, amount_in: int) -> int:
        """Output amount for an encoded swap path."""
        ...


class TradeContract(Protocol):
    """Trade-execution contract reads."""

    async def is_whitelisted(self, token: str) -> bool:
        """Whether the token may be traded."""
        ...

    async def min_trade_amount(self) -> int:
        """Minimum input amount accepted by the contract."""
        ...

    async def find_best_pool(self, token_in: str, token_out: str) -> tuple[str, int]:
        """Pool and fee the contract itself would route through."""
        ...


@runtime_checkable
class SwapTarget(Protocol):
    """Contract that performs the swap and pulls the input tokens."""

    @property
    def spender(self) -> str:
        """Address that needs the token allowance."""
        ...

    async def estimate_gas(self, request: TradeRequest, sender: str) -> int:
        """Simulate the swap call and return the gas estimate."""
        ...

    async def submit(self, request: TradeRequest, gas_limit: int) -> str:
        """Send the swap transaction and return its hash."""
        ...


class TransactionTracker(Protocol):
    """Account and transaction lifecycle operations."""

    @property
    def account(self) -> str:
        """Address of the acting account."""
        ...

    async def native_balance(self, address: str) -> int:
        """Native currency balance in wei."""
        ...

    async def gas_price(self) -> int:
        """Current gas price in wei."""
        ...

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict[str, Any]:
        """Wait for inclusion and return the receipt."""
        ...


class AllowanceStrategy(Protocol):
    """Makes sure a spender may pull at least an amount of a token."""

    async def is_sufficient(
        self, token: str, owner: str, spender: str, amount: int
    ) -> bool:
        """Read-only check that the current allowance covers amount."""
        ...

    async def ensure(
        self, token: str, owner: str, spender: str, amount: int
    ) -> list[str]:
        """Grant allowance if needed; return the hashes of every approval sent."""
        ...


class PredictionOracle(Protocol):
    """AI oracle contract."""

    async def get_prediction(self, token: str) -> Prediction:
        """Latest prediction for a token."""
        ...


class PortfolioContract(Protocol):
    """Portfolio/custody contract."""

    async def create_portfolio(self, risk_level: int) -> str: ...

    async def deposit(self, token: str, amount: int) -> str: ...

    async def withdraw(self, token: str, amount: int) -> str: ...

    async def user_portfolio(self, user: str) -> PortfolioInfo: ...

    async def token_balance(self, user: str, token: str) -> int: ...

    async def update_auto_trading(self, config: AutoTradingConfig) -> str: ...

    async def auto_trading_settings(self, user: str) -> AutoTradingConfig: ...

    async def is_token_approved(self, token: str) -> bool: ...

    async def add_token(self, token: str) -> str: ...

    async def owner(self) -> str: ...

    @property
    def address(self) -> str: ...


class LogReader(Protocol):
    """Block and event log reads."""

    async def block_number(self) -> int: ...

    async def block_timestamp(self, block_number: int) -> int: ...

    async def get_logs(
        self, address: str, topics: list[Any], from_block: int, to_block: int
    ) -> list[dict[str, Any]]:
        """Logs of one contract over an inclusive block range."""
        ...


class AlertSink(Protocol):
    """Alert sink protocol."""

    async def push(self, message: str) -> None:
        """Push alert message."""
        ...
