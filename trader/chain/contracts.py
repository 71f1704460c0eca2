"""Web3 adapters for the token, DEX, trader, oracle and portfolio contracts."""

import structlog

from ..config.constants import known_token
from ..core.interfaces import (
    PoolFactory,
    PortfolioContract,
    PredictionOracle,
    QuoteService,
    TokenClient,
    TradeContract,
)
from ..core.types import AutoTradingConfig, PortfolioInfo, Prediction, TokenRef
from .abis import (
    AI_ORACLE_ABI,
    AI_TRADER_ABI,
    ERC20_ABI,
    FACTORY_ABI,
    PORTFOLIO_MANAGER_ABI,
    QUOTER_ABI,
)
from .client import ChainClient

logger = structlog.get_logger(__name__)


def _first(result) -> int:
    """Quoter functions return tuples; the output amount comes first."""
    if isinstance(result, (list, tuple)):
        return int(result[0])
    return int(result)


class Web3TokenClient(TokenClient):
    """ERC-20 operations through a chain client."""

    def __init__(self, client: ChainClient) -> None:
        self.client = client
        self._metadata: dict[str, TokenRef] = {}

    def _token(self, token: str):
        return self.client.contract(token, ERC20_ABI)

    async def balance_of(self, token: str, owner: str) -> int:
        fn = self._token(token).functions.balanceOf(self.client.checksum(owner))
        return await self.client.call(fn, "balanceOf")

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        fn = self._token(token).functions.allowance(
            self.client.checksum(owner), self.client.checksum(spender)
        )
        return await self.client.call(fn, "allowance")

    async def approve(self, token: str, spender: str, amount: int) -> str:
        fn = self._token(token).functions.approve(self.client.checksum(spender), amount)
        return await self.client.transact(fn)

    async def metadata(self, token: str) -> TokenRef:
        key = token.lower()
        if key in self._metadata:
            return self._metadata[key]

        ref = known_token(token)
        if ref is None:
            contract = self._token(token)
            decimals = await self.client.call(contract.functions.decimals(), "decimals")
            symbol = await self.client.call(contract.functions.symbol(), "symbol")
            name = await self.client.call(contract.functions.name(), "name")
            ref = TokenRef(
                address=self.client.checksum(token),
                symbol=symbol,
                decimals=decimals,
                name=name,
            )
            logger.info(
                "Resolved token metadata",
                token=ref.address,
                symbol=ref.symbol,
                decimals=ref.decimals,
            )

        self._metadata[key] = ref
        return ref


class Web3PoolFactory(PoolFactory):
    """DEX factory pool lookups."""

    def __init__(self, client: ChainClient, address: str) -> None:
        self.client = client
        self.factory = client.contract(address, FACTORY_ABI)

    async def get_pool(self, token_a: str, token_b: str, fee: int) -> str:
        fn = self.factory.functions.getPool(
            self.client.checksum(token_a), self.client.checksum(token_b), fee
        )
        return await self.client.call(fn, "getPool")


class Web3QuoteService(QuoteService):
    """Quoter contract simulations via eth_call."""

    def __init__(self, client: ChainClient, address: str) -> None:
        self.client = client
        self.quoter = client.contract(address, QUOTER_ABI)

    async def quote_exact_input_single(
        self, token_in: str, token_out: str, fee: int, amount_in: int
    ) -> int:
        fn = self.quoter.functions.quoteExactInputSingle(
            self.client.checksum(token_in),
            self.client.checksum(token_out),
            fee,
            amount_in,
            0,
        )
        return _first(await self.client.call(fn, "quoteExactInputSingle"))

    async def quote_exact_input(self, path: bytes, amount_in: int) -> int:
        fn = self.quoter.functions.quoteExactInput(path, amount_in)
        return _first(await self.client.call(fn, "quoteExactInput"))


class Web3TradeContract(TradeContract):
    """Read side of the trade-execution contract."""

    def __init__(self, client: ChainClient, address: str) -> None:
        self.client = client
        self.contract = client.contract(address, AI_TRADER_ABI)

    async def is_whitelisted(self, token: str) -> bool:
        fn = self.contract.functions.whitelistedTokens(self.client.checksum(token))
        return bool(await self.client.call(fn, "whitelistedTokens"))

    async def min_trade_amount(self) -> int:
        return await self.client.call(
            self.contract.functions.MIN_TRADE_AMOUNT(), "MIN_TRADE_AMOUNT"
        )

    async def find_best_pool(self, token_in: str, token_out: str) -> tuple[str, int]:
        fn = self.contract.functions.findBestPool(
            self.client.checksum(token_in), self.client.checksum(token_out)
        )
        pool, fee = await self.client.call(fn, "findBestPool")
        return pool, int(fee)


class Web3PredictionOracle(PredictionOracle):
    """AI oracle reads."""

    def __init__(self, client: ChainClient, address: str) -> None:
        self.client = client
        self.contract = client.contract(address, AI_ORACLE_ABI)

    async def get_prediction(self, token: str) -> Prediction:
        fn = self.contract.functions.getPrediction(self.client.checksum(token))
        confidence, direction, timestamp, is_honeypot, risk_score = (
            await self.client.call(fn, "getPrediction")
        )
        return Prediction(
            confidence=confidence,
            price_direction=direction,
            timestamp=timestamp,
            is_honeypot=is_honeypot,
            risk_score=risk_score,
        )


class Web3PortfolioContract(PortfolioContract):
    """Portfolio manager (custody) contract."""

    def __init__(self, client: ChainClient, address: str) -> None:
        self.client = client
        self._address = client.checksum(address)
        self.contract = client.contract(address, PORTFOLIO_MANAGER_ABI)

    @property
    def address(self) -> str:
        return self._address

    async def create_portfolio(self, risk_level: int) -> str:
        return await self.client.transact(
            self.contract.functions.createPortfolio(risk_level)
        )

    async def deposit(self, token: str, amount: int) -> str:
        return await self.client.transact(
            self.contract.functions.deposit(self.client.checksum(token), amount)
        )

    async def withdraw(self, token: str, amount: int) -> str:
        return await self.client.transact(
            self.contract.functions.withdraw(self.client.checksum(token), amount)
        )

    async def user_portfolio(self, user: str) -> PortfolioInfo:
        fn = self.contract.functions.userPortfolios(self.client.checksum(user))
        total_value, risk_level, is_active = await self.client.call(
            fn, "userPortfolios"
        )
        return PortfolioInfo(
            total_value=total_value, risk_level=risk_level, is_active=is_active
        )

    async def token_balance(self, user: str, token: str) -> int:
        fn = self.contract.functions.getTokenBalance(
            self.client.checksum(user), self.client.checksum(token)
        )
        return await self.client.call(fn, "getTokenBalance")

    async def update_auto_trading(self, config: AutoTradingConfig) -> str:
        return await self.client.transact(
            self.contract.functions.updateAutoTrading(
                config.enabled,
                config.min_confidence,
                config.max_risk_score,
                config.trade_amount,
            )
        )

    async def auto_trading_settings(self, user: str) -> AutoTradingConfig:
        fn = self.contract.functions.getAutoTradingSettings(self.client.checksum(user))
        enabled, min_confidence, max_risk, amount = await self.client.call(
            fn, "getAutoTradingSettings"
        )
        return AutoTradingConfig(
            enabled=enabled,
            min_confidence=min_confidence,
            max_risk_score=max_risk,
            trade_amount=amount,
        )

    async def is_token_approved(self, token: str) -> bool:
        fn = self.contract.functions.approvedTokens(self.client.checksum(token))
        return bool(await self.client.call(fn, "approvedTokens"))

    async def add_token(self, token: str) -> str:
        return await self.client.transact(
            self.contract.functions.addToken(self.client.checksum(token))
        )

    async def owner(self) -> str:
        return await self.client.call(self.contract.functions.owner(), "owner")
