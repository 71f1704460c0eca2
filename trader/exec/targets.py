"""Swap targets: the contracts a trade request is submitted to."""

import time
from collections.abc import Callable

import structlog
from eth_abi import encode

from ..chain.abis import AI_TRADER_ABI, SWAP_ROUTER_ABI, UNIVERSAL_ROUTER_ABI
from ..chain.client import ChainClient
from ..core.interfaces import SwapTarget
from ..core.types import TradeRequest
from ..quoting.path import encode_single_hop

logger = structlog.get_logger(__name__)

# Universal Router command byte for an exact-input V3 swap
V3_SWAP_EXACT_IN = 0x00


class RouterSwapTarget(SwapTarget):
    """DEX swap router; enforces the quoted fee tier and minimum output."""

    def __init__(self, client: ChainClient, router_address: str) -> None:
        self.client = client
        self.router = client.contract(router_address, SWAP_ROUTER_ABI)
        self._spender = client.checksum(router_address)

    @property
    def spender(self) -> str:
        return self._spender

    def _swap_call(self, request: TradeRequest):
        params = (
            self.client.checksum(request.token_in),
            self.client.checksum(request.token_out),
            int(request.fee_tier),
            self.client.checksum(request.recipient),
            request.amount_in,
            request.min_amount_out,
            0,
        )
        return self.router.functions.exactInputSingle(params)

    async def estimate_gas(self, request: TradeRequest, sender: str) -> int:
        return await self.client.estimate_gas(self._swap_call(request), sender)

    async def submit(self, request: TradeRequest, gas_limit: int) -> str:
        return await self.client.send(self._swap_call(request), gas_limit=gas_limit)


class UniversalRouterSwapTarget(SwapTarget):
    """Universal Router exact-input V3 swap over the quoted pool.

    The router pulls the input token from the sender through Permit2, so it
    is used with the Permit2 allowance strategy.
    """

    def __init__(
        self,
        client: ChainClient,
        router_address: str,
        deadline_seconds: int = 300,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        self.client = client
        self.router = client.contract(router_address, UNIVERSAL_ROUTER_ABI)
        self._spender = client.checksum(router_address)
        self.deadline_seconds = deadline_seconds
        self._now_fn = now_fn or time.time

    @property
    def spender(self) -> str:
        return self._spender

    def _swap_input(self, request: TradeRequest) -> bytes:
        path = encode_single_hop(
            request.token_in, int(request.fee_tier), request.token_out
        )
        # payerIsUser: the router transfers amount_in from the sender via Permit2
        return encode(
            ["address", "uint256", "uint256", "bytes", "bool"],
            [
                self.client.checksum(request.recipient),
                request.amount_in,
                request.min_amount_out,
                path,
                True,
            ],
        )

    def _swap_call(self, request: TradeRequest):
        deadline = int(self._now_fn()) + self.deadline_seconds
        return self.router.functions.execute(
            bytes([V3_SWAP_EXACT_IN]), [self._swap_input(request)], deadline
        )

    async def estimate_gas(self, request: TradeRequest, sender: str) -> int:
        return await self.client.estimate_gas(self._swap_call(request), sender)

    async def submit(self, request: TradeRequest, gas_limit: int) -> str:
        return await self.client.send(self._swap_call(request), gas_limit=gas_limit)

class TraderContractSwapTarget(SwapTarget):
    """Trade-execution contract; it selects the pool itself.

    The contract takes no minimum output, so the slippage floor is only
    checked against the quote off chain.
    """

    def __init__(self, client: ChainClient, trader_address: str) -> None:
        self.client = client
        self.contract = client.contract(trader_address, AI_TRADER_ABI)
        self._spender = client.checksum(trader_address)

    @property
    def spender(self) -> str:
        return self._spender

    def _trade_call(self, request: TradeRequest):
        return self.contract.functions.executeManualTrade(
            self.client.checksum(request.token_in),
            self.client.checksum(request.token_out),
            request.amount_in,
            self.client.checksum(request.recipient),
        )

    async def estimate_gas(self, request: TradeRequest, sender: str) -> int:
        return await self.client.estimate_gas(self._trade_call(request), sender)

    async def submit(self, request: TradeRequest, gas_limit: int) -> str:
        logger.warning(
            "Trader contract does not enforce minimum output",
            min_amount_out=request.min_amount_out,
        )
        return await self.client.send(self._trade_call(request), gas_limit=gas_limit)
