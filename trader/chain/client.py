"""Async JSON-RPC client for EVM chains."""

import asyncio
import time
from collections.abc import Awaitable
from typing import Any, TypeVar

import aiohttp
import structlog
from eth_account.signers.local import LocalAccount
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3RPCError

from ..core.errors import (
    ConnectivityError,
    TransactionFailed,
    TransactionNotConfirmed,
    WrongNetworkError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Node-side throttling; unreachable nodes are surfaced immediately instead.
RATE_LIMIT_CODES = {429, -32005}

# Raised by the HTTP provider when the node drops or refuses the connection.
TRANSPORT_ERRORS = (ConnectionError, TimeoutError, OSError, aiohttp.ClientError)


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception is a transient rate-limit response."""
    if isinstance(exception, Web3RPCError):
        response = exception.rpc_response or {}
        error = response.get("error") or {}
        return isinstance(error, dict) and error.get("code") in RATE_LIMIT_CODES
    return False


class ChainClient:
    """Thin wrapper over AsyncWeb3 with bounded reads and signed sends."""

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        signer: LocalAccount | None = None,
        timeout: float = 15.0,
        confirmation_timeout: float = 180.0,
        w3: AsyncWeb3 | None = None,
        watch_address: str | None = None,
    ) -> None:
        """Initialize the chain client.

        Args:
            rpc_url: JSON-RPC endpoint URL
            chain_id: Chain id the client must be connected to
            signer: Local account used to sign transactions
            timeout: Upper bound for a single read call in seconds
            confirmation_timeout: Default wait for transaction inclusion
            w3: Optional preconfigured AsyncWeb3 instance
            watch_address: Account to read balances for when no signer is set
        """
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.signer = signer
        self.timeout = timeout
        self.confirmation_timeout = confirmation_timeout
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.watch_address = (
            AsyncWeb3.to_checksum_address(watch_address) if watch_address else None
        )
        logger.info(
            "Chain client initialized",
            rpc_url=rpc_url,
            chain_id=chain_id,
            signer=signer.address if signer else None,
            watch_address=self.watch_address,
        )

    @property
    def account(self) -> str:
        """Address trades are made for: the signer, else the watched account."""
        if self.signer is not None:
            return self.signer.address
        if self.watch_address is not None:
            return self.watch_address
        raise ConnectivityError(
            "No signer or watch address configured for this session"
        )

    def checksum(self, address: str) -> str:
        return AsyncWeb3.to_checksum_address(address)

    def contract(self, address: str, abi: list[dict[str, Any]]):
        """Bind a contract at an address."""
        return self.w3.eth.contract(address=self.checksum(address), abi=abi)

    async def _bounded(self, awaitable: Awaitable[T], what: str) -> T:
        """Await a node request, translating transport failures."""
        start_time = time.time()
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except TimeoutError as e:
            logger.error("RPC request timed out", what=what, timeout=self.timeout)
            raise ConnectivityError(
                f"RPC request {what} timed out after {self.timeout:.0f}s"
            ) from e
        except TRANSPORT_ERRORS as e:
            logger.error(
                "RPC node unreachable",
                what=what,
                duration=time.time() - start_time,
                error=str(e),
            )
            raise ConnectivityError(f"RPC node unreachable: {e}") from e

    async def ensure_chain(self) -> None:
        """Fail unless the node serves the expected chain."""
        actual = await self._bounded(self.w3.eth.chain_id, "eth_chainId")
        if actual != self.chain_id:
            logger.error("Wrong network", expected=self.chain_id, actual=actual)
            raise WrongNetworkError(self.chain_id, actual)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    async def call(self, fn, what: str = "eth_call") -> Any:
        """Run a read-only contract call."""
        return await self._bounded(fn.call(), what)

    async def estimate_gas(self, fn, sender: str) -> int:
        """Simulate a state-changing call and return its gas estimate."""
        return await self._bounded(
            fn.estimate_gas({"from": self.checksum(sender)}), "eth_estimateGas"
        )

    async def native_balance(self, address: str) -> int:
        return await self._bounded(
            self.w3.eth.get_balance(self.checksum(address)), "eth_getBalance"
        )

    async def gas_price(self) -> int:
        return await self._bounded(self.w3.eth.gas_price, "eth_gasPrice")

    async def block_number(self) -> int:
        return await self._bounded(self.w3.eth.block_number, "eth_blockNumber")

    async def block_timestamp(self, block_number: int) -> int:
        block = await self._bounded(
            self.w3.eth.get_block(block_number), "eth_getBlockByNumber"
        )
        return block["timestamp"]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    async def get_logs(
        self, address: str, topics: list[Any], from_block: int, to_block: int
    ) -> list[dict[str, Any]]:
        """Fetch the logs of one contract over an inclusive block range."""
        logs = await self._bounded(
            self.w3.eth.get_logs(
                {
                    "address": self.checksum(address),
                    "topics": topics,
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            ),
            "eth_getLogs",
        )
        return [dict(log) for log in logs]

    async def send(self, fn, gas_limit: int | None = None) -> str:
        """Sign and broadcast a contract transaction. Never retried."""
        if self.signer is None:
            raise ConnectivityError("No signer configured, cannot send transactions")
        sender = self.signer.address
        nonce = await self._bounded(
            self.w3.eth.get_transaction_count(sender, "pending"),
            "eth_getTransactionCount",
        )
        params: dict[str, Any] = {
            "from": sender,
            "nonce": nonce,
            "chainId": self.chain_id,
        }
        if gas_limit is not None:
            params["gas"] = gas_limit

        tx = await self._bounded(fn.build_transaction(params), "build_transaction")
        signed = self.signer.sign_transaction(tx)
        tx_hash = await self._bounded(
            self.w3.eth.send_raw_transaction(signed.raw_transaction),
            "eth_sendRawTransaction",
        )
        tx_hex = self.w3.to_hex(tx_hash)
        logger.info("Transaction submitted", tx_hash=tx_hex, nonce=nonce, gas=gas_limit)
        return tx_hex

    async def wait_for_receipt(
        self, tx_hash: str, timeout: float | None = None
    ) -> dict[str, Any]:
        """Wait for inclusion of a transaction."""
        timeout = timeout or self.confirmation_timeout
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout
            )
        except TimeExhausted as e:
            logger.error("Transaction not confirmed", tx_hash=tx_hash, timeout=timeout)
            raise TransactionNotConfirmed(tx_hash, timeout) from e
        except (*TRANSPORT_ERRORS, Web3RPCError) as e:
            # The transaction was broadcast; only its outcome is unknown.
            logger.error(
                "Receipt lookup failed",
                tx_hash=tx_hash,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransactionNotConfirmed(
                tx_hash, timeout, reason=str(e) or type(e).__name__
            ) from e

        logger.info(
            "Transaction included",
            tx_hash=tx_hash,
            status=receipt["status"],
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
        )
        return dict(receipt)

    async def transact(self, fn, gas_limit: int | None = None) -> str:
        """Send a transaction and wait for a successful receipt."""
        tx_hash = await self.send(fn, gas_limit=gas_limit)
        receipt = await self.wait_for_receipt(tx_hash)
        if receipt.get("status") != 1:
            raise TransactionFailed(tx_hash)
        return tx_hash
