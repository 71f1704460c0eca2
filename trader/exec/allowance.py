"""Token allowance strategies: direct ERC-20 approval or a Permit2 relay."""

import time
from collections.abc import Callable

import structlog

from ..chain.abis import PERMIT2_ABI
from ..chain.client import ChainClient
from ..config.constants import MAX_UINT160, MAX_UINT256
from ..core.errors import InsufficientAllowance
from ..core.interfaces import AllowanceStrategy, TokenClient

logger = structlog.get_logger(__name__)


class DirectAllowance(AllowanceStrategy):
    """Approve the spender on the token contract itself.

    Re-approving the same or a larger amount is safe, so this is idempotent.
    """

    def __init__(self, tokens: TokenClient, infinite: bool = True) -> None:
        self.tokens = tokens
        self.infinite = infinite

    async def is_sufficient(
        self, token: str, owner: str, spender: str, amount: int
    ) -> bool:
        return await self.tokens.allowance(token, owner, spender) >= amount

    async def ensure(
        self, token: str, owner: str, spender: str, amount: int
    ) -> list[str]:
        current = await self.tokens.allowance(token, owner, spender)
        if current >= amount:
            logger.debug("Allowance sufficient", token=token, allowance=current)
            return []

        approve_amount = MAX_UINT256 if self.infinite else amount
        logger.info(
            "Approving token spending",
            token=token,
            spender=spender,
            current=current,
            required=amount,
            infinite=self.infinite,
        )
        tx_hash = await self.tokens.approve(token, spender, approve_amount)

        granted = await self.tokens.allowance(token, owner, spender)
        if granted < amount:
            raise InsufficientAllowance(
                f"Allowance {granted} still below {amount} after approval", token=token
            )
        logger.info("Token approved", token=token, tx_hash=tx_hash)
        return [tx_hash]


class Permit2Allowance(AllowanceStrategy):
    """Grant allowance through the Permit2 relay contract.

    The token approves Permit2 once; Permit2 then holds an expiring
    allowance per spender.
    """

    def __init__(
        self,
        client: ChainClient,
        tokens: TokenClient,
        permit2_address: str,
        infinite: bool = True,
        expiration_seconds: int = 30 * 24 * 3600,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        self.client = client
        self.permit2_address = client.checksum(permit2_address)
        self.permit2 = client.contract(permit2_address, PERMIT2_ABI)
        self.infinite = infinite
        self.expiration_seconds = expiration_seconds
        self._now_fn = now_fn or time.time
        self._token_approval = DirectAllowance(tokens, infinite=True)

    async def _relay_allowance(
        self, token: str, owner: str, spender: str
    ) -> tuple[int, int]:
        fn = self.permit2.functions.allowance(
            self.client.checksum(owner),
            self.client.checksum(token),
            self.client.checksum(spender),
        )
        amount, expiration, _nonce = await self.client.call(fn, "permit2.allowance")
        return amount, expiration

    async def is_sufficient(
        self, token: str, owner: str, spender: str, amount: int
    ) -> bool:
        if not await self._token_approval.is_sufficient(
            token, owner, self.permit2_address, amount
        ):
            return False
        relayed, expiration = await self._relay_allowance(token, owner, spender)
        return relayed >= amount and expiration > self._now_fn()

    async def ensure(
        self, token: str, owner: str, spender: str, amount: int
    ) -> list[str]:
        sent = await self._token_approval.ensure(
            token, owner, self.permit2_address, amount
        )

        relayed, expiration = await self._relay_allowance(token, owner, spender)
        now = self._now_fn()
        if relayed >= amount and expiration > now:
            return sent

        approve_amount = MAX_UINT160 if self.infinite else amount
        new_expiration = int(now) + self.expiration_seconds
        logger.info(
            "Granting Permit2 allowance",
            token=token,
            spender=spender,
            amount=approve_amount,
            expiration=new_expiration,
        )
        fn = self.permit2.functions.approve(
            self.client.checksum(token),
            self.client.checksum(spender),
            approve_amount,
            new_expiration,
        )
        sent.append(await self.client.transact(fn))
        return sent
