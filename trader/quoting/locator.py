"""Pool discovery across fee tiers."""

import asyncio
from collections.abc import Sequence

import structlog
from web3.exceptions import ContractLogicError

from ..config.constants import DEFAULT_FEE_TIERS, ZERO_ADDRESS
from ..core.errors import NoPoolFound
from ..core.interfaces import PoolFactory, TokenClient
from ..core.types import FeeTier, PoolCandidate

logger = structlog.get_logger(__name__)


class PoolLocator:
    """Finds deployed pools for a pair and ranks them by liquidity."""

    def __init__(
        self,
        factory: PoolFactory,
        tokens: TokenClient,
        fee_tiers: Sequence[FeeTier] = DEFAULT_FEE_TIERS,
    ) -> None:
        """Initialize pool locator.

        Args:
            factory: DEX factory used for pool lookups
            tokens: Token client used to read pool balances
            fee_tiers: Fee tiers in preference order; earlier tiers win ties
        """
        self.factory = factory
        self.tokens = tokens
        self.fee_tiers = tuple(FeeTier(t) for t in fee_tiers)

    async def _lookup(
        self, token_in: str, token_out: str, fee: FeeTier
    ) -> PoolCandidate | None:
        try:
            pool = await self.factory.get_pool(token_in, token_out, int(fee))
        except ContractLogicError as e:
            logger.warning("Pool lookup reverted", fee=int(fee), error=str(e))
            return None

        if not pool or pool.lower() == ZERO_ADDRESS:
            logger.debug("No pool at fee tier", fee=int(fee))
            return None

        liquidity = await self.tokens.balance_of(token_in, pool)
        logger.debug(
            "Found pool", fee=int(fee), pool=pool, observed_liquidity=liquidity
        )
        return PoolCandidate(
            pool_address=pool, fee_tier=fee, observed_liquidity=liquidity
        )

    async def locate(self, token_in: str, token_out: str) -> list[PoolCandidate]:
        """Return pools for the pair sorted by descending liquidity.

        Raises:
            NoPoolFound: If no tier has a deployed pool
        """
        lookups = await asyncio.gather(
            *(self._lookup(token_in, token_out, fee) for fee in self.fee_tiers)
        )
        candidates = [c for c in lookups if c is not None]

        if not candidates:
            logger.warning(
                "No pool found", token_in=token_in, token_out=token_out,
                fee_tiers=[int(f) for f in self.fee_tiers],
            )
            raise NoPoolFound(token_in, token_out)

        preference = {fee: i for i, fee in enumerate(self.fee_tiers)}
        candidates.sort(
            key=lambda c: (-c.observed_liquidity, preference[c.fee_tier])
        )

        logger.info(
            "Located pools",
            token_in=token_in,
            token_out=token_out,
            ranked=[(int(c.fee_tier), c.observed_liquidity) for c in candidates],
        )
        return candidates
