"""Quote resolution with direct and path-encoded fallbacks."""

import structlog

from ..core.errors import (
    ConnectivityError,
    NoQuoteAvailable,
    QuoteFailed,
    QuoteFailureKind,
)
from ..core.interfaces import QuoteService
from ..core.types import PoolCandidate, Quote
from .cache import QuoteCache
from .classify import classify_quote_error
from .path import encode_single_hop

logger = structlog.get_logger(__name__)


class QuoteResolver:
    """Quotes an exact input amount against ranked pool candidates.

    Each candidate is tried with a direct single-hop quote first and a
    path-encoded quote second. A zero output is a failure, never a quote.
    The operation is read-only and safe to retry.
    """

    def __init__(self, quoter: QuoteService, cache: QuoteCache | None = None) -> None:
        self.quoter = quoter
        self.cache = cache

    async def quote(
        self,
        candidates: list[PoolCandidate],
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> Quote:
        """Return the first successful quote in candidate order.

        Raises:
            NoQuoteAvailable: If every candidate failed both methods
            ConnectivityError: If the node is unreachable
        """
        failures: list[tuple[int, QuoteFailed]] = []

        for candidate in candidates:
            try:
                quote = await self.quote_candidate(
                    candidate, token_in, token_out, amount_in
                )
            except QuoteFailed as e:
                failures.append((int(candidate.fee_tier), e))
                logger.warning(
                    "Candidate failed to quote",
                    fee=int(candidate.fee_tier),
                    pool=candidate.pool_address,
                    failure=e.code,
                    hint=e.hint,
                )
                continue

            if self.cache is not None:
                self.cache.put(quote)
            return quote

        logger.error(
            "No quote available",
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            failures=[(fee, err.code) for fee, err in failures],
        )
        raise NoQuoteAvailable(failures)

    async def quote_candidate(
        self,
        candidate: PoolCandidate,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> Quote:
        """Quote one candidate, falling back to the encoded path once."""
        fee = int(candidate.fee_tier)

        try:
            amount_out = await self.quoter.quote_exact_input_single(
                token_in, token_out, fee, amount_in
            )
            direct_failure = self._zero_output(amount_out)
        except ConnectivityError:
            raise
        except Exception as e:
            direct_failure = QuoteFailed(classify_quote_error(e), str(e))

        if direct_failure is None:
            return self._build(candidate, token_in, token_out, amount_in, amount_out, "direct")

        logger.info(
            "Direct quote failed, trying encoded path",
            fee=fee,
            failure=direct_failure.code,
            error=direct_failure.message,
        )

        path = encode_single_hop(token_in, fee, token_out)
        try:
            amount_out = await self.quoter.quote_exact_input(path, amount_in)
            path_failure = self._zero_output(amount_out)
        except ConnectivityError:
            raise
        except Exception as e:
            path_failure = QuoteFailed(classify_quote_error(e), str(e))

        if path_failure is None:
            return self._build(candidate, token_in, token_out, amount_in, amount_out, "path")

        logger.info(
            "Path quote failed",
            fee=fee,
            failure=path_failure.code,
            error=path_failure.message,
        )
        # Prefer the more specific of the two classifications.
        if path_failure.failure is QuoteFailureKind.UNKNOWN:
            raise direct_failure
        raise path_failure

    @staticmethod
    def _zero_output(amount_out: int) -> QuoteFailed | None:
        if amount_out <= 0:
            return QuoteFailed(
                QuoteFailureKind.INSUFFICIENT_LIQUIDITY,
                "Quote returned zero output amount",
            )
        return None

    @staticmethod
    def _build(
        candidate: PoolCandidate,
        token_in: str,
        token_out: str,
        amount_in: int,
        amount_out: int,
        via: str,
    ) -> Quote:
        quote = Quote(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=amount_out,
            fee_tier=candidate.fee_tier,
            pool_address=candidate.pool_address,
            obtained_via=via,
        )
        logger.info(
            "Quote obtained",
            fee=int(candidate.fee_tier),
            amount_in=amount_in,
            amount_out=amount_out,
            obtained_via=via,
        )
        return quote
