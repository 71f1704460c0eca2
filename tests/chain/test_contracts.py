"""Tests for the contract adapters' result decoding."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from trader.chain.client import ChainClient
from trader.chain.contracts import (
    Web3PortfolioContract,
    Web3PredictionOracle,
    Web3QuoteService,
    Web3TokenClient,
    Web3TradeContract,
)
from trader.config.constants import TOKENS

ADDRESS = "0x" + "cc" * 20
TOKEN = "0x" + "11" * 20


def make_client(*results) -> ChainClient:
    client = ChainClient("http://node", 8453, w3=MagicMock())
    client.call = AsyncMock(side_effect=list(results))
    return client


class TestTokenClient:
    @pytest.mark.asyncio
    async def test_known_token_needs_no_calls(self):
        client = make_client()
        tokens = Web3TokenClient(client)

        ref = await tokens.metadata(TOKENS["USDC"].address.lower())

        assert ref.decimals == 6
        client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metadata_is_cached(self):
        client = make_client(18, "TKN", "Test Token")
        tokens = Web3TokenClient(client)

        first = await tokens.metadata(TOKEN)
        second = await tokens.metadata(TOKEN.upper().replace("0X", "0x"))

        assert first is second
        assert (first.symbol, first.decimals) == ("TKN", 18)
        assert client.call.await_count == 3


class TestDecoding:
    @pytest.mark.asyncio
    async def test_quoter_returns_first_element(self):
        quoter = Web3QuoteService(make_client([40_000, 123, 1, 90_000]), ADDRESS)

        assert await quoter.quote_exact_input_single(TOKEN, ADDRESS, 500, 100) == 40_000

    @pytest.mark.asyncio
    async def test_prediction_fields(self):
        oracle = Web3PredictionOracle(make_client((85, -1, 1_700_000_000, False, 20)), ADDRESS)

        prediction = await oracle.get_prediction(TOKEN)

        assert prediction.confidence == 85
        assert prediction.direction_label == "Sell"
        assert prediction.timestamp == 1_700_000_000

    @pytest.mark.asyncio
    async def test_best_pool(self):
        contract = Web3TradeContract(make_client((ADDRESS, 3000)), ADDRESS)

        assert await contract.find_best_pool(TOKEN, ADDRESS) == (ADDRESS, 3000)

    @pytest.mark.asyncio
    async def test_auto_trading_settings(self):
        portfolio = Web3PortfolioContract(make_client((True, 70, 40, 5_000_000)), ADDRESS)

        config = await portfolio.auto_trading_settings(TOKEN)

        assert config.enabled is True
        assert config.max_risk_score == 40
        assert config.trade_amount == 5_000_000
