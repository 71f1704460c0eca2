"""Tests for allowance strategies."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import ACCOUNT, ROUTER, USDC, FakeClock, FakeTokens

from trader.config.constants import CONTRACTS, MAX_UINT160, MAX_UINT256
from trader.core.errors import InsufficientAllowance
from trader.exec.allowance import DirectAllowance, Permit2Allowance

PERMIT2 = CONTRACTS["permit2"]


class TestDirectAllowance:
    @pytest.mark.asyncio
    async def test_sufficient_allowance_sends_nothing(self):
        tokens = FakeTokens()
        tokens.set_allowance(USDC, ACCOUNT, ROUTER, 500)

        assert await DirectAllowance(tokens).ensure(USDC, ACCOUNT, ROUTER, 500) == []
        assert tokens.approvals == []

    @pytest.mark.asyncio
    async def test_infinite_approval(self):
        tokens = FakeTokens()

        sent = await DirectAllowance(tokens).ensure(USDC, ACCOUNT, ROUTER, 500)

        assert sent == ["0xapprove1"]
        assert tokens.approvals == [(USDC, ROUTER, MAX_UINT256)]

    @pytest.mark.asyncio
    async def test_exact_approval(self):
        tokens = FakeTokens()

        await DirectAllowance(tokens, infinite=False).ensure(USDC, ACCOUNT, ROUTER, 500)

        assert tokens.approvals == [(USDC, ROUTER, 500)]
        assert await DirectAllowance(tokens).is_sufficient(USDC, ACCOUNT, ROUTER, 500)

    @pytest.mark.asyncio
    async def test_approval_that_does_not_land(self):
        tokens = FakeTokens()
        tokens.approve = AsyncMock(return_value="0xapprove")

        with pytest.raises(InsufficientAllowance):
            await DirectAllowance(tokens).ensure(USDC, ACCOUNT, ROUTER, 500)


class TestPermit2Allowance:
    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.checksum.side_effect = lambda address: address
        client.call = AsyncMock(return_value=(0, 0, 0))
        client.transact = AsyncMock(return_value="0xpermit")
        return client

    @pytest.mark.asyncio
    async def test_grants_token_and_relay_allowance(self, client):
        tokens = FakeTokens()
        clock = FakeClock()
        strategy = Permit2Allowance(client, tokens, PERMIT2, now_fn=clock)

        sent = await strategy.ensure(USDC, ACCOUNT, ROUTER, 500)

        # Both the token approval and the relay grant are reported.
        assert sent == ["0xapprove1", "0xpermit"]
        assert tokens.approvals == [(USDC, PERMIT2, MAX_UINT256)]
        permit2 = client.contract.return_value
        permit2.functions.approve.assert_called_once_with(
            USDC, ROUTER, MAX_UINT160, int(clock.now) + 30 * 24 * 3600
        )

    @pytest.mark.asyncio
    async def test_valid_relay_allowance_is_reused(self, client):
        tokens = FakeTokens()
        tokens.set_allowance(USDC, ACCOUNT, PERMIT2, MAX_UINT256)
        clock = FakeClock()
        client.call.return_value = (1_000, int(clock.now) + 60, 0)

        strategy = Permit2Allowance(client, tokens, PERMIT2, now_fn=clock)

        assert await strategy.ensure(USDC, ACCOUNT, ROUTER, 500) == []
        assert await strategy.is_sufficient(USDC, ACCOUNT, ROUTER, 500)
        client.transact.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_relay_allowance_is_renewed(self, client):
        tokens = FakeTokens()
        tokens.set_allowance(USDC, ACCOUNT, PERMIT2, MAX_UINT256)
        clock = FakeClock()
        client.call.return_value = (1_000, int(clock.now) - 1, 0)

        strategy = Permit2Allowance(client, tokens, PERMIT2, infinite=False, now_fn=clock)

        assert not await strategy.is_sufficient(USDC, ACCOUNT, ROUTER, 500)
        assert await strategy.ensure(USDC, ACCOUNT, ROUTER, 500) == ["0xpermit"]
        args = client.contract.return_value.functions.approve.call_args.args
        assert args[2] == 500
