"""
Tests for InMemoryVenue - sessions, liquidity accounting and rollback.
"""

import pytest

from conftest import ALICE, BOB, FUNDING, TOKEN0, TOKEN1, VENUE
from yoga.core import ticks
from yoga.core.errors import (
    CurrencyNotSettled,
    InsufficientBalance,
    InsufficientLiquidity,
    PoolNotInitialized,
    SessionAlreadyOpen,
    SessionNotOpen,
    VenueError,
)
from yoga.core.types import PoolKey, SessionPayload

LOCKER = "0x" + "77" * 20
SALT = "0xsalt"
L = 10 ** 21


class ScriptedLocker:
    """Locker that runs a test-supplied coroutine inside the session."""

    def __init__(self, script):
        self.address = LOCKER
        self.script = script
        self.calls = 0

    async def on_session(self, caller, payload):
        self.calls += 1
        assert caller == VENUE
        return await self.script()


def payload():
    return SessionPayload(position_id=1, targets=(), max_asset0_debt=None, max_asset1_debt=None, payer=ALICE)


async def deposit(venue, pool_key, lower=-60, upper=60, liquidity=L):
    d0, d1 = await venue.modify_liquidity(pool_key, lower, upper, liquidity, SALT)
    if d0:
        await venue.pull_settlement(TOKEN0, ALICE, -d0)
    if d1:
        await venue.pull_settlement(TOKEN1, ALICE, -d1)
    return d0, d1


class TestSessions:
    """Session lifecycle."""

    @pytest.mark.asyncio
    async def test_settled_session_commits(self, venue, pool_key):
        async def script():
            return await deposit(venue, pool_key)

        locker = ScriptedLocker(script)
        d0, d1 = await venue.request_atomic_session(locker, payload())

        assert locker.calls == 1
        assert d0 < 0 and d1 < 0
        assert venue.get_position_liquidity(pool_key, LOCKER, -60, 60, SALT) == L
        assert venue.active_liquidity(pool_key) == L
        assert venue.reserves(TOKEN0) == -d0
        assert venue.balance_of(TOKEN1, ALICE) == FUNDING + d1
        assert not venue.session_open

    @pytest.mark.asyncio
    async def test_unsettled_session_rolls_back(self, venue, pool_key):
        async def script():
            return await venue.modify_liquidity(pool_key, -60, 60, L, SALT)

        with pytest.raises(CurrencyNotSettled):
            await venue.request_atomic_session(ScriptedLocker(script), payload())

        assert venue.get_position_liquidity(pool_key, LOCKER, -60, 60, SALT) == 0
        assert venue.active_liquidity(pool_key) == 0
        assert not venue.session_open

    @pytest.mark.asyncio
    async def test_failure_inside_session_restores_balances(self, venue, pool_key):
        async def script():
            await deposit(venue, pool_key)
            raise RuntimeError("locker failed")

        with pytest.raises(RuntimeError):
            await venue.request_atomic_session(ScriptedLocker(script), payload())

        assert venue.balance_of(TOKEN0, ALICE) == FUNDING
        assert venue.balance_of(TOKEN1, ALICE) == FUNDING
        assert venue.reserves(TOKEN0) == 0

    @pytest.mark.asyncio
    async def test_second_session_rejected(self, venue, pool_key):
        async def inner():
            return None

        async def script():
            await venue.request_atomic_session(ScriptedLocker(inner), payload())

        with pytest.raises(SessionAlreadyOpen):
            await venue.request_atomic_session(ScriptedLocker(script), payload())
        assert not venue.session_open

    @pytest.mark.asyncio
    async def test_calls_require_session(self, venue, pool_key):
        with pytest.raises(SessionNotOpen):
            await venue.modify_liquidity(pool_key, -60, 60, L, SALT)
        with pytest.raises(SessionNotOpen):
            await venue.pull_settlement(TOKEN0, ALICE, 1)
        with pytest.raises(SessionNotOpen):
            await venue.push_settlement(TOKEN0, ALICE, 1)

    @pytest.mark.asyncio
    async def test_price_frozen_during_session(self, venue, pool_key):
        async def script():
            venue.set_tick(pool_key, 120)

        with pytest.raises(SessionAlreadyOpen):
            await venue.request_atomic_session(ScriptedLocker(script), payload())
        assert await venue.query_active_tick(pool_key) == 0


class TestLiquidity:
    """modify_liquidity accounting."""

    @pytest.mark.asyncio
    async def test_withdraw_returns_rounded_down_amounts(self, venue, pool_key):
        async def add():
            return await deposit(venue, pool_key)

        await venue.request_atomic_session(ScriptedLocker(add), payload())
        venue.set_tick(pool_key, 120)
        assert venue.active_liquidity(pool_key) == 0

        async def remove():
            d0, d1 = await venue.modify_liquidity(pool_key, -60, 60, -L, SALT)
            await venue.push_settlement(TOKEN1, BOB, d1)
            return d0, d1

        d0, d1 = await venue.request_atomic_session(ScriptedLocker(remove), payload())

        assert d0 == 0
        assert d1 == ticks.amounts_for_liquidity(120, -60, 60, L)[1]
        assert venue.balance_of(TOKEN1, BOB) == FUNDING + d1
        assert venue.get_position_liquidity(pool_key, LOCKER, -60, 60, SALT) == 0

    @pytest.mark.asyncio
    async def test_remove_more_than_held(self, venue, pool_key):
        async def script():
            await venue.modify_liquidity(pool_key, -60, 60, -1, SALT)

        with pytest.raises(InsufficientLiquidity):
            await venue.request_atomic_session(ScriptedLocker(script), payload())

    @pytest.mark.asyncio
    async def test_invalid_ticks(self, venue, pool_key):
        async def misaligned():
            await venue.modify_liquidity(pool_key, -61, 60, L, SALT)

        async def inverted():
            await venue.modify_liquidity(pool_key, 60, -60, L, SALT)

        for script in (misaligned, inverted):
            with pytest.raises(VenueError):
                await venue.request_atomic_session(ScriptedLocker(script), payload())

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, venue, pool_key):
        async def script():
            await venue.pull_settlement(TOKEN0, "0xnobody", 1)

        with pytest.raises(InsufficientBalance):
            await venue.request_atomic_session(ScriptedLocker(script), payload())

    @pytest.mark.asyncio
    async def test_unknown_pool(self, venue):
        other = PoolKey(currency0=TOKEN0, currency1=TOKEN1, fee=100, tick_spacing=1)
        with pytest.raises(PoolNotInitialized):
            await venue.query_active_tick(other)

    def test_initialize_twice(self, venue, pool_key):
        with pytest.raises(VenueError):
            venue.initialize_pool(pool_key)

    @pytest.mark.asyncio
    async def test_active_liquidity_follows_price(self, venue, pool_key):
        async def script():
            return await deposit(venue, pool_key, 60, 120)

        await venue.request_atomic_session(ScriptedLocker(script), payload())
        assert venue.active_liquidity(pool_key) == 0

        venue.set_tick(pool_key, 60)
        assert venue.active_liquidity(pool_key) == L

        venue.set_tick(pool_key, 120)
        assert venue.active_liquidity(pool_key) == 0
