"""
InMemoryVenue: reference concentrated-liquidity venue.

Models the parts of a pool service the engine relies on:
- per-pool active tick and range positions keyed by
  (owner, lower, upper, allocation key)
- a token ledger (holder balances, venue reserves)
- atomic sessions: one open at a time, callback into the locker, per-currency
  delta accounting that must net to zero before the session closes, and full
  rollback of pools and balances when anything inside the session fails

Swaps are not modelled; `set_tick()` moves the price between sessions.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

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
from yoga.core.types import NetDelta, PoolKey, SessionPayload
from yoga.venue.adapter import SessionLocker

log = logging.getLogger("yoga")

PositionKey = Tuple[str, int, int, str]


@dataclass
class PoolState:
    key: PoolKey
    tick: int
    # Liquidity of ranges containing the current tick
    liquidity: int = 0
    positions: Dict[PositionKey, int] = field(default_factory=dict)


class InMemoryVenue:
    def __init__(self, address: str) -> None:
        self.address = address
        self._pools: Dict[str, PoolState] = {}
        self._balances: Dict[str, Dict[str, int]] = {}
        self._locker: Optional[str] = None
        self._currency_deltas: Dict[str, int] = {}
        self.call_log: List[Tuple[Any, ...]] = []

    # -------------------------------------------------------------------------
    # Setup / views
    # -------------------------------------------------------------------------

    def initialize_pool(self, pool_key: PoolKey, tick: int = 0) -> str:
        if pool_key.pool_id in self._pools:
            raise VenueError("pool already initialized", pool_id=pool_key.pool_id)
        if not ticks.in_bounds(tick):
            raise VenueError(f"tick {tick} out of bounds", pool_id=pool_key.pool_id)
        self._pools[pool_key.pool_id] = PoolState(key=pool_key, tick=tick)
        return pool_key.pool_id

    def set_tick(self, pool_key: PoolKey, tick: int) -> None:
        """Move the pool price (stands in for swaps happening elsewhere)."""
        if self._locker is not None:
            raise SessionAlreadyOpen("cannot move price during a session")
        if not ticks.in_bounds(tick):
            raise VenueError(f"tick {tick} out of bounds", pool_id=pool_key.pool_id)
        pool = self._pool(pool_key)
        pool.tick = tick
        pool.liquidity = sum(
            liq for (_, lower, upper, _), liq in pool.positions.items()
            if ticks.is_active(lower, upper, tick)
        )

    def mint_tokens(self, asset: str, holder: str, amount: int) -> None:
        """Credit a holder (test/simulation faucet)."""
        book = self._balances.setdefault(asset, {})
        book[holder] = book.get(holder, 0) + amount

    def balance_of(self, asset: str, holder: str) -> int:
        return self._balances.get(asset, {}).get(holder, 0)

    def reserves(self, asset: str) -> int:
        return self.balance_of(asset, self.address)

    def get_position_liquidity(
        self, pool_key: PoolKey, owner: str, lower_tick: int, upper_tick: int, salt: str
    ) -> int:
        return self._pool(pool_key).positions.get((owner, lower_tick, upper_tick, salt), 0)

    def active_liquidity(self, pool_key: PoolKey) -> int:
        return self._pool(pool_key).liquidity

    @property
    def session_open(self) -> bool:
        return self._locker is not None

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def request_atomic_session(self, locker: SessionLocker, payload: SessionPayload) -> NetDelta:
        if self._locker is not None:
            raise SessionAlreadyOpen(f"session already open for {self._locker}")

        checkpoint = (copy.deepcopy(self._pools), copy.deepcopy(self._balances))
        self._locker = locker.address
        self._currency_deltas = {}
        try:
            result = await locker.on_session(self.address, payload)
            unsettled = {asset: d for asset, d in self._currency_deltas.items() if d != 0}
            if unsettled:
                raise CurrencyNotSettled(f"unsettled currency deltas: {unsettled}")
        except Exception:
            self._pools, self._balances = checkpoint
            log.debug(f"venue_session_rolled_back locker={locker.address}")
            raise
        finally:
            self._locker = None
            self._currency_deltas = {}
        return result

    def _require_session(self) -> str:
        if self._locker is None:
            raise SessionNotOpen("no session open")
        return self._locker

    def _pool(self, pool_key: PoolKey) -> PoolState:
        pool = self._pools.get(pool_key.pool_id)
        if pool is None:
            raise PoolNotInitialized("pool not initialized", pool_id=pool_key.pool_id)
        return pool

    def _account(self, asset: str, delta: int) -> None:
        self._currency_deltas[asset] = self._currency_deltas.get(asset, 0) + delta

    def _transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        book = self._balances.setdefault(asset, {})
        available = book.get(sender, 0)
        if available < amount:
            raise InsufficientBalance(f"{sender} holds {available} {asset}, needs {amount}")
        book[sender] = available - amount
        book[recipient] = book.get(recipient, 0) + amount

    # -------------------------------------------------------------------------
    # In-session calls
    # -------------------------------------------------------------------------

    async def query_active_tick(self, pool_key: PoolKey) -> int:
        return self._pool(pool_key).tick

    async def modify_liquidity(
        self,
        pool_key: PoolKey,
        lower_tick: int,
        upper_tick: int,
        liquidity_delta: int,
        allocation_key: str,
    ) -> Tuple[int, int]:
        owner = self._require_session()
        pool = self._pool(pool_key)
        if lower_tick >= upper_tick or not (ticks.in_bounds(lower_tick) and ticks.in_bounds(upper_tick)):
            raise VenueError(f"invalid ticks [{lower_tick}, {upper_tick})", pool_id=pool_key.pool_id)
        if not (ticks.is_aligned(lower_tick, pool_key.tick_spacing)
                and ticks.is_aligned(upper_tick, pool_key.tick_spacing)):
            raise VenueError("ticks not aligned to tick spacing", pool_id=pool_key.pool_id)

        key = (owner, lower_tick, upper_tick, allocation_key)
        held = pool.positions.get(key, 0)
        if held + liquidity_delta < 0:
            raise InsufficientLiquidity(
                f"position holds {held}, cannot remove {-liquidity_delta}", pool_id=pool_key.pool_id
            )

        adding = liquidity_delta > 0
        amount0, amount1 = ticks.amounts_for_liquidity(
            pool.tick, lower_tick, upper_tick, abs(liquidity_delta), round_up=adding
        )
        if adding:
            delta0, delta1 = -amount0, -amount1
        else:
            delta0, delta1 = amount0, amount1

        if held + liquidity_delta == 0:
            pool.positions.pop(key, None)
        else:
            pool.positions[key] = held + liquidity_delta
        if ticks.is_active(lower_tick, upper_tick, pool.tick):
            pool.liquidity += liquidity_delta

        self._account(pool_key.currency0, delta0)
        self._account(pool_key.currency1, delta1)
        self.call_log.append(("modify_liquidity", lower_tick, upper_tick, liquidity_delta, allocation_key))
        return delta0, delta1

    async def pull_settlement(self, asset: str, payer: str, amount: int) -> None:
        self._require_session()
        self._transfer(asset, payer, self.address, amount)
        self._account(asset, amount)
        self.call_log.append(("pull_settlement", asset, payer, amount))

    async def push_settlement(self, asset: str, recipient: str, amount: int) -> None:
        self._require_session()
        self._transfer(asset, self.address, recipient, amount)
        self._account(asset, -amount)
        self.call_log.append(("push_settlement", asset, recipient, amount))
