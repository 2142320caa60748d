"""
Call surface of the external liquidity venue.

The engine depends only on these contracts. Any pool service that can open an
atomic session, call back into the engine, and honour the calls below within
that session can be plugged in. InMemoryVenue is the reference implementation
used for simulation and tests.
"""

from __future__ import annotations

from typing import Protocol, Tuple

from yoga.core.types import NetDelta, PoolKey, SessionPayload


class SessionLocker(Protocol):
    """Party that opens a session and receives the venue's callback."""

    address: str

    async def on_session(self, caller: str, payload: SessionPayload) -> NetDelta: ...


class LiquidityVenue(Protocol):
    address: str

    async def request_atomic_session(self, locker: SessionLocker, payload: SessionPayload) -> NetDelta:
        """
        Open a session, call `locker.on_session(self.address, payload)` and
        return its result. If the callback raises, or leaves any currency delta
        unsettled, every change made during the session is discarded.
        """
        ...

    async def modify_liquidity(
        self,
        pool_key: PoolKey,
        lower_tick: int,
        upper_tick: int,
        liquidity_delta: int,
        allocation_key: str,
    ) -> Tuple[int, int]:
        """Add (delta > 0) or remove (delta < 0) liquidity; returns the caller's (d0, d1)."""
        ...

    async def query_active_tick(self, pool_key: PoolKey) -> int: ...

    async def pull_settlement(self, asset: str, payer: str, amount: int) -> None: ...

    async def push_settlement(self, asset: str, recipient: str, amount: int) -> None: ...
