"""
Liquidity venue package.

The venue call surface the engine consumes, plus an in-memory reference venue.
"""

from yoga.venue.adapter import LiquidityVenue, SessionLocker
from yoga.venue.memory_venue import InMemoryVenue, PoolState

__all__ = [
    "InMemoryVenue",
    "LiquidityVenue",
    "PoolState",
    "SessionLocker",
]
