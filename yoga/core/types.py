"""
Value types shared by the engine, the settlement coordinator and the venue.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

ZERO_ADDRESS = "0x" + "0" * 40


@dataclass(frozen=True)
class PoolKey:
    """Identifies one two-asset pool at the venue."""
    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str = ZERO_ADDRESS

    def __post_init__(self) -> None:
        if self.currency0.lower() >= self.currency1.lower():
            raise ValueError("PoolKey currencies must be sorted: currency0 < currency1")
        if self.tick_spacing <= 0:
            raise ValueError("PoolKey tick_spacing must be > 0")
        if self.fee < 0:
            raise ValueError("PoolKey fee must be >= 0")

    @property
    def pool_id(self) -> str:
        encoded = f"{self.currency0.lower()}:{self.currency1.lower()}:{self.fee}:{self.tick_spacing}:{self.hooks.lower()}"
        return "0x" + hashlib.sha3_256(encoded.encode()).hexdigest()

    @property
    def assets(self) -> Tuple[str, str]:
        return (self.currency0, self.currency1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency0": self.currency0,
            "currency1": self.currency1,
            "fee": self.fee,
            "tick_spacing": self.tick_spacing,
            "hooks": self.hooks,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolKey":
        return cls(
            currency0=data["currency0"],
            currency1=data["currency1"],
            fee=int(data["fee"]),
            tick_spacing=int(data["tick_spacing"]),
            hooks=data.get("hooks", ZERO_ADDRESS),
        )


@dataclass(frozen=True)
class TargetRange:
    """Client-supplied range to deploy ("move"). Never persisted."""
    lower_tick: int
    upper_tick: int
    liquidity: int


@dataclass
class NetDelta:
    """
    Signed per-asset amounts accumulated during one session.

    Negative = owed to the venue, positive = owed to the position owner.
    """
    asset0: int = 0
    asset1: int = 0

    def add(self, amount0: int, amount1: int) -> None:
        self.asset0 += amount0
        self.asset1 += amount1

    def within(self, tolerance: int) -> bool:
        return abs(self.asset0) <= tolerance and abs(self.asset1) <= tolerance

    def as_tuple(self) -> Tuple[int, int]:
        return (self.asset0, self.asset1)

    def to_dict(self) -> Dict[str, int]:
        return {"asset0": self.asset0, "asset1": self.asset1}


@dataclass(frozen=True)
class SessionPayload:
    """
    Everything the session handler needs; exists for one atomic session only.

    position_id is None for a create: the id is allocated inside the session.
    """
    position_id: Optional[int]
    targets: Tuple[TargetRange, ...]
    max_asset0_debt: Optional[int]
    max_asset1_debt: Optional[int]
    payer: str
    pool_key: Optional[PoolKey] = None
    owner: Optional[str] = None
