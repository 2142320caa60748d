"""
RangeStore: position id -> current range allocations ("limbs").

Reads return tuples so clients get a read-only projection. The mutators are
called only by the reshape engine while a session is open.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple


def allocation_key(position_id: int, nonce: int) -> str:
    """Venue-side salt for one range, derived from (position id, nonce)."""
    raw = position_id.to_bytes(32, "big") + nonce.to_bytes(32, "big")
    return "0x" + hashlib.sha3_256(raw).hexdigest()


@dataclass(frozen=True)
class RangeAllocation:
    lower_tick: int
    upper_tick: int
    liquidity: int
    allocation_key: str

    @property
    def tick_liquidity(self) -> int:
        """Width-weighted liquidity, the quantity the conservation ledger tracks."""
        return (self.upper_tick - self.lower_tick) * self.liquidity

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.lower_tick, self.upper_tick, self.liquidity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lower_tick": self.lower_tick,
            "upper_tick": self.upper_tick,
            "liquidity": str(self.liquidity),
            "allocation_key": self.allocation_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RangeAllocation":
        return cls(
            lower_tick=int(data["lower_tick"]),
            upper_tick=int(data["upper_tick"]),
            liquidity=int(data["liquidity"]),
            allocation_key=data["allocation_key"],
        )


class RangeStore:
    def __init__(self) -> None:
        self._allocations: Dict[int, List[RangeAllocation]] = {}

    def get_allocations(self, position_id: int) -> Tuple[RangeAllocation, ...]:
        return tuple(self._allocations.get(position_id, ()))

    def count(self, position_id: int) -> int:
        return len(self._allocations.get(position_id, ()))

    def replace(self, position_id: int, allocations: Sequence[RangeAllocation]) -> None:
        """Rebuild-on-write: the kept set becomes the stored set."""
        self._allocations[position_id] = list(allocations)

    # ---- session boundary -------------------------------------------------

    def snapshot(self) -> Dict[int, Tuple[RangeAllocation, ...]]:
        # Allocations are frozen, copying the containers is enough
        return {pid: tuple(limbs) for pid, limbs in self._allocations.items()}

    def restore(self, snap: Dict[int, Tuple[RangeAllocation, ...]]) -> None:
        self._allocations = {pid: list(limbs) for pid, limbs in snap.items()}

    # ---- persistence -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            str(pid): [limb.to_dict() for limb in limbs]
            for pid, limbs in self._allocations.items()
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RangeStore":
        store = cls()
        for pid, limbs in (data or {}).items():
            store._allocations[int(pid)] = [RangeAllocation.from_dict(raw) for raw in limbs]
        return store
