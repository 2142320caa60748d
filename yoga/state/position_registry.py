"""
PositionRegistry: position id -> pool key + allocation nonce.

Ids start at 1 and are handed out in order. The pool key is fixed at creation.
The nonce only ever grows; it is independent of how many ranges a position
currently holds, so a removed range's allocation key is never minted again.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from yoga.core.errors import NotFound
from yoga.core.types import PoolKey


@dataclass
class Position:
    id: int
    pool_key: PoolKey
    next_nonce: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "pool_key": self.pool_key.to_dict(), "next_nonce": self.next_nonce}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            id=int(data["id"]),
            pool_key=PoolKey.from_dict(data["pool_key"]),
            next_nonce=int(data["next_nonce"]),
        )


@dataclass
class RegistrySnapshot:
    next_id: int
    positions: Dict[int, Position]


class PositionRegistry:
    """Owns Position records. Only the reshape engine mutates it."""

    def __init__(self) -> None:
        self._positions: Dict[int, Position] = {}
        self._next_id: int = 1

    def create(self, pool_key: PoolKey) -> int:
        position_id = self._next_id
        self._positions[position_id] = Position(id=position_id, pool_key=pool_key)
        self._next_id += 1
        return position_id

    def get(self, position_id: int) -> Position:
        position = self._positions.get(position_id)
        if position is None:
            raise NotFound(f"position {position_id} does not exist", position_id=position_id)
        return position

    def exists(self, position_id: int) -> bool:
        return position_id in self._positions

    def consume_nonce(self, position_id: int) -> int:
        """Return the current nonce and advance it."""
        position = self.get(position_id)
        nonce = position.next_nonce
        position.next_nonce += 1
        return nonce

    def ids(self) -> List[int]:
        return sorted(self._positions)

    @property
    def next_id(self) -> int:
        return self._next_id

    # ---- session boundary -------------------------------------------------

    def snapshot(self) -> RegistrySnapshot:
        return RegistrySnapshot(next_id=self._next_id, positions=copy.deepcopy(self._positions))

    def restore(self, snap: RegistrySnapshot) -> None:
        self._next_id = snap.next_id
        self._positions = copy.deepcopy(snap.positions)

    # ---- persistence -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_id": self._next_id,
            "positions": [p.to_dict() for p in self._positions.values()],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PositionRegistry":
        registry = cls()
        if not data:
            return registry
        for raw in data.get("positions", []):
            position = Position.from_dict(raw)
            registry._positions[position.id] = position
        registry._next_id = max(int(data.get("next_id", 1)), max(registry._positions, default=0) + 1)
        return registry
