"""
Ownership collaborator: who owns a position and who may act for them.

The engine only needs `owner_of`, `is_authorized` and `mint`; any identity or
token registry exposing those can be injected. InMemoryOwnershipRegistry is a
minimal token registry (single-token approvals plus operator approvals).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Protocol

from yoga.core.errors import NotFound, Unauthorized
from yoga.core.types import ZERO_ADDRESS

log = logging.getLogger("yoga")


class OwnershipRegistry(Protocol):
    def owner_of(self, position_id: int) -> str: ...

    def is_authorized(self, owner: str, caller: str, position_id: int) -> bool: ...

    def mint(self, to: str, position_id: int) -> None: ...


class InMemoryOwnershipRegistry:
    def __init__(self) -> None:
        self._owners: Dict[int, str] = {}
        self._token_approvals: Dict[int, str] = {}
        self._operator_approvals: Dict[str, Dict[str, bool]] = {}

    @staticmethod
    def _normalize(address: str) -> str:
        return address.lower()

    def owner_of(self, position_id: int) -> str:
        owner = self._owners.get(position_id)
        if owner is None:
            raise NotFound(f"token {position_id} does not exist", position_id=position_id)
        return owner

    def get_approved(self, position_id: int) -> str:
        self.owner_of(position_id)
        return self._token_approvals.get(position_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return self._operator_approvals.get(self._normalize(owner), {}).get(self._normalize(operator), False)

    def is_authorized(self, owner: str, caller: str, position_id: int) -> bool:
        caller = self._normalize(caller)
        if caller == ZERO_ADDRESS:
            return False
        approved = self._token_approvals.get(position_id)
        return (
            caller == self._normalize(owner)
            or (approved is not None and self._normalize(approved) == caller)
            or self.is_approved_for_all(owner, caller)
        )

    def tokens_of(self, owner: str) -> List[int]:
        owner = self._normalize(owner)
        return sorted(pid for pid, holder in self._owners.items() if self._normalize(holder) == owner)

    def mint(self, to: str, position_id: int) -> None:
        if self._normalize(to) == ZERO_ADDRESS:
            raise ValueError("mint to zero address")
        if position_id in self._owners:
            raise ValueError(f"token {position_id} already minted")
        self._owners[position_id] = to
        log.debug(f"ownership_mint token={position_id} to={to}")

    def approve(self, caller: str, to: str, position_id: int) -> None:
        owner = self.owner_of(position_id)
        if self._normalize(caller) != self._normalize(owner) and not self.is_approved_for_all(owner, caller):
            raise Unauthorized("approve caller is not owner nor operator", position_id=position_id, caller=caller)
        self._token_approvals[position_id] = to

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        if self._normalize(caller) == self._normalize(operator):
            raise ValueError("approve to caller")
        self._operator_approvals.setdefault(self._normalize(caller), {})[self._normalize(operator)] = approved

    def transfer_from(self, caller: str, sender: str, recipient: str, position_id: int) -> None:
        owner = self.owner_of(position_id)
        if self._normalize(owner) != self._normalize(sender):
            raise Unauthorized("transfer from incorrect owner", position_id=position_id)
        if not self.is_authorized(owner, caller, position_id):
            raise Unauthorized("caller is not owner nor approved", position_id=position_id, caller=caller)
        if self._normalize(recipient) == ZERO_ADDRESS:
            raise ValueError("transfer to zero address")
        self._token_approvals.pop(position_id, None)
        self._owners[position_id] = recipient
