"""
State package.

Position registry, range store, conservation ledger and persistence.
"""

from yoga.state.liquidity_ledger import AuditFinding, LiquidityLedger, ReconcileResult, audit_allocations
from yoga.state.position_registry import Position, PositionRegistry
from yoga.state.range_store import RangeAllocation, RangeStore, allocation_key
from yoga.state.state_store import AtomicStateStore, StateStore

__all__ = [
    "AtomicStateStore",
    "AuditFinding",
    "LiquidityLedger",
    "Position",
    "PositionRegistry",
    "RangeAllocation",
    "RangeStore",
    "ReconcileResult",
    "StateStore",
    "allocation_key",
    "audit_allocations",
]
