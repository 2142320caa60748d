"""
Liquidity Ledger: independent tally of width-weighted liquidity per position.

For every committed operation the engine records each withdrawn and deployed
range here. The ledger keeps its own running total of
sum((upper - lower) * liquidity) per position and reconciles it against what
the RangeStore actually holds. A correct engine never drifts; any drift is a
bookkeeping defect and is logged at CRITICAL level.

audit_allocations() reports structural findings on an allocation set that the
reshape algorithm does not enforce (overlapping ranges, adjacent ranges with
identical liquidity that could be merged, zero-liquidity outermost ranges).
Findings are informational.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from yoga.state.range_store import RangeAllocation

log = logging.getLogger("yoga")


@dataclass
class ReconcileResult:
    """Result of comparing the ledger against stored allocations."""
    position_id: int
    ledger_total: int
    stored_total: int
    timestamp_ms: int

    @property
    def drift(self) -> int:
        return self.stored_total - self.ledger_total

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0


@dataclass
class AuditFinding:
    kind: str  # "overlap" | "mergeable" | "terminus"
    position_id: int
    detail: Dict[str, Any] = field(default_factory=dict)


class LiquidityLedger:
    """
    Running width-weighted liquidity totals per position.

    Usage:
        ledger.record_deploy(pid, limb)
        ledger.record_withdraw(pid, limb)
        result = ledger.reconcile(pid, store.get_allocations(pid))
    """

    def __init__(
        self,
        log_event: Optional[Callable[..., None]] = None,
        on_drift: Optional[Callable[[ReconcileResult], None]] = None,
    ) -> None:
        self._log = log_event or self._default_log
        self._on_drift = on_drift
        self._totals: Dict[int, int] = {}
        self._stats = {
            "deploys": 0,
            "withdrawals": 0,
            "reconciles": 0,
            "drift_alerts": 0,
        }

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.debug(f'{{"event":"{event}",{",".join(f"{k}:{v}" for k,v in kwargs.items())}}}')

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record_deploy(self, position_id: int, limb: RangeAllocation) -> None:
        self._totals[position_id] = self._totals.get(position_id, 0) + limb.tick_liquidity
        self._stats["deploys"] += 1

    def record_withdraw(self, position_id: int, limb: RangeAllocation) -> None:
        self._totals[position_id] = self._totals.get(position_id, 0) - limb.tick_liquidity
        self._stats["withdrawals"] += 1

    def total(self, position_id: int) -> int:
        return self._totals.get(position_id, 0)

    def seed(self, position_id: int, allocations: Sequence[RangeAllocation]) -> None:
        """Initialize a position's total from persisted allocations."""
        self._totals[position_id] = sum(limb.tick_liquidity for limb in allocations)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def reconcile(self, position_id: int, allocations: Sequence[RangeAllocation]) -> ReconcileResult:
        result = ReconcileResult(
            position_id=position_id,
            ledger_total=self.total(position_id),
            stored_total=sum(limb.tick_liquidity for limb in allocations),
            timestamp_ms=int(time.time() * 1000),
        )
        self._stats["reconciles"] += 1

        if not result.is_consistent:
            self._stats["drift_alerts"] += 1
            log.critical(
                f"liquidity_ledger_drift position={position_id} "
                f"ledger={result.ledger_total} stored={result.stored_total}"
            )
            self._log(
                "liquidity_ledger_drift",
                position_id=position_id,
                ledger=result.ledger_total,
                stored=result.stored_total,
                drift=result.drift,
            )
            if self._on_drift:
                self._on_drift(result)
        return result

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "positions": len(self._totals)}


def audit_allocations(position_id: int, allocations: Sequence[RangeAllocation]) -> List[AuditFinding]:
    """
    Report structural findings on one position's allocation set, in tick order.
    """
    findings: List[AuditFinding] = []
    limbs = sorted(allocations, key=lambda a: (a.lower_tick, a.upper_tick))
    if not limbs:
        return findings

    for prev, cur in zip(limbs, limbs[1:]):
        if cur.lower_tick < prev.upper_tick:
            findings.append(AuditFinding(
                kind="overlap",
                position_id=position_id,
                detail={"first": prev.as_tuple(), "second": cur.as_tuple()},
            ))
        elif cur.lower_tick == prev.upper_tick and cur.liquidity == prev.liquidity:
            findings.append(AuditFinding(
                kind="mergeable",
                position_id=position_id,
                detail={"first": prev.as_tuple(), "second": cur.as_tuple()},
            ))

    for end, limb in (("lower", limbs[0]), ("upper", limbs[-1])):
        if limb.liquidity == 0:
            findings.append(AuditFinding(
                kind="terminus",
                position_id=position_id,
                detail={"end": end, "range": limb.as_tuple()},
            ))
    return findings
