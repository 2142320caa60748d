"""
Tests for the state layer.

Tests cover:
- PositionRegistry ids, nonces, snapshots, persistence
- RangeStore read-only projection, removal, snapshots
- LiquidityLedger reconciliation and allocation audit
- StateStore / AtomicStateStore file persistence
"""

import json
import logging

import pytest

from yoga.core.errors import NotFound
from yoga.state.liquidity_ledger import LiquidityLedger, audit_allocations
from yoga.state.position_registry import PositionRegistry
from yoga.state.range_store import RangeAllocation, RangeStore, allocation_key
from yoga.state.state_store import STATE_VERSION, AtomicStateStore, StateStore


def limb(lower, upper, liquidity, nonce=0, pid=1):
    return RangeAllocation(lower, upper, liquidity, allocation_key(pid, nonce))


# =============================================================================
# PositionRegistry
# =============================================================================

class TestPositionRegistry:
    """Ids, nonces and snapshots."""

    def test_ids_start_at_one(self, pool_key):
        registry = PositionRegistry()
        assert registry.create(pool_key) == 1
        assert registry.create(pool_key) == 2
        assert registry.ids() == [1, 2]
        assert registry.next_id == 3

    def test_get_unknown(self):
        with pytest.raises(NotFound):
            PositionRegistry().get(1)

    def test_consume_nonce(self, pool_key):
        registry = PositionRegistry()
        pid = registry.create(pool_key)
        assert [registry.consume_nonce(pid) for _ in range(3)] == [0, 1, 2]
        assert registry.get(pid).next_nonce == 3

    def test_snapshot_restore(self, pool_key):
        registry = PositionRegistry()
        pid = registry.create(pool_key)
        snap = registry.snapshot()

        registry.consume_nonce(pid)
        registry.create(pool_key)
        registry.restore(snap)

        assert registry.ids() == [pid]
        assert registry.get(pid).next_nonce == 0
        assert registry.next_id == 2

    def test_snapshot_isolated_from_later_changes(self, pool_key):
        """Test restoring twice from the same snapshot yields the same state."""
        registry = PositionRegistry()
        pid = registry.create(pool_key)
        snap = registry.snapshot()

        registry.restore(snap)
        registry.consume_nonce(pid)
        registry.restore(snap)

        assert registry.get(pid).next_nonce == 0

    def test_round_trip(self, pool_key):
        registry = PositionRegistry()
        pid = registry.create(pool_key)
        registry.consume_nonce(pid)

        loaded = PositionRegistry.from_dict(json.loads(json.dumps(registry.to_dict())))

        assert loaded.get(pid).pool_key == pool_key
        assert loaded.get(pid).next_nonce == 1
        assert loaded.next_id == 2

    def test_from_empty(self):
        assert PositionRegistry.from_dict(None).ids() == []


# =============================================================================
# RangeStore
# =============================================================================

class TestRangeStore:
    """Allocation storage."""

    def test_allocation_key_unique_per_nonce(self):
        assert allocation_key(1, 0) != allocation_key(1, 1)
        assert allocation_key(1, 0) != allocation_key(2, 0)
        assert allocation_key(1, 0) == allocation_key(1, 0)

    def test_get_returns_tuple(self):
        store = RangeStore()
        store.replace(1, [limb(-60, 60, 10)])
        allocations = store.get_allocations(1)
        assert isinstance(allocations, tuple)
        assert store.get_allocations(2) == ()

    def test_replace(self):
        store = RangeStore()
        store.replace(1, [limb(-60, 60, 10)])
        store.replace(1, [limb(0, 60, 5, nonce=1)])
        assert [a.as_tuple() for a in store.get_allocations(1)] == [(0, 60, 5)]

    def test_replace_keeps_order_and_copies(self):
        """Test the stored set follows the given order and ignores later edits to the input."""
        store = RangeStore()
        kept = [limb(60, 120, 3, 2), limb(-60, 0, 1, 0), limb(0, 60, 2, 1)]
        store.replace(1, kept)
        kept.pop()

        assert [a.lower_tick for a in store.get_allocations(1)] == [60, -60, 0]
        assert store.count(1) == 3

    def test_snapshot_restore(self):
        store = RangeStore()
        store.replace(1, [limb(-60, 60, 10)])
        snap = store.snapshot()

        store.replace(1, [])
        store.replace(2, [limb(0, 60, 1, pid=2)])
        store.restore(snap)

        assert store.count(1) == 1
        assert store.count(2) == 0

    def test_round_trip_keeps_big_liquidity(self):
        store = RangeStore()
        store.replace(1, [limb(-60, 60, 10 ** 30)])
        loaded = RangeStore.from_dict(json.loads(json.dumps(store.to_dict())))
        assert loaded.get_allocations(1) == store.get_allocations(1)


# =============================================================================
# LiquidityLedger
# =============================================================================

class TestLiquidityLedger:
    """Conservation tally and reconciliation."""

    def test_tally_and_reconcile(self):
        ledger = LiquidityLedger()
        a, b = limb(-60, 60, 10), limb(0, 60, 5, 1)
        ledger.record_deploy(1, a)
        ledger.record_deploy(1, b)
        ledger.record_withdraw(1, a)

        result = ledger.reconcile(1, [b])

        assert ledger.total(1) == 60 * 5
        assert result.is_consistent
        assert ledger.get_stats()["deploys"] == 2

    def test_drift_reported(self, caplog):
        drifts = []
        ledger = LiquidityLedger(on_drift=drifts.append)
        ledger.record_deploy(1, limb(-60, 60, 10))

        with caplog.at_level(logging.CRITICAL, logger="yoga"):
            result = ledger.reconcile(1, [])

        assert result.drift == -1200
        assert not result.is_consistent
        assert drifts == [result]
        assert ledger.get_stats()["drift_alerts"] == 1

    def test_seed(self):
        ledger = LiquidityLedger()
        ledger.seed(3, [limb(-60, 60, 2), limb(60, 120, 1)])
        assert ledger.total(3) == 240 + 60


class TestAuditAllocations:
    """Structural findings."""

    def test_clean_set(self):
        assert audit_allocations(1, [limb(-120, -60, 5), limb(0, 60, 5, 1)]) == []

    def test_overlap(self):
        findings = audit_allocations(1, [limb(-60, 60, 5), limb(0, 120, 7, 1)])
        assert [f.kind for f in findings] == ["overlap"]

    def test_mergeable(self):
        findings = audit_allocations(1, [limb(0, 60, 5, 1), limb(-60, 0, 5)])
        assert [f.kind for f in findings] == ["mergeable"]
        assert findings[0].detail["first"] == (-60, 0, 5)

    def test_terminus(self):
        findings = audit_allocations(1, [limb(-120, -60, 0), limb(0, 60, 5, 1)])
        assert [(f.kind, f.detail["end"]) for f in findings] == [("terminus", "lower")]

    def test_empty(self):
        assert audit_allocations(1, []) == []


# =============================================================================
# Persistence
# =============================================================================

class TestStateStore:
    """Position book files."""

    def test_missing_file(self, tmp_path):
        assert StateStore("0xengine", str(tmp_path)).load() == {}

    def test_save_load(self, tmp_path):
        store = StateStore("0xengine", str(tmp_path))
        store.save({"registry": {"next_id": 2}})

        data = store.load()

        assert data["state_version"] == STATE_VERSION
        assert data["registry"] == {"next_id": 2}
        assert not store.tmp.exists()

    def test_corrupt_file(self, tmp_path):
        store = StateStore("0xengine", str(tmp_path))
        store.path.write_text("{not json")
        assert store.load() == {}

    def test_version_mismatch(self, tmp_path):
        store = StateStore("0xengine", str(tmp_path))
        store.path.write_text(json.dumps({"state_version": STATE_VERSION + 1}))
        assert store.load() == {}

    @pytest.mark.asyncio
    async def test_atomic_store(self, tmp_path):
        store = AtomicStateStore("0xengine", str(tmp_path / "nested"))
        await store.save({"ranges": {"1": []}})

        assert store.path.exists()
        assert (await store.load())["ranges"] == {"1": []}
