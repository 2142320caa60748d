"""
ReshapeEngine: atomic create/reshape of multi-range positions.

One position aggregates liquidity over several tick ranges of one pool. A
reshape withdraws every range the current price has left, deploys the
requested new ranges, checks that no tokens were net-swapped in the process
and settles the (dust) remainder, all inside one venue session.

Session flow:
    create()/reshape()
      -> venue.request_atomic_session(engine, payload)
         -> engine.on_session(venue.address, payload)
              classify -> withdraw inactive -> deploy targets
              -> conservation check -> store kept set -> settle
      <- venue verifies every currency delta is settled
    <- commit bookkeeping, publish events

All or nothing: if anything raises, the venue discards its changes and the
engine restores the registry/range-store snapshot taken before the session.

Thread Safety:
    One operation at a time, serialized by an asyncio.Lock. The callback
    entry point only accepts the configured venue, only while a session this
    engine opened is pending, and only once per session.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from yoga.core import ticks
from yoga.core.errors import (
    Imbalanced,
    InvalidRange,
    NotFound,
    RangeBlocked,
    Unauthorized,
    UntrustedCaller,
)
from yoga.core.event_bus import (
    AllocationAudit,
    LedgerDrift,
    PositionCreated,
    PositionReshaped,
    SessionAborted,
)
from yoga.core.types import NetDelta, PoolKey, SessionPayload, TargetRange, ZERO_ADDRESS
from yoga.execution.settlement import SettlementCall, execute_settlement, plan_settlement
from yoga.infra.logging_cfg import log_event
from yoga.state.liquidity_ledger import LiquidityLedger, audit_allocations
from yoga.state.position_registry import PositionRegistry
from yoga.state.range_store import RangeAllocation, RangeStore, allocation_key

if TYPE_CHECKING:
    from yoga.core.event_bus import EventBus
    from yoga.monitoring.metrics_rich import RichMetrics
    from yoga.ownership import OwnershipRegistry
    from yoga.state.state_store import AtomicStateStore
    from yoga.venue.adapter import LiquidityVenue

log = logging.getLogger("yoga")


@dataclass
class ReshapeEngineConfig:
    """Configuration for ReshapeEngine."""
    # Max |net delta| per asset tolerated on a reshape
    dust_tolerance: int = 100

    # Logging
    log_event_callback: Optional[Callable[..., None]] = None


@dataclass
class SessionOutcome:
    """What one committed session did; feeds bookkeeping, metrics and events."""
    position_id: int
    owner: str
    net_delta: NetDelta
    first_deployment: bool
    withdrawn: List[RangeAllocation] = field(default_factory=list)
    deployed: List[RangeAllocation] = field(default_factory=list)
    settlement: List[SettlementCall] = field(default_factory=list)


@dataclass(frozen=True)
class RangeAmounts:
    """Token amounts one allocation represents at the current price."""
    lower_tick: int
    upper_tick: int
    liquidity: int
    amount0: int
    amount1: int
    range_class: ticks.RangeClass


class ReshapeEngine:
    """
    Owns the position registry and range store and is the only writer of both.

    Collaborators are injected: the venue (liquidity + custody), the ownership
    registry (who may reshape), and optionally the event bus, metrics,
    persistence and conservation ledger.
    """

    def __init__(
        self,
        address: str,
        venue: "LiquidityVenue",
        ownership: "OwnershipRegistry",
        registry: Optional[PositionRegistry] = None,
        store: Optional[RangeStore] = None,
        ledger: Optional[LiquidityLedger] = None,
        event_bus: Optional["EventBus"] = None,
        rich_metrics: Optional["RichMetrics"] = None,
        state_store: Optional["AtomicStateStore"] = None,
        config: Optional[ReshapeEngineConfig] = None,
    ) -> None:
        """
        Initialize ReshapeEngine with dependencies.

        Args:
            address: Identity the venue attributes liquidity to
            venue: Liquidity venue
            ownership: Position ownership / delegation registry
            registry: Position registry (fresh one if omitted)
            store: Range store (fresh one if omitted)
            ledger: Conservation ledger (fresh one if omitted)
            event_bus: Receives PositionCreated / PositionReshaped
            rich_metrics: Prometheus metrics
            state_store: Persists the book after every commit
            config: Optional configuration
        """
        self.address = address
        self.venue = venue
        self.ownership = ownership
        self.registry = registry or PositionRegistry()
        self.store = store or RangeStore()
        self.ledger = ledger or LiquidityLedger()
        self.event_bus = event_bus
        self.rich_metrics = rich_metrics
        self.state_store = state_store
        self.config = config or ReshapeEngineConfig()

        self._lock = asyncio.Lock()
        self._pending: Optional[SessionPayload] = None
        self._session_task: Optional["asyncio.Task[Any]"] = None
        self._callback_entered = False
        self._outcome: Optional[SessionOutcome] = None

        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log_event(log, event, level=level, engine=self.address, **kwargs)

    # ========== Operations ==========

    async def create(
        self,
        caller: str,
        pool_key: PoolKey,
        initial_range: TargetRange,
        max_asset0_debt: Optional[int] = None,
        max_asset1_debt: Optional[int] = None,
    ) -> int:
        """
        Open a new position and deploy its first range.

        The caller becomes the owner and pays for the deposit. Straddling the
        active tick is allowed and net debt is bounded by the max debts
        (None = unbounded).

        Returns:
            The new position id
        """
        self._reject_reentry()
        if caller.lower() == ZERO_ADDRESS:
            raise Unauthorized("zero address cannot own a position", caller=caller)

        async with self._lock:
            payload = SessionPayload(
                position_id=None,
                targets=(initial_range,),
                max_asset0_debt=max_asset0_debt,
                max_asset1_debt=max_asset1_debt,
                payer=caller,
                pool_key=pool_key,
                owner=caller,
            )
            outcome = await self._run_session("create", payload)
            await self._after_commit("create", outcome, pool_key)

        return outcome.position_id

    async def reshape(
        self,
        caller: str,
        position_id: int,
        targets: Sequence[TargetRange],
        max_asset0_debt: Optional[int] = None,
        max_asset1_debt: Optional[int] = None,
        payer: Optional[str] = None,
    ) -> NetDelta:
        """
        Withdraw the position's inactive ranges and deploy `targets`.

        Only the owner or an authorized delegate may call. `payer` (default:
        caller) covers any debt; surpluses go to the current owner. The max
        debts only bind when the position currently holds no ranges.

        Returns:
            Net delta of the session before settlement

        Raises:
            NotFound, Unauthorized, InvalidRange, RangeBlocked, Imbalanced,
            SlippageExceeded, or a VenueError; state is unchanged on any of them
        """
        self._reject_reentry()

        async with self._lock:
            position = self.registry.get(position_id)
            owner = self.ownership.owner_of(position_id)
            if not self.ownership.is_authorized(owner, caller, position_id):
                self._log_event(
                    "reshape_unauthorized",
                    level=logging.WARNING,
                    position_id=position_id,
                    caller=caller,
                )
                raise Unauthorized(
                    f"{caller} may not reshape position {position_id}",
                    position_id=position_id,
                    caller=caller,
                )

            payload = SessionPayload(
                position_id=position_id,
                targets=tuple(targets),
                max_asset0_debt=max_asset0_debt,
                max_asset1_debt=max_asset1_debt,
                payer=payer or caller,
                owner=owner,
            )
            outcome = await self._run_session("reshape", payload)
            await self._after_commit("reshape", outcome, position.pool_key)

        return outcome.net_delta

    # ========== Session Boundary ==========

    def _reject_reentry(self) -> None:
        task = self._session_task
        if task is not None and task is asyncio.current_task():
            raise UntrustedCaller("operation requested from inside an open session")

    async def _run_session(self, operation: str, payload: SessionPayload) -> SessionOutcome:
        started = time.monotonic()
        checkpoint = (self.registry.snapshot(), self.store.snapshot())

        self._pending = payload
        self._session_task = asyncio.current_task()
        self._callback_entered = False
        self._outcome = None
        try:
            await self.venue.request_atomic_session(self, payload)
            outcome = self._outcome
            if outcome is None:
                raise UntrustedCaller("venue closed the session without invoking the engine")
        except Exception as exc:
            self.registry.restore(checkpoint[0])
            self.store.restore(checkpoint[1])
            await self._record_failure(operation, payload, exc)
            raise
        finally:
            self._pending = None
            self._session_task = None
            self._callback_entered = False
            self._outcome = None

        if self.rich_metrics:
            self.rich_metrics.session_latency_ms.labels(operation=operation).observe(
                (time.monotonic() - started) * 1000.0
            )
        return outcome

    async def on_session(self, caller: str, payload: SessionPayload) -> NetDelta:
        """
        Venue callback. Runs the reshape algorithm for the pending session.
        """
        if caller != self.venue.address:
            raise UntrustedCaller(f"session callback from untrusted caller {caller}", caller=caller)
        if self._pending is None or payload is not self._pending:
            raise UntrustedCaller("session callback without a session opened by this engine", caller=caller)
        if self._callback_entered:
            raise UntrustedCaller("session callback invoked twice", caller=caller)
        self._callback_entered = True

        outcome = await self._execute(payload)
        self._outcome = outcome
        return outcome.net_delta

    # ========== Reshape Algorithm ==========

    async def _execute(self, payload: SessionPayload) -> SessionOutcome:
        if payload.position_id is None:
            position_id = self.registry.create(payload.pool_key)
        else:
            position_id = payload.position_id
        pool_key = self.registry.get(position_id).pool_key
        current_tick = await self.venue.query_active_tick(pool_key)

        existing = self.store.get_allocations(position_id)
        first_deployment = len(existing) == 0
        delta = NetDelta()
        outcome = SessionOutcome(
            position_id=position_id,
            owner=payload.owner or payload.payer,
            net_delta=delta,
            first_deployment=first_deployment,
        )

        # Classify; withdraw everything the price has left
        kept: List[RangeAllocation] = []
        for limb in existing:
            if ticks.is_active(limb.lower_tick, limb.upper_tick, current_tick):
                kept.append(limb)
                continue
            amount0, amount1 = await self.venue.modify_liquidity(
                pool_key, limb.lower_tick, limb.upper_tick, -limb.liquidity, limb.allocation_key
            )
            delta.add(amount0, amount1)
            outcome.withdrawn.append(limb)
            log.debug(
                f"range_withdrawn position={position_id} [{limb.lower_tick},{limb.upper_tick}) "
                f"d0={amount0} d1={amount1}"
            )

        # Deploy targets
        for target in payload.targets:
            if target.liquidity == 0:
                continue
            self._validate_target(position_id, target, pool_key)
            if not first_deployment and ticks.is_active(target.lower_tick, target.upper_tick, current_tick):
                raise RangeBlocked(
                    f"range [{target.lower_tick},{target.upper_tick}) contains active tick {current_tick}",
                    position_id=position_id,
                    lower_tick=target.lower_tick,
                    upper_tick=target.upper_tick,
                    current_tick=current_tick,
                )
            nonce = self.registry.consume_nonce(position_id)
            limb = RangeAllocation(
                lower_tick=target.lower_tick,
                upper_tick=target.upper_tick,
                liquidity=target.liquidity,
                allocation_key=allocation_key(position_id, nonce),
            )
            amount0, amount1 = await self.venue.modify_liquidity(
                pool_key, limb.lower_tick, limb.upper_tick, limb.liquidity, limb.allocation_key
            )
            delta.add(amount0, amount1)
            kept.append(limb)
            outcome.deployed.append(limb)
            log.debug(
                f"range_deployed position={position_id} [{limb.lower_tick},{limb.upper_tick}) "
                f"d0={amount0} d1={amount1}"
            )

        # Conservation: a reshape must not net-swap
        if not first_deployment and not delta.within(self.config.dust_tolerance):
            raise Imbalanced(
                f"net delta ({delta.asset0}, {delta.asset1}) exceeds dust tolerance "
                f"{self.config.dust_tolerance}",
                position_id=position_id,
                asset0=delta.asset0,
                asset1=delta.asset1,
                dust_tolerance=self.config.dust_tolerance,
            )

        self.store.replace(position_id, kept)

        outcome.settlement = plan_settlement(
            delta,
            pool_key.assets,
            payer=payload.payer,
            owner=outcome.owner,
            first_deployment=first_deployment,
            max_debts=(payload.max_asset0_debt, payload.max_asset1_debt),
        )
        await execute_settlement(self.venue, outcome.settlement)

        # Ownership has no rollback of its own; mint last, still inside the session
        if payload.position_id is None:
            self.ownership.mint(outcome.owner, position_id)
        return outcome

    @staticmethod
    def _validate_target(position_id: int, target: TargetRange, pool_key: PoolKey) -> None:
        lower, upper = target.lower_tick, target.upper_tick
        problem = None
        if target.liquidity < 0:
            problem = f"negative liquidity {target.liquidity}"
        elif lower >= upper:
            problem = f"lower tick {lower} >= upper tick {upper}"
        elif not (ticks.in_bounds(lower) and ticks.in_bounds(upper)):
            problem = f"ticks outside [{ticks.MIN_TICK}, {ticks.MAX_TICK}]"
        elif not (ticks.is_aligned(lower, pool_key.tick_spacing) and ticks.is_aligned(upper, pool_key.tick_spacing)):
            problem = f"ticks not aligned to spacing {pool_key.tick_spacing}"
        if problem:
            raise InvalidRange(
                f"invalid range [{lower},{upper}): {problem}",
                position_id=position_id,
                lower_tick=lower,
                upper_tick=upper,
            )

    # ========== Commit / Failure Bookkeeping ==========

    async def _after_commit(self, operation: str, outcome: SessionOutcome, pool_key: PoolKey) -> None:
        pid = outcome.position_id
        allocations = self.store.get_allocations(pid)

        for limb in outcome.withdrawn:
            self.ledger.record_withdraw(pid, limb)
        for limb in outcome.deployed:
            self.ledger.record_deploy(pid, limb)
        reconcile = self.ledger.reconcile(pid, allocations)

        findings = audit_allocations(pid, allocations)
        for finding in findings:
            self._log_event("allocation_audit", level=logging.WARNING,
                            position_id=pid, kind=finding.kind, detail=finding.detail)

        if self.rich_metrics:
            self.rich_metrics.sessions_total.labels(operation=operation).inc()
            self.rich_metrics.ranges_withdrawn.inc(len(outcome.withdrawn))
            self.rich_metrics.ranges_deployed.inc(len(outcome.deployed))
            self.rich_metrics.allocations.labels(position_id=str(pid)).set(len(allocations))
            for call in outcome.settlement:
                self.rich_metrics.settlement_calls.labels(action=call.action.value).inc()
            if not reconcile.is_consistent:
                self.rich_metrics.ledger_drift.inc()
            for finding in findings:
                self.rich_metrics.audit_findings.labels(kind=finding.kind).inc()

        self._log_event(
            "position_created" if operation == "create" else "position_reshaped",
            position_id=pid,
            owner=outcome.owner,
            ranges_withdrawn=len(outcome.withdrawn),
            ranges_deployed=len(outcome.deployed),
            net_delta=outcome.net_delta.to_dict(),
            allocations=len(allocations),
        )

        if self.state_store:
            await self.state_store.save(self.book_to_dict())

        if self.event_bus:
            if operation == "create":
                await self.event_bus.publish(PositionCreated(
                    position_id=pid,
                    owner=outcome.owner,
                    pool_key=pool_key,
                    ranges_deployed=len(outcome.deployed),
                ))
            else:
                await self.event_bus.publish(PositionReshaped(
                    position_id=pid,
                    ranges_withdrawn=len(outcome.withdrawn),
                    ranges_deployed=len(outcome.deployed),
                ))
            if not reconcile.is_consistent:
                await self.event_bus.publish(LedgerDrift(position_id=pid, drift=reconcile.drift))
            if findings:
                await self.event_bus.publish(AllocationAudit(
                    position_id=pid,
                    findings=tuple(f.kind for f in findings),
                ))

    async def _record_failure(self, operation: str, payload: SessionPayload, exc: Exception) -> None:
        reason = getattr(exc, "reason", type(exc).__name__)
        self._log_event(
            "session_aborted",
            level=logging.ERROR,
            operation=operation,
            position_id=payload.position_id,
            error_type=type(exc).__name__,
            error=exc.to_dict() if hasattr(exc, "to_dict") else str(exc),
        )
        if self.rich_metrics:
            self.rich_metrics.session_failures.labels(operation=operation, reason=reason).inc()
        if self.event_bus:
            await self.event_bus.publish(SessionAborted(
                operation=operation,
                position_id=payload.position_id,
                reason=reason,
            ))

    # ========== Views ==========

    def get_allocations(self, position_id: int) -> Tuple[RangeAllocation, ...]:
        self.registry.get(position_id)
        return self.store.get_allocations(position_id)

    def get_pool_key(self, position_id: int) -> PoolKey:
        return self.registry.get(position_id).pool_key

    def get_ticks(self, position_id: int) -> List[int]:
        """Sorted unique boundary ticks of the position's ranges."""
        bounds = set()
        for limb in self.get_allocations(position_id):
            bounds.add(limb.lower_tick)
            bounds.add(limb.upper_tick)
        return sorted(bounds)

    def positions_of(self, owner: str) -> List[int]:
        owner = owner.lower()
        result = []
        for pid in self.registry.ids():
            try:
                holder = self.ownership.owner_of(pid)
            except NotFound:
                continue
            if holder.lower() == owner:
                result.append(pid)
        return result

    async def get_range_amounts(self, position_id: int) -> List[RangeAmounts]:
        pool_key = self.get_pool_key(position_id)
        current_tick = await self.venue.query_active_tick(pool_key)
        result = []
        for limb in self.get_allocations(position_id):
            amount0, amount1 = ticks.amounts_for_liquidity(
                current_tick, limb.lower_tick, limb.upper_tick, limb.liquidity
            )
            result.append(RangeAmounts(
                lower_tick=limb.lower_tick,
                upper_tick=limb.upper_tick,
                liquidity=limb.liquidity,
                amount0=amount0,
                amount1=amount1,
                range_class=ticks.classify_range(limb.lower_tick, limb.upper_tick, current_tick),
            ))
        return result

    async def get_position_amounts(self, position_id: int) -> Tuple[int, int]:
        ranges = await self.get_range_amounts(position_id)
        return sum(r.amount0 for r in ranges), sum(r.amount1 for r in ranges)

    # ========== Persistence ==========

    def book_to_dict(self) -> Dict[str, Any]:
        return {"registry": self.registry.to_dict(), "ranges": self.store.to_dict()}

    async def restore_book(self) -> int:
        """
        Reload registry and range store from the state store.

        Returns:
            Number of positions restored
        """
        if not self.state_store:
            return 0
        data = await self.state_store.load()
        if not data:
            return 0
        async with self._lock:
            self.registry = PositionRegistry.from_dict(data.get("registry"))
            self.store = RangeStore.from_dict(data.get("ranges"))
            for pid in self.registry.ids():
                self.ledger.seed(pid, self.store.get_allocations(pid))
        self._log_event("book_restored", positions=len(self.registry.ids()))
        return len(self.registry.ids())
