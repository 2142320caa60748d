"""
Event Bus: position lifecycle notifications.

The engine publishes only after an operation has fully committed (or, for
SessionAborted, after it has fully rolled back), so subscribers never observe
a session that was later undone.

Events are frozen dataclasses; subscribers register per event class. Delivery
happens inside publish(), in subscription order, and a failing handler is
logged and skipped so it never reaches the engine.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Coroutine, Deque, Dict, List, Optional, Tuple, Type, Union

from yoga.core.types import PoolKey

log = logging.getLogger("yoga")


@dataclass(frozen=True)
class PositionCreated:
    """New position minted with its first range."""
    position_id: int
    owner: str
    pool_key: PoolKey
    ranges_deployed: int
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000), compare=False)


@dataclass(frozen=True)
class PositionReshaped:
    """Ranges withdrawn/deployed under one position."""
    position_id: int
    ranges_withdrawn: int
    ranges_deployed: int
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000), compare=False)


@dataclass(frozen=True)
class SessionAborted:
    """Operation failed and nothing was committed."""
    operation: str
    position_id: Optional[int]
    reason: str
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000), compare=False)


@dataclass(frozen=True)
class LedgerDrift:
    """Stored allocations diverge from the conservation ledger."""
    position_id: int
    drift: int
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000), compare=False)


@dataclass(frozen=True)
class AllocationAudit:
    """Allocation set has findings (overlap, mergeable, terminus)."""
    position_id: int
    findings: Tuple[str, ...]
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000), compare=False)


Event = Union[PositionCreated, PositionReshaped, SessionAborted, LedgerDrift, AllocationAudit]

# Handler type: async function or sync function taking one event
Handler = Union[
    Callable[[Any], Coroutine[Any, Any, None]],
    Callable[[Any], None],
]


class EventBus:
    """
    Delivers engine events to subscribers and keeps a bounded history.

    Usage:
        bus = EventBus()
        bus.subscribe(PositionReshaped, on_reshape)

        await bus.publish(PositionReshaped(position_id=1, ranges_withdrawn=1, ranges_deployed=2))
    """

    DEFAULT_HISTORY_SIZE = 1000

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        log_event: Optional[Callable[..., None]] = None,
    ) -> None:
        """
        Initialize EventBus.

        Args:
            history_size: Max events to keep in history (0 = disabled)
            log_event: Callback for structured logging
        """
        self._log = log_event or self._default_log
        self._subscribers: Dict[type, List[Handler]] = {}
        self._history: Deque[Event] = deque(maxlen=max(history_size, 0))
        self._stats = {
            "events_published": 0,
            "handler_errors": 0,
        }

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.warning(f'{{"event":"{event}",{",".join(f"{k}:{v}" for k,v in kwargs.items())}}}')

    def subscribe(self, event_cls: Type[Any], handler: Handler) -> None:
        """Deliver every published `event_cls` to `handler`, in subscription order."""
        self._subscribers.setdefault(event_cls, []).append(handler)

    async def publish(self, event: Event) -> None:
        self._stats["events_published"] += 1
        if self._history.maxlen:
            self._history.append(event)

        for handler in self._subscribers.get(type(event), []):
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    handler(event)
            except Exception as e:
                self._stats["handler_errors"] += 1
                self._log(
                    "event_bus_handler_error",
                    event_type=type(event).__name__,
                    handler_name=getattr(handler, "__name__", "handler"),
                    error=str(e),
                    error_type=type(e).__name__,
                    payload=asdict(event),
                )

    def get_history(self, event_cls: Optional[Type[Any]] = None, limit: int = 100) -> List[Event]:
        """Recent events, most recent last."""
        events = list(self._history)
        if event_cls is not None:
            events = [e for e in events if isinstance(e, event_cls)]
        return events[-limit:]

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "history_size": len(self._history)}
