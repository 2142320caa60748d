"""
Core package.

Value types, tick math, the error taxonomy and the event bus.
"""

from yoga.core.errors import (
    Imbalanced,
    InvalidRange,
    NotFound,
    RangeBlocked,
    SlippageExceeded,
    Unauthorized,
    UntrustedCaller,
    VenueError,
    YogaError,
)
from yoga.core.event_bus import (
    AllocationAudit,
    EventBus,
    LedgerDrift,
    PositionCreated,
    PositionReshaped,
    SessionAborted,
)
from yoga.core.types import NetDelta, PoolKey, SessionPayload, TargetRange, ZERO_ADDRESS

__all__ = [
    "AllocationAudit",
    "EventBus",
    "Imbalanced",
    "InvalidRange",
    "LedgerDrift",
    "NetDelta",
    "NotFound",
    "PoolKey",
    "PositionCreated",
    "PositionReshaped",
    "RangeBlocked",
    "SessionAborted",
    "SessionPayload",
    "SlippageExceeded",
    "TargetRange",
    "Unauthorized",
    "UntrustedCaller",
    "VenueError",
    "YogaError",
    "ZERO_ADDRESS",
]
