"""
Error taxonomy for the position manager.

Every error aborts the whole operation it was raised in; nothing is retried
internally. Each class carries the context needed to tell failures apart in
logs (`to_dict()` feeds the structured log payload).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class YogaError(Exception):
    """Base class for engine-side failures."""

    reason = "yoga_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason, "message": str(self), **self.context}


class Unauthorized(YogaError):
    """Caller is neither the position owner nor an authorized delegate."""

    reason = "unauthorized"


class NotFound(YogaError):
    """Unknown position id."""

    reason = "not_found"


class InvalidRange(YogaError):
    """Target range with lower >= upper, misaligned or out-of-bounds ticks."""

    reason = "invalid_range"


class RangeBlocked(YogaError):
    """New range straddles the active tick on a position that already holds ranges."""

    reason = "range_blocked"


class Imbalanced(YogaError):
    """Net delta of a reshape exceeds the dust tolerance."""

    reason = "imbalanced"


class SlippageExceeded(YogaError):
    """Debt owed on first deployment exceeds the caller's bound."""

    reason = "slippage_exceeded"


class UntrustedCaller(YogaError):
    """Session callback invoked by a non-venue party or outside an open session."""

    reason = "untrusted_caller"


class VenueError(Exception):
    """Raised by the liquidity venue; aborts the session like any engine error."""

    reason = "venue_error"

    def __init__(self, message: str, pool_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.pool_id = pool_id

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason, "message": str(self), "pool_id": self.pool_id}


class SessionAlreadyOpen(VenueError):
    reason = "session_already_open"


class SessionNotOpen(VenueError):
    reason = "session_not_open"


class CurrencyNotSettled(VenueError):
    reason = "currency_not_settled"


class InsufficientBalance(VenueError):
    reason = "insufficient_balance"


class InsufficientLiquidity(VenueError):
    reason = "insufficient_liquidity"


class PoolNotInitialized(VenueError):
    reason = "pool_not_initialized"
