"""
Settlement Coordinator: turns a session's net delta into venue pull/push calls.

Per asset, in asset0 -> asset1 order:
- delta < 0: the position owes `debt = -delta`. Pulled from the payer. On a
  first deployment (the position held no ranges before the call) the debt is
  bounded by the caller's max; over the bound raises SlippageExceeded.
  On a pure reshape the bound is not consulted: conservation already pins the
  net delta to within the dust tolerance.
- delta > 0: surplus pushed to the position's current owner.
- delta == 0: nothing.

plan_settlement() is pure so the slippage policy can be checked before any
token moves; execute_settlement() issues the planned calls in order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from yoga.core.errors import SlippageExceeded
from yoga.core.types import NetDelta

if TYPE_CHECKING:
    from yoga.venue.adapter import LiquidityVenue


class SettlementAction(str, Enum):
    PULL = "pull"
    PUSH = "push"


@dataclass(frozen=True)
class SettlementCall:
    action: SettlementAction
    asset: str
    counterparty: str
    amount: int


def plan_settlement(
    delta: NetDelta,
    assets: Tuple[str, str],
    payer: str,
    owner: str,
    first_deployment: bool,
    max_debts: Tuple[Optional[int], Optional[int]],
) -> List[SettlementCall]:
    """
    Build the ordered settlement calls for one session.

    Args:
        delta: Final net delta of the session
        assets: (currency0, currency1) of the pool
        payer: Account debts are pulled from
        owner: Current position owner, receives surpluses
        first_deployment: True when the position held no ranges before the call
        max_debts: Per-asset debt bounds (None = unbounded); first deployment only

    Raises:
        SlippageExceeded: first deployment debt above its bound
    """
    calls: List[SettlementCall] = []
    for index, (asset, amount, max_debt) in enumerate(zip(assets, delta.as_tuple(), max_debts)):
        if amount < 0:
            debt = -amount
            if first_deployment and max_debt is not None and debt > max_debt:
                raise SlippageExceeded(
                    f"asset{index} debt {debt} exceeds max {max_debt}",
                    asset=asset,
                    debt=debt,
                    max_debt=max_debt,
                )
            calls.append(SettlementCall(SettlementAction.PULL, asset, payer, debt))
        elif amount > 0:
            calls.append(SettlementCall(SettlementAction.PUSH, asset, owner, amount))
    return calls


async def execute_settlement(venue: "LiquidityVenue", calls: Sequence[SettlementCall]) -> None:
    for call in calls:
        if call.action is SettlementAction.PULL:
            await venue.pull_settlement(call.asset, call.counterparty, call.amount)
        else:
            await venue.push_settlement(call.asset, call.counterparty, call.amount)
