"""
Execution layer.

- ReshapeEngine: create/reshape sessions and the venue callback
- settlement: net delta -> ordered pull/push calls
"""

from yoga.execution.reshape_engine import RangeAmounts, ReshapeEngine, ReshapeEngineConfig, SessionOutcome
from yoga.execution.settlement import SettlementAction, SettlementCall, execute_settlement, plan_settlement

__all__ = [
    "RangeAmounts",
    "ReshapeEngine",
    "ReshapeEngineConfig",
    "SessionOutcome",
    "SettlementAction",
    "SettlementCall",
    "execute_settlement",
    "plan_settlement",
]
