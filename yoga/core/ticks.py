"""
Tick math for concentrated-liquidity ranges.

Ticks are the pool's discretized price coordinate: price = 1.0001 ** tick.
Sqrt prices use the Q64.96 fixed-point format and token amounts for a
liquidity magnitude follow the standard concentrated-liquidity formulas:

    amount0 = L * (sqrt_b - sqrt_a) / (sqrt_a * sqrt_b)
    amount1 = L * (sqrt_b - sqrt_a)

Amounts owed to the pool round up, amounts paid out round down.
"""

from __future__ import annotations

import math
from decimal import Decimal, localcontext
from enum import Enum
from functools import lru_cache
from typing import Optional, Tuple

MIN_TICK = -887272
MAX_TICK = 887272
Q96 = 2 ** 96

_TICK_BASE = Decimal("1.0001")


class RangeClass(str, Enum):
    """Which assets a range holds relative to the current tick."""

    ONLY_TOKEN0 = "only_token0"  # range entirely above the price
    ONLY_TOKEN1 = "only_token1"  # range entirely below the price
    BOTH = "both"


def is_aligned(tick: int, tick_spacing: int) -> bool:
    return tick % tick_spacing == 0


def in_bounds(tick: int) -> bool:
    return MIN_TICK <= tick <= MAX_TICK


def is_active(lower_tick: int, upper_tick: int, current_tick: int) -> bool:
    """A range is active while its bounds contain the current tick (upper exclusive)."""
    return lower_tick <= current_tick < upper_tick


def classify_range(lower_tick: int, upper_tick: int, current_tick: int) -> RangeClass:
    if current_tick < lower_tick:
        return RangeClass.ONLY_TOKEN0
    if current_tick >= upper_tick:
        return RangeClass.ONLY_TOKEN1
    return RangeClass.BOTH


def nearest_usable_tick(tick: int, tick_spacing: int) -> int:
    """Round to the nearest multiple of tick_spacing that stays within bounds."""
    if tick_spacing <= 0:
        raise ValueError("tick_spacing must be > 0")
    rounded = math.floor(tick / tick_spacing + 0.5) * tick_spacing
    if rounded < MIN_TICK:
        return rounded + tick_spacing
    if rounded > MAX_TICK:
        return rounded - tick_spacing
    return rounded


def tick_to_price(tick: int) -> float:
    """Convert tick to price (token1 per token0, for display)."""
    return 1.0001 ** tick


def price_to_tick(price: float, tick_spacing: Optional[int] = None) -> int:
    """Convert price to tick, optionally snapped to a usable tick."""
    if price <= 0:
        raise ValueError("Price must be positive")
    tick = math.floor(math.log(price) / math.log(1.0001))
    tick = max(MIN_TICK, min(MAX_TICK, tick))
    if tick_spacing:
        return nearest_usable_tick(tick, tick_spacing)
    return tick


@lru_cache(maxsize=4096)
def tick_to_sqrt_price_x96(tick: int) -> int:
    """Sqrt price of a tick in Q64.96, computed at high decimal precision."""
    if not in_bounds(tick):
        raise ValueError(f"Tick {tick} out of bounds [{MIN_TICK}, {MAX_TICK}]")
    with localcontext() as ctx:
        ctx.prec = 80
        sqrt_price = _TICK_BASE ** (Decimal(tick) / 2)
        return int(sqrt_price * Q96)


def mul_div(a: int, b: int, denominator: int) -> int:
    if denominator == 0:
        raise ValueError("Division by zero")
    return (a * b) // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    if denominator == 0:
        raise ValueError("Division by zero")
    return -((-a * b) // denominator)


def get_amount0_delta(sqrt_a_x96: int, sqrt_b_x96: int, liquidity: int, round_up: bool) -> int:
    if sqrt_a_x96 > sqrt_b_x96:
        sqrt_a_x96, sqrt_b_x96 = sqrt_b_x96, sqrt_a_x96
    if liquidity == 0 or sqrt_a_x96 == sqrt_b_x96:
        return 0

    numerator1 = liquidity << 96
    numerator2 = sqrt_b_x96 - sqrt_a_x96
    if round_up:
        return mul_div_rounding_up(
            mul_div_rounding_up(numerator1, numerator2, sqrt_b_x96), 1, sqrt_a_x96
        )
    return mul_div(numerator1, numerator2, sqrt_b_x96) // sqrt_a_x96


def get_amount1_delta(sqrt_a_x96: int, sqrt_b_x96: int, liquidity: int, round_up: bool) -> int:
    if sqrt_a_x96 > sqrt_b_x96:
        sqrt_a_x96, sqrt_b_x96 = sqrt_b_x96, sqrt_a_x96
    if liquidity == 0 or sqrt_a_x96 == sqrt_b_x96:
        return 0
    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_b_x96 - sqrt_a_x96, Q96)
    return mul_div(liquidity, sqrt_b_x96 - sqrt_a_x96, Q96)


def amounts_for_liquidity(
    current_tick: int,
    lower_tick: int,
    upper_tick: int,
    liquidity: int,
    round_up: bool = False,
) -> Tuple[int, int]:
    """
    Token amounts represented by `liquidity` over [lower_tick, upper_tick).

    The pool price is taken as the sqrt price of `current_tick`.

    Returns:
        (amount0, amount1), both non-negative
    """
    sqrt_lower = tick_to_sqrt_price_x96(lower_tick)
    sqrt_upper = tick_to_sqrt_price_x96(upper_tick)

    if current_tick < lower_tick:
        return get_amount0_delta(sqrt_lower, sqrt_upper, liquidity, round_up), 0
    if current_tick < upper_tick:
        sqrt_current = tick_to_sqrt_price_x96(current_tick)
        return (
            get_amount0_delta(sqrt_current, sqrt_upper, liquidity, round_up),
            get_amount1_delta(sqrt_lower, sqrt_current, liquidity, round_up),
        )
    return 0, get_amount1_delta(sqrt_lower, sqrt_upper, liquidity, round_up)
