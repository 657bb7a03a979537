"""
Tick <-> sqrt price conversion.

Each tick is a 0.01% price step: price(tick) = 1.0001^tick. The engine works
on sqrt(price) in 64.64 fixed point, computed by square-and-multiply over a
fixed-point sqrt(1.0001) constant, so every node derives identical prices.
"""

from __future__ import annotations

import math

from ..exceptions import ConfigurationError, TickOutOfRangeError
from .fixed_point import ONE_X64, div_q64, mul_q64

MIN_TICK = -887272
MAX_TICK = 887272

# sqrt(1.0001) in 64.64 fixed point
SQRT_1_0001_X64 = 18447666387855958016


def snap_to_spacing(tick: int, spacing: int) -> int:
    """Floor ``tick`` to the nearest multiple of ``spacing`` at or below it."""
    if spacing <= 0:
        raise ConfigurationError("tick_spacing must be > 0", details={"tick_spacing": spacing})
    # Python's % is the Euclidean remainder for a positive modulus
    return tick - tick % spacing


def is_valid_tick(tick: int) -> bool:
    return MIN_TICK <= tick <= MAX_TICK


def is_aligned_tick(tick: int, spacing: int) -> bool:
    if spacing <= 0:
        return False
    return tick % spacing == 0


def _sqrt_ratio(tick: int) -> int:
    if tick == 0:
        return ONE_X64

    exponent = abs(tick)
    base = SQRT_1_0001_X64
    result = ONE_X64

    while exponent:
        if exponent & 1:
            result = mul_q64(result, base)
        base = mul_q64(base, base)
        exponent >>= 1

    if tick < 0:
        return div_q64(ONE_X64, result)
    return result


def tick_to_sqrt_price(tick: int) -> int:
    """
    Convert tick to sqrt price in 64.64 format.

    sqrt_price = 1.0001^(tick/2) * 2^64

    Raises:
        TickOutOfRangeError: If tick is outside [MIN_TICK, MAX_TICK]
    """
    if not is_valid_tick(tick):
        raise TickOutOfRangeError(tick, details={"min_tick": MIN_TICK, "max_tick": MAX_TICK})
    return _sqrt_ratio(tick)


MIN_SQRT_PRICE = tick_to_sqrt_price(MIN_TICK)
MAX_SQRT_PRICE = tick_to_sqrt_price(MAX_TICK)


def sqrt_price_to_tick(sqrt_price: int) -> int:
    """
    Convert sqrt price to tick.

    Returns the greatest tick whose sqrt price is <= ``sqrt_price`` (binary
    search over the tick domain). Prices below MIN_SQRT_PRICE map to
    MIN_TICK and prices at or above MAX_SQRT_PRICE to MAX_TICK.
    """
    if sqrt_price < MIN_SQRT_PRICE:
        return MIN_TICK
    if sqrt_price >= MAX_SQRT_PRICE:
        return MAX_TICK

    low, high = MIN_TICK, MAX_TICK
    while low < high:
        mid = (low + high + 1) // 2
        if _sqrt_ratio(mid) <= sqrt_price:
            low = mid
        else:
            high = mid - 1

    return low


def tick_to_price(tick: int) -> float:
    """Convert tick to actual price (for display)."""
    return 1.0001 ** tick


def price_to_tick(price: float) -> int:
    """Convert a display price to the tick at or below it."""
    if price <= 0:
        raise ConfigurationError("Price must be positive", details={"price": price})
    return math.floor(math.log(price) / math.log(1.0001))


def sqrt_price_to_price(sqrt_price: int) -> float:
    """Convert a 64.64 sqrt price to a float price (for display)."""
    ratio = sqrt_price / ONE_X64
    return ratio * ratio
