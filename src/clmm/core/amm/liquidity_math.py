"""
Liquidity math: conversions between liquidity and token amounts over a price
range, and the closed-form single-step swap used by the swap engine.

Liquidity and token amounts are plain integers; sqrt prices are 64.64.
Amounts paid out are rounded down, amounts charged are rounded up.
"""

from __future__ import annotations

from .fixed_point import (
    ONE_X64,
    div_q64,
    mul_div,
    mul_q64,
    saturating_add_u128,
    saturating_mul_u128,
    to_i128,
)


# ==================== Liquidity <-> Amounts ====================

def get_liquidity_for_amount0(amount0: int, sqrt_price_lower: int, sqrt_price_upper: int) -> int:
    """L = amount0 * sqrtL * sqrtU / (sqrtU - sqrtL)"""
    if amount0 <= 0:
        return 0
    if sqrt_price_lower > sqrt_price_upper:
        sqrt_price_lower, sqrt_price_upper = sqrt_price_upper, sqrt_price_lower

    width = sqrt_price_upper - sqrt_price_lower
    if width == 0:
        return 0
    product = mul_q64(sqrt_price_upper, sqrt_price_lower)
    return to_i128(amount0 * product // width)


def get_liquidity_for_amount1(amount1: int, sqrt_price_lower: int, sqrt_price_upper: int) -> int:
    """L = amount1 / (sqrtU - sqrtL)"""
    if amount1 <= 0:
        return 0
    if sqrt_price_lower > sqrt_price_upper:
        sqrt_price_lower, sqrt_price_upper = sqrt_price_upper, sqrt_price_lower

    width = sqrt_price_upper - sqrt_price_lower
    if width == 0:
        return 0
    return to_i128(saturating_mul_u128(amount1, ONE_X64) // width)


def get_liquidity_for_amounts(
    amount0: int,
    amount1: int,
    sqrt_price_lower: int,
    sqrt_price_upper: int,
    sqrt_price_current: int,
) -> int:
    """
    Largest liquidity that neither amount can fall short of.

    Below the range only token0 counts, above it only token1; inside the
    range the liquidity implied by each token is computed independently and
    the minimum wins.
    """
    if sqrt_price_current <= sqrt_price_lower:
        return get_liquidity_for_amount0(amount0, sqrt_price_lower, sqrt_price_upper)
    if sqrt_price_current >= sqrt_price_upper:
        return get_liquidity_for_amount1(amount1, sqrt_price_lower, sqrt_price_upper)

    liquidity0 = get_liquidity_for_amount0(amount0, sqrt_price_current, sqrt_price_upper)
    liquidity1 = get_liquidity_for_amount1(amount1, sqrt_price_lower, sqrt_price_current)
    return min(liquidity0, liquidity1)


def get_amount0_delta(
    sqrt_price_a: int,
    sqrt_price_b: int,
    liquidity: int,
    round_up: bool = False,
) -> int:
    """
    Token0 between two sqrt prices: L * (sqrtB - sqrtA) / (sqrtA * sqrtB).

    Computed as a single quotient so the only rounding is the final one.
    """
    if sqrt_price_a > sqrt_price_b:
        sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a
    if liquidity <= 0 or sqrt_price_a == 0 or sqrt_price_a == sqrt_price_b:
        return 0

    return mul_div(
        liquidity,
        (sqrt_price_b - sqrt_price_a) << 64,
        sqrt_price_a * sqrt_price_b,
        round_up,
    )


def get_amount1_delta(
    sqrt_price_a: int,
    sqrt_price_b: int,
    liquidity: int,
    round_up: bool = False,
) -> int:
    """Token1 between two sqrt prices: L * (sqrtB - sqrtA)."""
    if sqrt_price_a > sqrt_price_b:
        sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a
    if liquidity <= 0:
        return 0

    return mul_div(liquidity, sqrt_price_b - sqrt_price_a, ONE_X64, round_up)


def get_amounts_for_liquidity(
    liquidity: int,
    sqrt_price_lower: int,
    sqrt_price_upper: int,
    sqrt_price_current: int,
    round_up: bool = False,
) -> tuple[int, int]:
    """
    Token amounts represented by ``liquidity`` over [lower, upper] at the
    current price (clamped into the range).

    amount0 = L * (sqrtU - P) / (sqrtU * P)
    amount1 = L * (P - sqrtL)

    Args:
        round_up: True when the amounts are charged to a depositor,
                  False when they are paid out
    """
    if liquidity <= 0:
        return 0, 0

    sqrt_price = min(max(sqrt_price_current, sqrt_price_lower), sqrt_price_upper)

    amount0 = get_amount0_delta(sqrt_price, sqrt_price_upper, liquidity, round_up)
    amount1 = get_amount1_delta(sqrt_price_lower, sqrt_price, liquidity, round_up)

    return to_i128(amount0), to_i128(amount1)


# ==================== Swap Step ====================

def compute_swap_step(
    sqrt_price_current: int,
    liquidity: int,
    amount_remaining: int,
    zero_for_one: bool,
) -> tuple[int, int, int]:
    """
    Spend all of ``amount_remaining`` against ``liquidity`` with no target.

    Moving down (token0 in): P' = L*P / (L + amount*P), rounded up.
    Moving up (token1 in):   P' = P + amount/L, rounded down.

    The next price never moves further than the exact result, and the
    output is floored, so a step never pays out more than it is owed.

    Returns:
        (sqrt_price_next, amount_in, amount_out)
    """
    if liquidity <= 0 or amount_remaining <= 0:
        return sqrt_price_current, 0, 0

    sqrt_price = sqrt_price_current

    if zero_for_one:
        denominator = saturating_add_u128(
            saturating_mul_u128(liquidity, ONE_X64),
            saturating_mul_u128(amount_remaining, sqrt_price),
        )
        numerator = saturating_mul_u128(liquidity, sqrt_price)
        sqrt_price_next = min(mul_div(numerator, ONE_X64, denominator, round_up=True), sqrt_price)
        amount_out = get_amount1_delta(sqrt_price_next, sqrt_price, liquidity)
    else:
        sqrt_price_next = saturating_add_u128(sqrt_price, div_q64(amount_remaining, liquidity))
        amount_out = get_amount0_delta(sqrt_price, sqrt_price_next, liquidity)

    return sqrt_price_next, amount_remaining, to_i128(amount_out)


def compute_swap_step_with_target(
    sqrt_price_current: int,
    liquidity: int,
    amount_remaining: int,
    zero_for_one: bool,
    sqrt_price_target: int,
) -> tuple[int, int, int]:
    """
    Like compute_swap_step, but stop exactly at ``sqrt_price_target`` if the
    full amount would move the price past it. In that case the input needed
    to reach the target is recomputed, rounded up.

    Returns:
        (sqrt_price_next, amount_in, amount_out)
    """
    sqrt_price_next, amount_in, amount_out = compute_swap_step(
        sqrt_price_current, liquidity, amount_remaining, zero_for_one
    )

    if zero_for_one:
        reached_target = sqrt_price_next <= sqrt_price_target
    else:
        reached_target = sqrt_price_next >= sqrt_price_target

    if not reached_target:
        return sqrt_price_next, amount_in, amount_out

    if zero_for_one:
        # dx = L * (1/P_target - 1/P_current), dy = L * (P_current - P_target)
        amount_in = get_amount0_delta(sqrt_price_target, sqrt_price_current, liquidity, round_up=True)
        amount_out = get_amount1_delta(sqrt_price_target, sqrt_price_current, liquidity)
    else:
        # dy = L * (P_target - P_current), dx = L * (1/P_current - 1/P_target)
        amount_in = get_amount1_delta(sqrt_price_current, sqrt_price_target, liquidity, round_up=True)
        amount_out = get_amount0_delta(sqrt_price_current, sqrt_price_target, liquidity)

    return sqrt_price_target, to_i128(amount_in), to_i128(amount_out)
