"""
Fixed-point arithmetic for the pool engine.

Prices are unsigned 128-bit integers holding a 64.64 fraction (ONE = 2^64).
Products and quotients saturate at MAX_U128 instead of wrapping, because a
wrapped price would silently corrupt the pool. Fee-growth counters are the
one place where wrapping is wanted; use wrapping_add / wrapping_sub for those.
"""

from __future__ import annotations

ONE_X64 = 1 << 64
MAX_U64 = (1 << 64) - 1
MAX_U128 = (1 << 128) - 1
MAX_I128 = (1 << 127) - 1
MIN_I128 = -(1 << 127)

# Largest value that can be shifted left by 64 without leaving 128 bits
_SHIFT_SAFE = MAX_U128 >> 64


def mul_q64(a: int, b: int) -> int:
    """
    Multiply two 64.64 values.

    Equivalent to splitting each operand into 64-bit halves and summing the
    four partial products; the result saturates at MAX_U128.
    """
    return min((a * b) >> 64, MAX_U128)


def div_q64(a: int, b: int) -> int:
    """
    Divide two 64.64 values, returning (a << 64) / b.

    Division by zero returns MAX_U128 ("infinite price"); callers must guard
    against the sentinel. When ``a`` is too large to shift, the quotient is
    rebuilt from a = q*b + r, and the remainder term is scaled down by 2^32
    if it would overflow too, trading precision for a result.
    """
    if b == 0:
        return MAX_U128

    if a < _SHIFT_SAFE:
        return (a << 64) // b

    q, r = divmod(a, b)
    q_part = min(q << 64, MAX_U128)

    if r < _SHIFT_SAFE:
        r_part = (r << 64) // b
    else:
        b_scaled = b >> 32
        if b_scaled == 0:
            return MAX_U128
        r_part = min(((r >> 32) << 64) // b_scaled, MAX_U128)

    return saturating_add_u128(q_part, r_part)


def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Calculate (a * b) / denominator with full precision and controlled rounding.

    Args:
        a: First multiplicand
        b: Second multiplicand
        denominator: Divisor
        round_up: If True, round up (for charging users)
                  If False, round down (for paying users)

    Raises:
        ZeroDivisionError: If denominator is zero
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")

    product = a * b
    if round_up:
        return -(-product // denominator)
    return product // denominator


# ==================== Saturating / Wrapping Helpers ====================

def saturating_add_u128(a: int, b: int) -> int:
    return min(a + b, MAX_U128)


def saturating_sub_u128(a: int, b: int) -> int:
    return max(a - b, 0)


def saturating_mul_u128(a: int, b: int) -> int:
    return min(a * b, MAX_U128)


def saturating_add_i128(a: int, b: int) -> int:
    return max(MIN_I128, min(a + b, MAX_I128))


def saturating_sub_i128(a: int, b: int) -> int:
    return max(MIN_I128, min(a - b, MAX_I128))


def checked_mul_u128(a: int, b: int) -> int | None:
    """Return a * b, or None when the product leaves 128 bits."""
    product = a * b
    if product > MAX_U128:
        return None
    return product


def wrapping_add(a: int, b: int) -> int:
    """Modular (mod 2^128) addition for fee-growth counters."""
    return (a + b) & MAX_U128


def wrapping_sub(a: int, b: int) -> int:
    """Modular (mod 2^128) subtraction for fee-growth counters."""
    return (a - b) & MAX_U128


def to_i128(value: int) -> int:
    """Clamp an unsigned amount into the signed 128-bit amount domain."""
    if value <= 0:
        return 0
    return min(value, MAX_I128)
