"""
Fixed-point arithmetic tests.

64.64 multiply/divide, saturation at the 128-bit boundary and the wrapping
helpers used by fee-growth counters.
"""

import pytest

from clmm.core.amm.fixed_point import (
    MAX_I128,
    MAX_U128,
    ONE_X64,
    checked_mul_u128,
    div_q64,
    mul_div,
    mul_q64,
    saturating_add_i128,
    saturating_add_u128,
    saturating_sub_i128,
    saturating_sub_u128,
    to_i128,
    wrapping_add,
    wrapping_sub,
)


class TestMulQ64:
    """Test 64.64 multiplication."""

    def test_one_is_identity(self):
        assert mul_q64(ONE_X64, ONE_X64) == ONE_X64
        assert mul_q64(12345 * ONE_X64, ONE_X64) == 12345 * ONE_X64

    def test_fractions(self):
        half = ONE_X64 // 2
        assert mul_q64(half, half) == ONE_X64 // 4
        assert mul_q64(3 * ONE_X64, half) == 3 * ONE_X64 // 2

    def test_zero(self):
        assert mul_q64(0, MAX_U128) == 0

    def test_saturates_instead_of_wrapping(self):
        """A wrapped product would silently corrupt a price."""
        assert mul_q64(MAX_U128, MAX_U128) == MAX_U128
        assert mul_q64(MAX_U128, 2 * ONE_X64) == MAX_U128


class TestDivQ64:
    """Test 64.64 division."""

    def test_basic(self):
        assert div_q64(ONE_X64, ONE_X64) == ONE_X64
        assert div_q64(ONE_X64, 2 * ONE_X64) == ONE_X64 // 2
        assert div_q64(6, 3) == 2 * ONE_X64

    def test_division_by_zero_returns_sentinel(self):
        assert div_q64(1, 0) == MAX_U128
        assert div_q64(0, 0) == MAX_U128

    def test_large_numerator_uses_decomposition(self):
        """Numerators too large to shift still give an exact result when it fits."""
        a = 1 << 100
        b = 1 << 60
        assert div_q64(a, b) == (a << 64) // b

    def test_large_numerator_with_remainder(self):
        a = (1 << 100) + 12345
        b = (1 << 62) + 7
        expected = (a << 64) // b
        result = div_q64(a, b)
        # q/r decomposition is exact while the remainder term fits
        assert abs(result - expected) <= 1

    def test_overflowing_quotient_saturates(self):
        assert div_q64(MAX_U128, 1) == MAX_U128

    def test_remainder_overflow_loses_precision_not_correctness(self):
        a = MAX_U128 - 5
        b = (1 << 127) + 3
        expected = min((a << 64) // b, MAX_U128)
        result = div_q64(a, b)
        assert result <= MAX_U128
        # Within the 2^32 scaling error of the exact value
        assert abs(result - expected) < expected >> 20


class TestMulDiv:
    """Test mul_div rounding."""

    def test_round_down(self):
        assert mul_div(10, 10, 3) == 33

    def test_round_up(self):
        assert mul_div(10, 10, 3, round_up=True) == 34
        assert mul_div(10, 9, 3, round_up=True) == 30

    def test_division_by_zero(self):
        with pytest.raises(ZeroDivisionError):
            mul_div(1, 1, 0)


class TestSaturatingHelpers:
    def test_u128(self):
        assert saturating_add_u128(MAX_U128, 1) == MAX_U128
        assert saturating_sub_u128(5, 10) == 0
        assert saturating_sub_u128(10, 5) == 5

    def test_i128(self):
        assert saturating_add_i128(MAX_I128, 1) == MAX_I128
        assert saturating_sub_i128(-MAX_I128, 10) == -(1 << 127)
        assert saturating_add_i128(-5, 3) == -2

    def test_checked_mul(self):
        assert checked_mul_u128(1 << 64, (1 << 64) - 1) == (1 << 128) - (1 << 64)
        assert checked_mul_u128(1 << 64, 1 << 64) is None

    def test_to_i128(self):
        assert to_i128(-3) == 0
        assert to_i128(42) == 42
        assert to_i128(MAX_U128) == MAX_I128


class TestWrapping:
    """Fee-growth counters wrap mod 2^128."""

    def test_wrapping_add(self):
        assert wrapping_add(MAX_U128, 1) == 0
        assert wrapping_add(MAX_U128, 5) == 4

    def test_wrapping_sub(self):
        assert wrapping_sub(0, 1) == MAX_U128
        assert wrapping_sub(3, 5) == MAX_U128 - 1

    def test_difference_survives_wrap(self):
        """The difference of two readings is correct across a wrap."""
        before = MAX_U128 - 100
        after = wrapping_add(before, 250)
        assert after < before
        assert wrapping_sub(after, before) == 250
