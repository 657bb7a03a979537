"""
Fee-growth accounting.

Fees are tracked per unit of liquidity in 64.64 counters that wrap mod 2^128.
The difference of two readings is correct across a wrap as long as the
counter advances by less than one full modulus between them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .fixed_point import checked_mul_u128, saturating_add_u128, wrapping_sub

if TYPE_CHECKING:
    from .positions import Position
    from .storage import StateStore

logger = logging.getLogger(__name__)


def fee_growth_inside(
    store: StateStore,
    tick_lower: int,
    tick_upper: int,
    current_tick: int,
    fee_growth_global_0: int,
    fee_growth_global_1: int,
) -> tuple[int, int]:
    """
    Calculate fee growth inside a tick range.

    inside = global - below(lower) - above(upper), where a tick's outside
    value means "below" while the price is at or above it and "above"
    otherwise.
    """
    lower_info = store.get_tick(tick_lower)
    upper_info = store.get_tick(tick_upper)

    if current_tick >= tick_lower:
        below_0 = lower_info.fee_growth_outside_0
        below_1 = lower_info.fee_growth_outside_1
    else:
        below_0 = wrapping_sub(fee_growth_global_0, lower_info.fee_growth_outside_0)
        below_1 = wrapping_sub(fee_growth_global_1, lower_info.fee_growth_outside_1)

    if current_tick < tick_upper:
        above_0 = upper_info.fee_growth_outside_0
        above_1 = upper_info.fee_growth_outside_1
    else:
        above_0 = wrapping_sub(fee_growth_global_0, upper_info.fee_growth_outside_0)
        above_1 = wrapping_sub(fee_growth_global_1, upper_info.fee_growth_outside_1)

    inside_0 = wrapping_sub(wrapping_sub(fee_growth_global_0, below_0), above_0)
    inside_1 = wrapping_sub(wrapping_sub(fee_growth_global_1, below_1), above_1)
    return inside_0, inside_1


def _fee_for(liquidity: int, inside_now: int, inside_last: int, token: int) -> int:
    delta = wrapping_sub(inside_now, inside_last)
    product = checked_mul_u128(liquidity, delta)
    if product is None:
        # Unreachable while tick and position records are consistent
        logger.warning(
            "Fee accrual overflow treated as zero",
            extra={
                "event": "clmm.fee_accrual_overflow",
                "token": token,
                "liquidity": liquidity,
                "delta": delta,
            },
        )
        return 0
    return product >> 64


def pending_fees(position: Position, inside_0: int, inside_1: int) -> tuple[int, int]:
    """Fees earned since the position's last checkpoint, without recording them."""
    if position.liquidity <= 0:
        return 0, 0
    return (
        _fee_for(position.liquidity, inside_0, position.fee_growth_inside_0_last, 0),
        _fee_for(position.liquidity, inside_1, position.fee_growth_inside_1_last, 1),
    )


def accrue(position: Position, inside_0: int, inside_1: int) -> None:
    """
    Move fees earned since the last checkpoint into tokens_owed.

    The checkpoint is always advanced, even for a position with no liquidity.
    """
    fee_0, fee_1 = pending_fees(position, inside_0, inside_1)
    position.tokens_owed_0 = saturating_add_u128(position.tokens_owed_0, fee_0)
    position.tokens_owed_1 = saturating_add_u128(position.tokens_owed_1, fee_1)

    position.fee_growth_inside_0_last = inside_0
    position.fee_growth_inside_1_last = inside_1
