"""
Tick registry.

Sparse per-tick state: gross liquidity (lifecycle), net liquidity (applied
when price crosses the tick left to right) and the fee-growth-outside
accumulators that fee_growth_inside() reads. Records are created the first
time a position references a tick and deleted once nothing references it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..exceptions import InsufficientLiquidityError
from .fixed_point import MAX_I128, saturating_add_i128, saturating_sub_i128, wrapping_sub
from .tick_math import MAX_TICK, MIN_TICK, snap_to_spacing

if TYPE_CHECKING:
    from .storage import StateStore

logger = logging.getLogger(__name__)


@dataclass
class TickInfo:
    """Information stored for each initialized tick."""
    liquidity_gross: int = 0  # Total liquidity referencing this tick
    liquidity_net: int = 0    # Net liquidity change when crossing tick upward
    fee_growth_outside_0: int = 0  # Fee growth on the far side (token 0)
    fee_growth_outside_1: int = 0  # Fee growth on the far side (token 1)
    initialized: bool = False


def update_tick(
    store: StateStore,
    tick: int,
    current_tick: int,
    liquidity_delta: int,
    fee_growth_global_0: int,
    fee_growth_global_1: int,
    upper: bool,
) -> bool:
    """
    Apply a liquidity change to one boundary of a position.

    On first initialization fee_growth_outside is seeded with the global
    accumulators when current_tick >= tick (all fees so far lie below the
    tick), and with zero otherwise.

    Returns:
        True if the tick flipped between referenced and unreferenced.

    Raises:
        InsufficientLiquidityError: if the removal exceeds gross liquidity
    """
    info = store.get_tick(tick)

    gross_before = info.liquidity_gross
    if liquidity_delta < 0 and -liquidity_delta > gross_before:
        raise InsufficientLiquidityError(
            f"Tick {tick} holds {gross_before} gross liquidity, cannot remove {-liquidity_delta}",
            details={"tick": tick},
        )
    gross_after = min(gross_before + liquidity_delta, MAX_I128)

    flipped = (gross_after == 0) != (gross_before == 0)

    if gross_before == 0 and gross_after > 0:
        if current_tick >= tick:
            info.fee_growth_outside_0 = fee_growth_global_0
            info.fee_growth_outside_1 = fee_growth_global_1
        else:
            info.fee_growth_outside_0 = 0
            info.fee_growth_outside_1 = 0
        info.initialized = True

    info.liquidity_gross = gross_after

    # Upper bounds leave the range when crossed upward, lower bounds enter it
    if upper:
        info.liquidity_net = saturating_sub_i128(info.liquidity_net, liquidity_delta)
    else:
        info.liquidity_net = saturating_add_i128(info.liquidity_net, liquidity_delta)

    if gross_after == 0:
        store.delete_tick(tick)
    else:
        store.set_tick(tick, info)

    if flipped:
        logger.debug(
            "Tick %s",
            "initialized" if gross_after else "cleared",
            extra={"event": "clmm.tick_flip", "tick": tick},
        )

    return flipped


def cross_tick(
    store: StateStore,
    tick: int,
    fee_growth_global_0: int,
    fee_growth_global_1: int,
) -> int:
    """
    Cross a tick during a swap.

    Flips fee_growth_outside to global - outside, which swaps the meaning of
    "outside" for every position bounded by this tick. Crossing twice in
    opposite directions restores the previous values.

    Returns:
        The tick's liquidity_net (zero for an unregistered tick)
    """
    if not store.has_tick(tick):
        return 0

    info = store.get_tick(tick)
    info.fee_growth_outside_0 = wrapping_sub(fee_growth_global_0, info.fee_growth_outside_0)
    info.fee_growth_outside_1 = wrapping_sub(fee_growth_global_1, info.fee_growth_outside_1)
    store.set_tick(tick, info)

    return info.liquidity_net


def find_next_initialized_tick(
    store: StateStore,
    current_tick: int,
    tick_spacing: int,
    zero_for_one: bool,
    max_steps: int,
) -> int:
    """
    Find the next initialized tick in the trade direction.

    Searching down (zero_for_one) considers the spacing-aligned current tick
    itself; searching up starts one spacing above it. At most ``max_steps``
    registered candidates are examined.

    Returns:
        The next initialized tick, or ``current_tick`` if none is found
    """
    if tick_spacing <= 0:
        return current_tick

    aligned = snap_to_spacing(current_tick, tick_spacing)

    if zero_for_one:
        candidate = store.tick_at_or_below(aligned)
    else:
        candidate = store.tick_above(aligned + tick_spacing - 1)

    for _ in range(max_steps):
        if candidate is None or not MIN_TICK <= candidate <= MAX_TICK:
            return current_tick

        info = store.get_tick(candidate)
        if info.initialized and info.liquidity_gross > 0:
            return candidate

        if zero_for_one:
            candidate = store.tick_at_or_below(candidate - 1)
        else:
            candidate = store.tick_above(candidate)

    logger.warning(
        "Tick search gave up after %d candidates",
        max_steps,
        extra={"event": "clmm.tick_search_capped", "tick": current_tick},
    )
    return current_tick
