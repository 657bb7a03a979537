"""
Swap engine.

Walks the price across initialized ticks until the input is spent, active
liquidity runs out, the caller's price limit is reached or the iteration cap
is hit. Every step:

1. locate the next initialized tick and clamp its price to the caller's limit
2. reserve the fee from the remaining input
3. move the price against the current liquidity (liquidity_math)
4. recover the fee actually paid and split off the protocol share
5. add the LP share to the global fee-growth accumulator
6. cross the tick if its boundary was reached, otherwise settle the price

The same function serves execution and quotes; a quote runs it against a
transaction that is later discarded, so both paths are bit-identical.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .fixed_point import (
    MAX_U128,
    div_q64,
    mul_div,
    saturating_add_i128,
    saturating_add_u128,
    saturating_sub_i128,
    wrapping_add,
)
from .liquidity_math import compute_swap_step_with_target
from .tick_math import (
    MAX_SQRT_PRICE,
    MAX_TICK,
    MIN_SQRT_PRICE,
    MIN_TICK,
    sqrt_price_to_tick,
    tick_to_sqrt_price,
)
from .ticks import cross_tick, find_next_initialized_tick

if TYPE_CHECKING:
    from .storage import PoolState, StateStore

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10000

# Per-step fee growth stays under half the counter modulus
MAX_FEE_GROWTH_STEP = MAX_U128 >> 1


@dataclass
class SwapOutcome:
    """Result of one run of the swap loop."""
    amount_in: int = 0       # Input consumed, fees included
    amount_out: int = 0
    fee_paid: int = 0        # Total fee, protocol share included
    protocol_fee: int = 0
    sqrt_price: int = 0
    current_tick: int = 0
    liquidity: int = 0
    iterations: int = 0
    ticks_crossed: int = 0
    hit_iteration_limit: bool = False


def default_price_limit(zero_for_one: bool) -> int:
    return MIN_SQRT_PRICE if zero_for_one else MAX_SQRT_PRICE


def step_fee_for(amount_in: int, amount_available: int, amount_remaining: int, fee_bps: int) -> int:
    """
    Fee paid for a step that consumed ``amount_in``.

    If the step used all of the available input the fee is whatever is left
    of the remaining amount; otherwise it is grossed up from amount_in,
    rounded up.
    """
    if amount_in == amount_available:
        return amount_remaining - amount_in
    return mul_div(amount_in, fee_bps, BPS_DENOMINATOR - fee_bps, round_up=True)


def engine_swap(
    store: StateStore,
    state: PoolState,
    amount_specified: int,
    zero_for_one: bool,
    sqrt_price_limit: int | None,
    fee_bps: int,
    protocol_fee_bps: int,
    max_iterations: int,
    max_tick_search_steps: int,
) -> SwapOutcome:
    """
    Run the swap loop, updating ``state`` and the tick records in ``store``.

    Args:
        store: Store (normally a StateTransaction) holding tick records
        state: Pool state to update in place
        amount_specified: Exact input amount, fees included
        zero_for_one: True for token0 -> token1 (price moves down)
        sqrt_price_limit: Price the swap must not move past (None = no limit)
        fee_bps: Swap fee in basis points
        protocol_fee_bps: Protocol share of the fee in basis points
        max_iterations: Hard cap on loop iterations
        max_tick_search_steps: Cap passed to find_next_initialized_tick

    Returns:
        SwapOutcome; amount_in is amount_specified minus what was left over
    """
    outcome = SwapOutcome(
        sqrt_price=state.sqrt_price,
        current_tick=state.current_tick,
        liquidity=state.liquidity,
    )
    if amount_specified <= 0 or state.liquidity <= 0:
        return outcome

    limit = sqrt_price_limit if sqrt_price_limit is not None else default_price_limit(zero_for_one)

    amount_remaining = amount_specified
    sqrt_price = state.sqrt_price
    liquidity = state.liquidity
    current_tick = state.current_tick

    while amount_remaining > 0 and liquidity > 0:
        if outcome.iterations >= max_iterations:
            outcome.hit_iteration_limit = True
            break
        outcome.iterations += 1

        # 1. Next boundary
        next_tick = find_next_initialized_tick(
            store, current_tick, state.tick_spacing, zero_for_one, max_tick_search_steps
        )
        if zero_for_one:
            found = next_tick < current_tick or store.has_tick(next_tick)
        else:
            found = next_tick > current_tick
        if not found:
            next_tick = MIN_TICK if zero_for_one else MAX_TICK

        sqrt_price_next_tick = tick_to_sqrt_price(next_tick)
        if zero_for_one:
            sqrt_target = max(sqrt_price_next_tick, limit)
        else:
            sqrt_target = min(sqrt_price_next_tick, limit)
        clamped_by_limit = sqrt_target != sqrt_price_next_tick

        # 2. Reserve the fee
        amount_available = amount_remaining * (BPS_DENOMINATOR - fee_bps) // BPS_DENOMINATOR

        # 3. Price movement
        if sqrt_price == sqrt_target:
            sqrt_next, amount_in, amount_out = sqrt_price, 0, 0
        else:
            sqrt_next, amount_in, amount_out = compute_swap_step_with_target(
                sqrt_price, liquidity, amount_available, zero_for_one, sqrt_target
            )
        amount_in = min(amount_in, amount_available)

        target_reached = sqrt_next == sqrt_target
        if zero_for_one:
            moving_forward = sqrt_target <= sqrt_price
        else:
            moving_forward = sqrt_target >= sqrt_price
        crossing = target_reached and moving_forward and not clamped_by_limit

        if not crossing and sqrt_next == sqrt_price:
            # No progress possible
            break

        # 4. Fee actually paid
        step_fee = step_fee_for(amount_in, amount_available, amount_remaining, fee_bps)
        protocol_fee = step_fee * protocol_fee_bps // BPS_DENOMINATOR
        lp_fee = step_fee - protocol_fee

        amount_remaining -= amount_in + step_fee
        outcome.amount_out += amount_out
        outcome.fee_paid += step_fee
        outcome.protocol_fee += protocol_fee

        # 5. Fee growth (LP share only)
        if lp_fee > 0:
            growth = min(div_q64(lp_fee, liquidity), MAX_FEE_GROWTH_STEP)
            if zero_for_one:
                state.fee_growth_global_0 = wrapping_add(state.fee_growth_global_0, growth)
            else:
                state.fee_growth_global_1 = wrapping_add(state.fee_growth_global_1, growth)
        if protocol_fee > 0:
            if zero_for_one:
                state.protocol_fees_0 = saturating_add_u128(state.protocol_fees_0, protocol_fee)
            else:
                state.protocol_fees_1 = saturating_add_u128(state.protocol_fees_1, protocol_fee)

        # 6. Cross or settle
        if crossing:
            sqrt_price = sqrt_target
            if not found:
                # Pinned at the edge of the tick domain
                current_tick = sqrt_price_to_tick(sqrt_price)
                break

            liquidity_net = cross_tick(
                store, next_tick, state.fee_growth_global_0, state.fee_growth_global_1
            )
            if zero_for_one:
                liquidity = saturating_sub_i128(liquidity, liquidity_net)
                current_tick = next_tick - 1
            else:
                liquidity = saturating_add_i128(liquidity, liquidity_net)
                current_tick = next_tick
            outcome.ticks_crossed += 1
        else:
            sqrt_price = sqrt_next
            current_tick = sqrt_price_to_tick(sqrt_price)
            if target_reached:
                # Stopped at the caller's price limit
                break

    state.sqrt_price = sqrt_price
    state.liquidity = liquidity
    state.current_tick = current_tick

    outcome.amount_in = amount_specified - amount_remaining
    outcome.sqrt_price = sqrt_price
    outcome.current_tick = current_tick
    outcome.liquidity = liquidity

    logger.debug(
        "Swap loop finished",
        extra={
            "event": "clmm.swap_loop",
            "iterations": outcome.iterations,
            "ticks_crossed": outcome.ticks_crossed,
            "hit_iteration_limit": outcome.hit_iteration_limit,
        },
    )
    return outcome
