"""
Concentrated liquidity pool.

Caller-facing facade over the engine modules. Every mutating call runs
inside a StateTransaction over the injected store:

1. validate the request (nothing written yet)
2. run the engine against the transaction
3. settle token transfers through the custody ledger
4. commit the transaction, then publish events

A failure at any step discards the transaction, and transfers already made
by a failed settlement are reversed, so the pool is all-or-nothing.

Prices are always quoted as token1 per token0, with token0 < token1.
"""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

from .. import config
from ..exceptions import (
    ConfigurationError,
    InsufficientLiquidityError,
    PoolError,
    PriceLimitError,
    ReasonCode,
    ReentrancyError,
    SlippageError,
    StateError,
    SwapIterationLimitError,
    TickOutOfRangeError,
    ValidationError,
)
from .custody import TokenLedger, Transfer
from .events import EventSink, LoggingEventSink
from .fee_growth import accrue, fee_growth_inside, pending_fees
from .fixed_point import saturating_add_i128, saturating_add_u128, saturating_sub_i128
from .liquidity_math import get_amounts_for_liquidity, get_liquidity_for_amounts
from .positions import clear_fees, modify_position
from .storage import PoolConfig, PoolState, StateStore, StateTransaction
from .swap import SwapOutcome, engine_swap
from .tick_math import (
    MAX_SQRT_PRICE,
    MIN_SQRT_PRICE,
    is_valid_tick,
    snap_to_spacing,
    sqrt_price_to_tick,
    tick_to_sqrt_price,
)
from .ticks import TickInfo, update_tick

logger = logging.getLogger(__name__)

MAX_FEE_BPS = 9999
MAX_PROTOCOL_FEE_BPS = 10000


@dataclass
class SwapResult:
    """Executed swap."""
    amount_in: int      # Input pulled from the caller, fees included
    amount_out: int
    current_tick: int
    sqrt_price: int
    fee_paid: int


@dataclass
class SwapQuote:
    """Simulated swap. ``reason`` is set whenever ``is_valid`` is False."""
    amount_in_used: int = 0
    amount_out_expected: int = 0
    fee_paid: int = 0
    price_impact_bps: int = 0
    sqrt_price_after: int = 0
    tick_after: int = 0
    hit_iteration_limit: bool = False
    is_valid: bool = False
    reason: ReasonCode | None = None

    @classmethod
    def rejected(cls, reason: ReasonCode) -> "SwapQuote":
        return cls(is_valid=False, reason=reason)


@dataclass
class PositionInfo:
    """Read-only view of a position, pending fees included."""
    liquidity: int
    amount0: int
    amount1: int
    fees_owed_0: int
    fees_owed_1: int


def price_impact_bps(sqrt_price_before: int, sqrt_price_after: int) -> int:
    """Relative change of the price (not the sqrt price) in basis points."""
    price_before = sqrt_price_before * sqrt_price_before
    if price_before == 0:
        return 0
    price_after = sqrt_price_after * sqrt_price_after
    return abs(price_after - price_before) * 10000 // price_before


class ConcentratedLiquidityPool:
    """
    Uniswap V3-style concentrated liquidity pool.

    Key features:
    - LPs provide liquidity in specific price ranges
    - Swap fees accumulate only while the price is inside a range
    - A configurable share of every fee goes to the protocol

    State lives in the injected StateStore; tokens live in the injected
    TokenLedger under ``address``.
    """

    def __init__(
        self,
        store: StateStore,
        custody: TokenLedger,
        events: EventSink | None = None,
        address: str = "",
        authorizer: Callable[[str], None] | None = None,
        max_swap_iterations: int | None = None,
        max_tick_search_steps: int | None = None,
        min_liquidity: int | None = None,
    ) -> None:
        self.store = store
        self.custody = custody
        self.events = events or LoggingEventSink()
        self.authorizer = authorizer
        self.max_swap_iterations = max_swap_iterations or config.MAX_SWAP_ITERATIONS
        self.max_tick_search_steps = max_tick_search_steps or config.MAX_TICK_SEARCH_STEPS
        self.min_liquidity = min_liquidity if min_liquidity is not None else config.MIN_LIQUIDITY

        if not address:
            addr_hash = hashlib.sha3_256(
                f"clmm:{id(store)}:{time.time()}".encode()
            ).digest()
            address = f"0x{addr_hash[-20:].hex()}"
        self.address = address

        # Reentrancy guard
        self._locked = False

    # ==================== Initialization ====================

    def initialize(
        self,
        admin: str,
        token_a: str,
        token_b: str,
        fee_bps: int,
        protocol_fee_bps: int,
        tick_spacing: int,
        initial_tick: int = 0,
        initial_sqrt_price: int | None = None,
    ) -> PoolState:
        """
        Create the pool record.

        Args:
            admin: Identity allowed to collect protocol fees
            token_a, token_b: Pool assets, in any order
            fee_bps: Swap fee (1..9999)
            protocol_fee_bps: Protocol share of each fee (0..10000)
            tick_spacing: Distance between usable ticks
            initial_tick: Starting tick, snapped to spacing when no price given
            initial_sqrt_price: Starting sqrt price (64.64); its tick must
                equal ``initial_tick``

        Returns:
            The initial PoolState
        """
        self._authorize(admin)

        with self._transaction() as tx:
            if tx.get_pool_config() is not None:
                raise StateError("Pool already initialized")
            if token_a == token_b:
                raise ValidationError("Pool assets must differ", ReasonCode.SAME_TOKEN)
            if not 1 <= fee_bps <= MAX_FEE_BPS:
                raise ConfigurationError(
                    f"Fee must be between 1 and {MAX_FEE_BPS} bps",
                    details={"fee_bps": fee_bps},
                )
            if not 0 <= protocol_fee_bps <= MAX_PROTOCOL_FEE_BPS:
                raise ConfigurationError(
                    f"Protocol fee must be between 0 and {MAX_PROTOCOL_FEE_BPS} bps",
                    details={"protocol_fee_bps": protocol_fee_bps},
                )
            if tick_spacing <= 0:
                raise ConfigurationError(
                    "Tick spacing must be positive", details={"tick_spacing": tick_spacing}
                )

            if initial_sqrt_price is None:
                tick = snap_to_spacing(initial_tick, tick_spacing)
                if not is_valid_tick(tick):
                    raise TickOutOfRangeError(tick)
                sqrt_price = tick_to_sqrt_price(tick)
            else:
                if not MIN_SQRT_PRICE <= initial_sqrt_price < MAX_SQRT_PRICE:
                    raise ConfigurationError(
                        "Initial sqrt price outside the supported range",
                        details={"sqrt_price": initial_sqrt_price},
                    )
                tick = sqrt_price_to_tick(initial_sqrt_price)
                if tick != initial_tick:
                    raise ConfigurationError(
                        f"Initial sqrt price maps to tick {tick}, not {initial_tick}",
                        details={"tick": tick, "initial_tick": initial_tick},
                    )
                sqrt_price = initial_sqrt_price

            token0, token1 = sorted((token_a, token_b))
            tx.set_pool_config(PoolConfig(
                admin=admin,
                token0=token0,
                token1=token1,
                fee_bps=fee_bps,
                protocol_fee_bps=protocol_fee_bps,
                tick_spacing=tick_spacing,
            ))
            state = PoolState(
                sqrt_price=sqrt_price,
                current_tick=tick,
                tick_spacing=tick_spacing,
                token0=token0,
                token1=token1,
            )
            tx.set_pool_state(state)
            tx.commit()

        self.events.publish("initialized", {
            "pool": self.address,
            "token0": token0,
            "token1": token1,
            "fee_bps": fee_bps,
            "tick_spacing": tick_spacing,
            "tick": tick,
        })
        return state

    # ==================== Swaps ====================

    def get_swap_direction(self, token_in: str) -> bool:
        """True when ``token_in`` is token0 (price moves down)."""
        _, state = self._load(self.store)
        return token_in == state.token0

    def swap(
        self,
        caller: str,
        amount_in: int,
        zero_for_one: bool,
        sqrt_price_limit: int | None = None,
        min_amount_out: int = 0,
    ) -> SwapResult:
        """
        Execute an exact-input swap.

        Args:
            caller: Pays the input and receives the output
            amount_in: Input amount, fees included
            zero_for_one: True for token0 -> token1
            sqrt_price_limit: Price the swap must not move past
            min_amount_out: Minimum acceptable output

        Returns:
            SwapResult; amount_in may be below the requested amount when the
            price limit or the available liquidity stops the swap early

        Raises:
            ValidationError: zero amount, no liquidity, bad limit, slippage
            SwapIterationLimitError: the loop ran out of iterations
        """
        self._authorize(caller)

        with self._transaction() as tx:
            pool_config, state = self._load(tx)
            try:
                self._validate_swap(state, amount_in, zero_for_one, sqrt_price_limit)
                outcome = self._run_swap(tx, pool_config, state, amount_in, zero_for_one, sqrt_price_limit)
                if outcome.hit_iteration_limit:
                    raise SwapIterationLimitError(
                        f"Swap stopped after {outcome.iterations} iterations with input left over",
                        details={"amount_in": amount_in, "consumed": outcome.amount_in},
                    )
                self._check_slippage(outcome, min_amount_out)
            except PoolError as exc:
                self._log_rejected("swap", exc)
                raise

            tx.set_pool_state(state)

            token_in, token_out = (
                (state.token0, state.token1) if zero_for_one else (state.token1, state.token0)
            )
            self._settle([
                Transfer(caller, self.address, token_in, outcome.amount_in),
                Transfer(self.address, caller, token_out, outcome.amount_out),
            ])
            tx.commit()

        self.events.publish("swap", {
            "sender": caller,
            "amount_in": outcome.amount_in,
            "amount_out": outcome.amount_out,
            "zero_for_one": zero_for_one,
            "fee_paid": outcome.fee_paid,
            "protocol_fee": outcome.protocol_fee,
        })
        self.events.publish("sync_tick", {
            "tick": state.current_tick,
            "sqrt_price": state.sqrt_price,
            "liquidity": state.liquidity,
            "ticks_crossed": outcome.ticks_crossed,
        })

        return SwapResult(
            amount_in=outcome.amount_in,
            amount_out=outcome.amount_out,
            current_tick=state.current_tick,
            sqrt_price=state.sqrt_price,
            fee_paid=outcome.fee_paid,
        )

    def swap_tokens(
        self,
        caller: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int = 0,
        sqrt_price_limit: int | None = None,
    ) -> SwapResult:
        """Swap by token identity; the direction is detected from ``token_in``."""
        _, state = self._load(self.store)
        reason = self._check_pair(state, token_in, token_out)
        if reason is not None:
            raise ValidationError(
                f"Invalid token pair {token_in} -> {token_out}",
                reason,
                details={"token_in": token_in, "token_out": token_out},
            )
        return self.swap(caller, amount_in, token_in == state.token0, sqrt_price_limit, min_amount_out)

    def quote_swap(
        self,
        amount_in: int,
        zero_for_one: bool,
        sqrt_price_limit: int | None = None,
        min_amount_out: int = 0,
    ) -> SwapQuote:
        """
        Simulate a swap with the exact arithmetic of swap().

        Never mutates state and never raises a validation error; a rejection
        comes back as ``is_valid=False`` with the reason swap() would raise.
        An iteration-capped run returns its partial result with
        ``hit_iteration_limit`` set.
        """
        if not self._is_initialized():
            return SwapQuote.rejected(ReasonCode.NOT_INITIALIZED)

        tx = StateTransaction(self.store)
        try:
            pool_config, state = self._load(tx)
            sqrt_price_before = state.sqrt_price
            try:
                self._validate_swap(state, amount_in, zero_for_one, sqrt_price_limit)
                outcome = self._run_swap(tx, pool_config, state, amount_in, zero_for_one, sqrt_price_limit)
                self._check_slippage(outcome, min_amount_out)
            except ValidationError as exc:
                return SwapQuote.rejected(exc.reason)
        finally:
            tx.discard()

        return SwapQuote(
            amount_in_used=outcome.amount_in,
            amount_out_expected=outcome.amount_out,
            fee_paid=outcome.fee_paid,
            price_impact_bps=price_impact_bps(sqrt_price_before, outcome.sqrt_price),
            sqrt_price_after=outcome.sqrt_price,
            tick_after=outcome.current_tick,
            hit_iteration_limit=outcome.hit_iteration_limit,
            is_valid=not outcome.hit_iteration_limit,
            reason=ReasonCode.ITERATION_LIMIT if outcome.hit_iteration_limit else None,
        )

    def preview_swap(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int = 0,
        sqrt_price_limit: int | None = None,
    ) -> SwapQuote:
        """quote_swap() by token identity."""
        if not self._is_initialized():
            return SwapQuote.rejected(ReasonCode.NOT_INITIALIZED)

        _, state = self._load(self.store)
        reason = self._check_pair(state, token_in, token_out)
        if reason is not None:
            return SwapQuote.rejected(reason)
        return self.quote_swap(amount_in, token_in == state.token0, sqrt_price_limit, min_amount_out)

    # ==================== Liquidity ====================

    def add_liquidity(
        self,
        owner: str,
        tick_lower: int,
        tick_upper: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int = 0,
        amount1_min: int = 0,
    ) -> tuple[int, int, int]:
        """
        Deposit into [tick_lower, tick_upper).

        Ticks are snapped down to the pool's spacing. The liquidity is the
        largest amount neither desired amount falls short of.

        Returns:
            (liquidity, amount0, amount1) - amounts pulled from ``owner``
        """
        self._authorize(owner)

        with self._transaction() as tx:
            _, state = self._load(tx)
            try:
                lower, upper = self._validate_range(state, tick_lower, tick_upper)
                sqrt_lower = tick_to_sqrt_price(lower)
                sqrt_upper = tick_to_sqrt_price(upper)

                liquidity = get_liquidity_for_amounts(
                    amount0_desired, amount1_desired, sqrt_lower, sqrt_upper, state.sqrt_price
                )
                if liquidity < self.min_liquidity:
                    raise ValidationError(
                        f"Liquidity {liquidity} below minimum {self.min_liquidity}",
                        ReasonCode.LIQUIDITY_TOO_LOW,
                        details={"liquidity": liquidity},
                    )

                amount0, amount1 = get_amounts_for_liquidity(
                    liquidity, sqrt_lower, sqrt_upper, state.sqrt_price, round_up=True
                )
                if amount0 < amount0_min or amount1 < amount1_min:
                    raise SlippageError(
                        "Deposit amounts below minimums",
                        details={"amount0": amount0, "amount1": amount1},
                    )
            except PoolError as exc:
                self._log_rejected("add_liquidity", exc)
                raise

            # Ticks first: their seeding feeds fee_growth_inside
            update_tick(tx, lower, state.current_tick, liquidity,
                        state.fee_growth_global_0, state.fee_growth_global_1, upper=False)
            update_tick(tx, upper, state.current_tick, liquidity,
                        state.fee_growth_global_0, state.fee_growth_global_1, upper=True)

            inside_0, inside_1 = fee_growth_inside(
                tx, lower, upper, state.current_tick,
                state.fee_growth_global_0, state.fee_growth_global_1,
            )
            position = tx.get_position(owner, lower, upper)
            modify_position(position, liquidity, inside_0, inside_1)
            tx.set_position(owner, lower, upper, position)

            if lower <= state.current_tick < upper:
                state.liquidity = saturating_add_i128(state.liquidity, liquidity)
            tx.set_pool_state(state)

            self._settle([
                Transfer(owner, self.address, state.token0, amount0),
                Transfer(owner, self.address, state.token1, amount1),
            ])
            tx.commit()

        self.events.publish("add_liquidity", {
            "owner": owner,
            "tick_lower": lower,
            "tick_upper": upper,
            "liquidity": liquidity,
            "amount0": amount0,
            "amount1": amount1,
        })
        return liquidity, amount0, amount1

    def add_liquidity_for_tokens(
        self,
        owner: str,
        token_a: str,
        token_b: str,
        amount_a_desired: int,
        amount_b_desired: int,
        amount_a_min: int,
        amount_b_min: int,
        tick_lower: int,
        tick_upper: int,
    ) -> tuple[int, int, int]:
        """add_liquidity() with amounts given in the caller's token order."""
        _, state = self._load(self.store)
        reason = self._check_pair(state, token_a, token_b)
        if reason is not None:
            raise ValidationError(
                f"Invalid token pair {token_a}/{token_b}",
                reason,
                details={"token_a": token_a, "token_b": token_b},
            )

        if token_a == state.token0:
            return self.add_liquidity(owner, tick_lower, tick_upper,
                                      amount_a_desired, amount_b_desired, amount_a_min, amount_b_min)
        return self.add_liquidity(owner, tick_lower, tick_upper,
                                  amount_b_desired, amount_a_desired, amount_b_min, amount_a_min)

    def remove_liquidity(
        self,
        owner: str,
        tick_lower: int,
        tick_upper: int,
        liquidity_delta: int,
    ) -> tuple[int, int]:
        """
        Withdraw ``liquidity_delta`` from a position.

        Fees earned so far are accrued and stay owed on the position until
        collect().

        Returns:
            (amount0, amount1) paid to ``owner``
        """
        self._authorize(owner)

        with self._transaction() as tx:
            _, state = self._load(tx)
            lower = snap_to_spacing(tick_lower, state.tick_spacing)
            upper = snap_to_spacing(tick_upper, state.tick_spacing)
            position = tx.get_position(owner, lower, upper)

            try:
                if liquidity_delta <= 0:
                    raise ValidationError(
                        "Liquidity to remove must be positive",
                        ReasonCode.ZERO_AMOUNT,
                        details={"liquidity_delta": liquidity_delta},
                    )
                if liquidity_delta > position.liquidity:
                    raise InsufficientLiquidityError(
                        f"Position holds {position.liquidity} liquidity, cannot remove {liquidity_delta}",
                        details={"liquidity": position.liquidity, "delta": liquidity_delta},
                    )
            except PoolError as exc:
                self._log_rejected("remove_liquidity", exc)
                raise

            # Fee growth inside before the ticks can be cleared
            inside_0, inside_1 = fee_growth_inside(
                tx, lower, upper, state.current_tick,
                state.fee_growth_global_0, state.fee_growth_global_1,
            )
            modify_position(position, -liquidity_delta, inside_0, inside_1)
            if position.is_empty:
                tx.delete_position(owner, lower, upper)
            else:
                tx.set_position(owner, lower, upper, position)

            update_tick(tx, lower, state.current_tick, -liquidity_delta,
                        state.fee_growth_global_0, state.fee_growth_global_1, upper=False)
            update_tick(tx, upper, state.current_tick, -liquidity_delta,
                        state.fee_growth_global_0, state.fee_growth_global_1, upper=True)

            if lower <= state.current_tick < upper:
                state.liquidity = max(saturating_sub_i128(state.liquidity, liquidity_delta), 0)
            tx.set_pool_state(state)

            amount0, amount1 = get_amounts_for_liquidity(
                liquidity_delta,
                tick_to_sqrt_price(lower),
                tick_to_sqrt_price(upper),
                state.sqrt_price,
            )

            self._settle([
                Transfer(self.address, owner, state.token0, amount0),
                Transfer(self.address, owner, state.token1, amount1),
            ])
            tx.commit()

        self.events.publish("remove_liquidity", {
            "owner": owner,
            "tick_lower": lower,
            "tick_upper": upper,
            "liquidity": liquidity_delta,
            "amount0": amount0,
            "amount1": amount1,
        })
        return amount0, amount1

    # ==================== Fees ====================

    def collect(self, owner: str, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        """
        Pay out a position's owed fees.

        Payouts are capped at the pool's custody balance; any remainder stays
        owed.

        Returns:
            (amount0, amount1) actually paid
        """
        self._authorize(owner)

        with self._transaction() as tx:
            _, state = self._load(tx)
            lower = snap_to_spacing(tick_lower, state.tick_spacing)
            upper = snap_to_spacing(tick_upper, state.tick_spacing)

            position = tx.get_position(owner, lower, upper)
            inside_0, inside_1 = fee_growth_inside(
                tx, lower, upper, state.current_tick,
                state.fee_growth_global_0, state.fee_growth_global_1,
            )
            accrue(position, inside_0, inside_1)

            amount0 = self._capped_payout(position.tokens_owed_0, state.token0)
            amount1 = self._capped_payout(position.tokens_owed_1, state.token1)
            clear_fees(position, amount0, amount1)

            if position.is_empty:
                tx.delete_position(owner, lower, upper)
            else:
                tx.set_position(owner, lower, upper, position)

            self._settle([
                Transfer(self.address, owner, state.token0, amount0),
                Transfer(self.address, owner, state.token1, amount1),
            ])
            tx.commit()

        self.events.publish("collect", {
            "owner": owner,
            "tick_lower": lower,
            "tick_upper": upper,
            "amount0": amount0,
            "amount1": amount1,
        })
        return amount0, amount1

    def collect_protocol_fees(self, caller: str, recipient: str) -> tuple[int, int]:
        """Pay the accumulated protocol share to ``recipient``. Admin only."""
        self._authorize(caller)

        with self._transaction() as tx:
            pool_config, state = self._load(tx)
            if caller != pool_config.admin:
                exc = ValidationError(
                    "Only the pool admin can collect protocol fees",
                    ReasonCode.NOT_OWNER,
                    details={"caller": caller},
                )
                self._log_rejected("collect_protocol", exc)
                raise exc

            amount0 = self._capped_payout(state.protocol_fees_0, state.token0)
            amount1 = self._capped_payout(state.protocol_fees_1, state.token1)
            state.protocol_fees_0 -= amount0
            state.protocol_fees_1 -= amount1
            tx.set_pool_state(state)

            self._settle([
                Transfer(self.address, recipient, state.token0, amount0),
                Transfer(self.address, recipient, state.token1, amount1),
            ])
            tx.commit()

        self.events.publish("collect_protocol", {
            "recipient": recipient,
            "amount0": amount0,
            "amount1": amount1,
        })
        return amount0, amount1

    # ==================== Views ====================

    def get_pool_state(self) -> PoolState:
        _, state = self._load(self.store)
        return state

    def get_pool_config(self) -> PoolConfig:
        pool_config, _ = self._load(self.store)
        return pool_config

    def get_tick_info(self, tick: int) -> TickInfo:
        """Tick record, zeroed if the tick is not registered."""
        return self.store.get_tick(tick)

    def get_position(self, owner: str, tick_lower: int, tick_upper: int) -> PositionInfo:
        """Position with its token amounts at the current price and all fees earned so far."""
        _, state = self._load(self.store)
        lower = snap_to_spacing(tick_lower, state.tick_spacing)
        upper = snap_to_spacing(tick_upper, state.tick_spacing)
        position = self.store.get_position(owner, lower, upper)

        if position.liquidity == 0:
            return PositionInfo(
                liquidity=0,
                amount0=0,
                amount1=0,
                fees_owed_0=position.tokens_owed_0,
                fees_owed_1=position.tokens_owed_1,
            )

        amount0, amount1 = get_amounts_for_liquidity(
            position.liquidity,
            tick_to_sqrt_price(lower),
            tick_to_sqrt_price(upper),
            state.sqrt_price,
        )
        inside_0, inside_1 = fee_growth_inside(
            self.store, lower, upper, state.current_tick,
            state.fee_growth_global_0, state.fee_growth_global_1,
        )
        pending_0, pending_1 = pending_fees(position, inside_0, inside_1)

        return PositionInfo(
            liquidity=position.liquidity,
            amount0=amount0,
            amount1=amount1,
            fees_owed_0=saturating_add_u128(position.tokens_owed_0, pending_0),
            fees_owed_1=saturating_add_u128(position.tokens_owed_1, pending_1),
        )

    # ==================== Helpers ====================

    def _require_not_locked(self) -> None:
        if self._locked:
            raise ReentrancyError("Pool is locked")

    def _authorize(self, identity: str) -> None:
        if self.authorizer is not None:
            self.authorizer(identity)

    @contextmanager
    def _transaction(self) -> Iterator[StateTransaction]:
        self._require_not_locked()
        self._locked = True
        tx = StateTransaction(self.store)
        try:
            yield tx
        except BaseException:
            tx.discard()
            raise
        finally:
            self._locked = False

    def _is_initialized(self) -> bool:
        return self.store.get_pool_config() is not None and self.store.get_pool_state() is not None

    def _load(self, store: StateStore) -> tuple[PoolConfig, PoolState]:
        pool_config = store.get_pool_config()
        state = store.get_pool_state()
        if pool_config is None or state is None:
            raise StateError("Pool not initialized")
        return pool_config, state

    def _settle(self, transfers: Iterable[Transfer]) -> None:
        """Execute transfers in order; reverse completed ones if any fails."""
        completed: list[Transfer] = []
        try:
            for transfer in transfers:
                if transfer.amount <= 0:
                    continue
                self.custody.transfer(transfer.sender, transfer.recipient, transfer.asset, transfer.amount)
                completed.append(transfer)
        except Exception:
            for transfer in reversed(completed):
                undo = transfer.reversed()
                self.custody.transfer(undo.sender, undo.recipient, undo.asset, undo.amount)
            logger.warning(
                "Settlement failed, %d transfer(s) reversed",
                len(completed),
                extra={"event": "clmm.settlement_reverted", "pool": self.address[:10]},
            )
            raise

    def _capped_payout(self, owed: int, token: str) -> int:
        available = self.custody.balance(self.address, token)
        if owed > available:
            logger.warning(
                "Payout of %d %s capped at pool balance %d",
                owed,
                token,
                available,
                extra={"event": "clmm.payout_capped", "pool": self.address[:10]},
            )
            return available
        return owed

    def _check_pair(self, state: PoolState, token_in: str, token_out: str) -> ReasonCode | None:
        pool_tokens = (state.token0, state.token1)
        if token_in not in pool_tokens or token_out not in pool_tokens:
            return ReasonCode.BAD_TOKEN
        if token_in == token_out:
            return ReasonCode.SAME_TOKEN
        return None

    def _validate_swap(
        self,
        state: PoolState,
        amount_in: int,
        zero_for_one: bool,
        sqrt_price_limit: int | None,
    ) -> None:
        if amount_in <= 0:
            raise ValidationError(
                "Swap amount must be positive", ReasonCode.ZERO_AMOUNT, details={"amount_in": amount_in}
            )
        if state.liquidity <= 0:
            raise ValidationError("Pool has no active liquidity", ReasonCode.NO_LIQUIDITY)
        if sqrt_price_limit is None:
            return
        if zero_for_one:
            valid = MIN_SQRT_PRICE <= sqrt_price_limit < state.sqrt_price
        else:
            valid = state.sqrt_price < sqrt_price_limit <= MAX_SQRT_PRICE
        if not valid:
            raise PriceLimitError(
                "Price limit already exceeded or out of range",
                details={"sqrt_price_limit": sqrt_price_limit, "sqrt_price": state.sqrt_price},
            )

    def _run_swap(
        self,
        store: StateStore,
        pool_config: PoolConfig,
        state: PoolState,
        amount_in: int,
        zero_for_one: bool,
        sqrt_price_limit: int | None,
    ) -> SwapOutcome:
        return engine_swap(
            store,
            state,
            amount_in,
            zero_for_one,
            sqrt_price_limit,
            fee_bps=pool_config.fee_bps,
            protocol_fee_bps=pool_config.protocol_fee_bps,
            max_iterations=self.max_swap_iterations,
            max_tick_search_steps=self.max_tick_search_steps,
        )

    @staticmethod
    def _check_slippage(outcome: SwapOutcome, min_amount_out: int) -> None:
        if outcome.amount_out < min_amount_out:
            raise SlippageError(
                f"Output {outcome.amount_out} below minimum {min_amount_out}",
                details={"amount_out": outcome.amount_out, "min_amount_out": min_amount_out},
            )

    def _validate_range(self, state: PoolState, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        lower = snap_to_spacing(tick_lower, state.tick_spacing)
        upper = snap_to_spacing(tick_upper, state.tick_spacing)
        if lower >= upper:
            raise ValidationError(
                f"Invalid tick range [{lower}, {upper}]",
                ReasonCode.INVALID_RANGE,
                details={"tick_lower": lower, "tick_upper": upper},
            )
        for tick in (lower, upper):
            if not is_valid_tick(tick):
                raise TickOutOfRangeError(tick)
        return lower, upper

    def _log_rejected(self, operation: str, exc: PoolError) -> None:
        logger.info(
            "%s rejected: %s",
            operation,
            exc.message,
            extra={
                "event": "clmm.rejected",
                "operation": operation,
                "reason": getattr(exc, "reason", None),
                "pool": self.address[:10],
            },
        )

    def describe(self) -> dict[str, Any]:
        """Summary of the pool for display."""
        pool_config, state = self._load(self.store)
        return {
            "address": self.address,
            "token0": state.token0,
            "token1": state.token1,
            "fee_bps": pool_config.fee_bps,
            "protocol_fee_bps": pool_config.protocol_fee_bps,
            "tick_spacing": state.tick_spacing,
            "sqrt_price": state.sqrt_price,
            "tick": state.current_tick,
            "liquidity": state.liquidity,
        }
