"""
State store contract and in-memory implementations.

The engine never holds pool, tick or position records between calls; each
call loads what it needs through a StateStore and writes back through the
same interface. Stores hand out copies, so a record only changes in the
store when it is explicitly set.

StateTransaction buffers every write of a call on top of a base store. A
mutating operation commits the buffer once the whole call has succeeded;
a preview simply discards it.
"""

from __future__ import annotations

import bisect
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from .positions import Position
from .ticks import TickInfo

PositionKey = tuple[str, int, int]


@dataclass
class PoolConfig:
    """Static pool parameters, fixed at initialization."""
    admin: str
    token0: str
    token1: str
    fee_bps: int
    protocol_fee_bps: int
    tick_spacing: int


@dataclass
class PoolState:
    """
    Dynamic pool state.

    Invariants:
    - current_tick is the tick whose price interval contains sqrt_price
    - liquidity equals the sum of liquidity_net over initialized ticks at or
      below current_tick
    """
    sqrt_price: int
    current_tick: int
    tick_spacing: int
    token0: str
    token1: str
    liquidity: int = 0

    # Global fee accumulators (64.64 per unit of liquidity, wrap mod 2^128)
    fee_growth_global_0: int = 0
    fee_growth_global_1: int = 0

    # Protocol share of swap fees, claimable by the admin
    protocol_fees_0: int = 0
    protocol_fees_1: int = 0


class StateStore(ABC):
    """Keyed persistence for one pool's records."""

    # -- Pool ---------------------------------------------------------------

    @abstractmethod
    def get_pool_config(self) -> PoolConfig | None:
        ...

    @abstractmethod
    def set_pool_config(self, config: PoolConfig) -> None:
        ...

    @abstractmethod
    def get_pool_state(self) -> PoolState | None:
        ...

    @abstractmethod
    def set_pool_state(self, state: PoolState) -> None:
        ...

    # -- Ticks --------------------------------------------------------------

    @abstractmethod
    def has_tick(self, tick: int) -> bool:
        ...

    @abstractmethod
    def get_tick(self, tick: int) -> TickInfo:
        """Return the tick record, or a zeroed TickInfo if absent."""

    @abstractmethod
    def set_tick(self, tick: int, info: TickInfo) -> None:
        ...

    @abstractmethod
    def delete_tick(self, tick: int) -> None:
        ...

    @abstractmethod
    def tick_at_or_below(self, tick: int) -> int | None:
        """Greatest registered tick <= ``tick``."""

    @abstractmethod
    def tick_above(self, tick: int) -> int | None:
        """Smallest registered tick > ``tick``."""

    # -- Positions ----------------------------------------------------------

    @abstractmethod
    def get_position(self, owner: str, lower: int, upper: int) -> Position:
        """Return the position, or a zeroed Position if absent."""

    @abstractmethod
    def set_position(self, owner: str, lower: int, upper: int, position: Position) -> None:
        ...

    @abstractmethod
    def delete_position(self, owner: str, lower: int, upper: int) -> None:
        ...


class InMemoryStateStore(StateStore):
    """
    Dict-backed store.

    Registered ticks are also kept in a sorted index so the swap loop can
    find the next initialized tick in O(log n).
    """

    def __init__(self) -> None:
        self._config: PoolConfig | None = None
        self._state: PoolState | None = None
        self._ticks: dict[int, TickInfo] = {}
        self._tick_index: list[int] = []
        self._positions: dict[PositionKey, Position] = {}

    def get_pool_config(self) -> PoolConfig | None:
        return replace(self._config) if self._config is not None else None

    def set_pool_config(self, config: PoolConfig) -> None:
        self._config = replace(config)

    def get_pool_state(self) -> PoolState | None:
        return replace(self._state) if self._state is not None else None

    def set_pool_state(self, state: PoolState) -> None:
        self._state = replace(state)

    def has_tick(self, tick: int) -> bool:
        return tick in self._ticks

    def get_tick(self, tick: int) -> TickInfo:
        info = self._ticks.get(tick)
        return replace(info) if info is not None else TickInfo()

    def set_tick(self, tick: int, info: TickInfo) -> None:
        if tick not in self._ticks:
            bisect.insort(self._tick_index, tick)
        self._ticks[tick] = replace(info)

    def delete_tick(self, tick: int) -> None:
        if self._ticks.pop(tick, None) is not None:
            index = bisect.bisect_left(self._tick_index, tick)
            del self._tick_index[index]

    def tick_at_or_below(self, tick: int) -> int | None:
        index = bisect.bisect_right(self._tick_index, tick)
        return self._tick_index[index - 1] if index > 0 else None

    def tick_above(self, tick: int) -> int | None:
        index = bisect.bisect_right(self._tick_index, tick)
        return self._tick_index[index] if index < len(self._tick_index) else None

    def get_position(self, owner: str, lower: int, upper: int) -> Position:
        position = self._positions.get((owner, lower, upper))
        return replace(position) if position is not None else Position()

    def set_position(self, owner: str, lower: int, upper: int, position: Position) -> None:
        self._positions[(owner, lower, upper)] = replace(position)

    def delete_position(self, owner: str, lower: int, upper: int) -> None:
        self._positions.pop((owner, lower, upper), None)

    @property
    def tick_count(self) -> int:
        return len(self._ticks)

    @property
    def position_count(self) -> int:
        return len(self._positions)


# Marks a record deleted inside a transaction
_DELETED = object()


class StateTransaction(StateStore):
    """
    Write buffer over a base store.

    Reads see the buffer first, then the base. Nothing reaches the base
    until commit().
    """

    def __init__(self, base: StateStore) -> None:
        self.base = base
        self._config: PoolConfig | None = None
        self._state: PoolState | None = None
        self._ticks: dict[int, object] = {}
        self._positions: dict[PositionKey, object] = {}
        self._closed = False

    def get_pool_config(self) -> PoolConfig | None:
        if self._config is not None:
            return replace(self._config)
        return self.base.get_pool_config()

    def set_pool_config(self, config: PoolConfig) -> None:
        self._config = replace(config)

    def get_pool_state(self) -> PoolState | None:
        if self._state is not None:
            return replace(self._state)
        return self.base.get_pool_state()

    def set_pool_state(self, state: PoolState) -> None:
        self._state = replace(state)

    def has_tick(self, tick: int) -> bool:
        if tick in self._ticks:
            return self._ticks[tick] is not _DELETED
        return self.base.has_tick(tick)

    def get_tick(self, tick: int) -> TickInfo:
        if tick in self._ticks:
            pending = self._ticks[tick]
            return TickInfo() if pending is _DELETED else replace(pending)
        return self.base.get_tick(tick)

    def set_tick(self, tick: int, info: TickInfo) -> None:
        self._ticks[tick] = replace(info)

    def delete_tick(self, tick: int) -> None:
        self._ticks[tick] = _DELETED

    def tick_at_or_below(self, tick: int) -> int | None:
        candidate = self.base.tick_at_or_below(tick)
        while candidate is not None and self._ticks.get(candidate) is _DELETED:
            candidate = self.base.tick_at_or_below(candidate - 1)

        pending = [t for t, info in self._ticks.items() if info is not _DELETED and t <= tick]
        if pending:
            best = max(pending)
            if candidate is None or best > candidate:
                return best
        return candidate

    def tick_above(self, tick: int) -> int | None:
        candidate = self.base.tick_above(tick)
        while candidate is not None and self._ticks.get(candidate) is _DELETED:
            candidate = self.base.tick_above(candidate)

        pending = [t for t, info in self._ticks.items() if info is not _DELETED and t > tick]
        if pending:
            best = min(pending)
            if candidate is None or best < candidate:
                return best
        return candidate

    def get_position(self, owner: str, lower: int, upper: int) -> Position:
        key = (owner, lower, upper)
        if key in self._positions:
            pending = self._positions[key]
            return Position() if pending is _DELETED else replace(pending)
        return self.base.get_position(owner, lower, upper)

    def set_position(self, owner: str, lower: int, upper: int, position: Position) -> None:
        self._positions[(owner, lower, upper)] = replace(position)

    def delete_position(self, owner: str, lower: int, upper: int) -> None:
        self._positions[(owner, lower, upper)] = _DELETED

    def commit(self) -> None:
        """Apply every buffered write to the base store."""
        if self._closed:
            raise RuntimeError("Transaction already closed")
        self._closed = True

        if self._config is not None:
            self.base.set_pool_config(self._config)
        if self._state is not None:
            self.base.set_pool_state(self._state)

        for tick, info in self._ticks.items():
            if info is _DELETED:
                self.base.delete_tick(tick)
            else:
                self.base.set_tick(tick, info)

        for (owner, lower, upper), position in self._positions.items():
            if position is _DELETED:
                self.base.delete_position(owner, lower, upper)
            else:
                self.base.set_position(owner, lower, upper, position)

    def discard(self) -> None:
        """Drop every buffered write."""
        self._closed = True
        self._config = None
        self._state = None
        self._ticks.clear()
        self._positions.clear()
