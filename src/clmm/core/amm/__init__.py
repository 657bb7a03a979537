"""
Concentrated Liquidity AMM.

This package provides the engine and its collaborator contracts:
- Fixed Point: 64.64 multiply/divide with saturation, wrapping counters
- Tick Math: tick <-> sqrt price conversion, spacing
- Liquidity Math: liquidity <-> token amounts, single swap steps
- Ticks: sparse tick registry, crossing, next-initialized search
- Fee Growth: global/outside/inside accounting and accrual
- Swap: the swap step loop shared by execution and quotes
- Positions: per-(owner, range) liquidity and owed fees
- Storage, Custody, Events: injected collaborators
- Pool: caller-facing facade
"""

from .custody import InMemoryTokenLedger, TokenLedger, Transfer
from .events import EventSink, LoggingEventSink, RecordingEventSink
from .fixed_point import MAX_U128, ONE_X64, div_q64, mul_q64
from .pool import (
    ConcentratedLiquidityPool,
    PositionInfo,
    SwapQuote,
    SwapResult,
)
from .positions import Position
from .storage import (
    InMemoryStateStore,
    PoolConfig,
    PoolState,
    StateStore,
    StateTransaction,
)
from .swap import SwapOutcome, engine_swap
from .tick_math import (
    MAX_SQRT_PRICE,
    MAX_TICK,
    MIN_SQRT_PRICE,
    MIN_TICK,
    snap_to_spacing,
    sqrt_price_to_tick,
    tick_to_sqrt_price,
)
from .ticks import TickInfo

__all__ = [
    # Pool
    "ConcentratedLiquidityPool",
    "SwapResult",
    "SwapQuote",
    "PositionInfo",
    # Engine
    "engine_swap",
    "SwapOutcome",
    "Position",
    "TickInfo",
    # Math
    "ONE_X64",
    "MAX_U128",
    "mul_q64",
    "div_q64",
    "MIN_TICK",
    "MAX_TICK",
    "MIN_SQRT_PRICE",
    "MAX_SQRT_PRICE",
    "tick_to_sqrt_price",
    "sqrt_price_to_tick",
    "snap_to_spacing",
    # Collaborators
    "StateStore",
    "InMemoryStateStore",
    "StateTransaction",
    "PoolConfig",
    "PoolState",
    "TokenLedger",
    "InMemoryTokenLedger",
    "Transfer",
    "EventSink",
    "LoggingEventSink",
    "RecordingEventSink",
]
