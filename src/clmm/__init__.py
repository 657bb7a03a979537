"""
CLMM - Concentrated Liquidity Market Maker Engine

Deterministic pricing and accounting engine for Uniswap V3-style pools:
liquidity is supplied against discrete price ranges (ticks) and only takes
part in trades while the current price is inside its range.

Main Components:
- Fixed-point math: 64.64 sqrt prices, tick <-> price conversion
- Tick registry and fee-growth accounting
- Swap engine: the step loop that walks price across ticks
- Pool facade: swaps, liquidity, fee collection over injected collaborators
"""

__version__ = "0.1.0"
__author__ = "CLMM Development Team"

__all__ = []
