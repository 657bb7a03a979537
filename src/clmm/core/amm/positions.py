"""
Position ledger: per-(owner, lower, upper) liquidity and owed fees.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import InsufficientLiquidityError
from .fee_growth import accrue
from .fixed_point import MAX_I128


@dataclass
class Position:
    """
    Liquidity position within a price range.

    Keyed externally by (owner, tick_lower, tick_upper).
    """

    liquidity: int = 0

    # Fee tracking
    fee_growth_inside_0_last: int = 0
    fee_growth_inside_1_last: int = 0
    tokens_owed_0: int = 0
    tokens_owed_1: int = 0

    @property
    def has_liquidity(self) -> bool:
        return self.liquidity > 0

    @property
    def has_uncollected_fees(self) -> bool:
        return self.tokens_owed_0 > 0 or self.tokens_owed_1 > 0

    @property
    def is_empty(self) -> bool:
        """No liquidity and nothing owed: safe to delete."""
        return self.liquidity == 0 and not self.has_uncollected_fees


def modify_position(
    position: Position,
    liquidity_delta: int,
    inside_0: int,
    inside_1: int,
) -> None:
    """
    Accrue fees with the pre-change liquidity, then apply ``liquidity_delta``.

    Raises:
        InsufficientLiquidityError: if the delta would make liquidity negative
    """
    accrue(position, inside_0, inside_1)

    if liquidity_delta < 0 and -liquidity_delta > position.liquidity:
        raise InsufficientLiquidityError(
            f"Position holds {position.liquidity} liquidity, cannot remove {-liquidity_delta}",
            details={"liquidity": position.liquidity, "delta": liquidity_delta},
        )
    position.liquidity = min(position.liquidity + liquidity_delta, MAX_I128)


def clear_fees(position: Position, amount0: int, amount1: int) -> None:
    """Deduct collected amounts from the owed balances."""
    position.tokens_owed_0 = max(position.tokens_owed_0 - amount0, 0)
    position.tokens_owed_1 = max(position.tokens_owed_1 - amount1, 0)
