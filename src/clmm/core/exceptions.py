"""
Exception hierarchy for the concentrated-liquidity engine.

Provides typed exceptions for pool operations so callers can tell a bad
configuration apart from a rejected trade, a custody failure or a broken
invariant. Every exception raised by a mutating operation leaves the pool,
tick and position state exactly as it was before the call.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ReasonCode(str, Enum):
    """Machine-readable rejection reasons surfaced to callers."""
    BAD_TOKEN = "bad_token"
    SAME_TOKEN = "same_token"
    ZERO_AMOUNT = "zero_amount"
    NO_LIQUIDITY = "no_liquidity"
    BAD_LIMIT = "bad_limit"
    SLIPPAGE = "slippage"
    INVALID_RANGE = "invalid_range"
    LIQUIDITY_TOO_LOW = "liquidity_too_low"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    NOT_OWNER = "not_owner"
    ITERATION_LIMIT = "iteration_limit"
    NOT_INITIALIZED = "not_initialized"


class PoolError(Exception):
    """Base exception for all pool errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Configuration Errors ====================


class ConfigurationError(PoolError):
    """Raised when pool parameters or settings are missing or invalid.

    Examples: fee outside bounds, non-positive tick spacing, bad env value.
    """
    pass


class TickOutOfRangeError(ConfigurationError):
    """Raised when a tick lies outside the supported tick domain."""

    def __init__(self, tick: int, **kwargs: Any) -> None:
        super().__init__(f"Tick {tick} out of range", **kwargs)
        self.tick = tick


# ==================== Validation Errors ====================


class ValidationError(PoolError):
    """Raised when a request is rejected before any state mutation.

    The ``reason`` attribute carries the code a preview would return.
    """

    def __init__(
        self,
        message: str,
        reason: ReasonCode,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details, recoverable=True)
        self.reason = reason


class SlippageError(ValidationError):
    """Raised when the output or deposit falls short of the caller's minimum."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, ReasonCode.SLIPPAGE, details)


class PriceLimitError(ValidationError):
    """Raised when the swap price limit is already exceeded or out of bounds."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, ReasonCode.BAD_LIMIT, details)


class InsufficientLiquidityError(ValidationError):
    """Raised when a removal exceeds the liquidity held by a position or tick."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, ReasonCode.INSUFFICIENT_LIQUIDITY, details)


# ==================== State Errors ====================


class StateError(PoolError):
    """Raised when the pool is in the wrong lifecycle state for a call."""
    pass


class ReentrancyError(StateError):
    """Raised when a call re-enters a pool that is already executing one."""
    pass


# ==================== Custody Errors ====================


class CustodyError(PoolError):
    """Raised when the custody collaborator cannot execute a transfer."""
    pass


class InsufficientBalanceError(CustodyError):
    """Raised when a holder lacks the balance for a transfer."""
    pass


# ==================== Swap Errors ====================


class SwapIterationLimitError(PoolError):
    """Raised when a committing swap runs out of iterations with input left."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, recoverable=False)
        self.reason = ReasonCode.ITERATION_LIMIT
