"""
CLMM engine configuration.

Settings are read once from environment variables. Pools take their limits
from here unless an instance is constructed with explicit overrides.
"""

from __future__ import annotations

import logging
import os

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def get_positive_int(env_var: str, default: int) -> int:
    """Read a strictly positive integer from the environment.

    Raises ConfigurationError if the value is not an integer or is not positive.
    """
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default

    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer (got {raw!r})",
            details={"env_var": env_var},
        ) from exc

    if value <= 0:
        raise ConfigurationError(
            f"{env_var} must be positive (got {value})",
            details={"env_var": env_var},
        )

    if value != default:
        logger.debug(
            "Config override %s=%d",
            env_var,
            value,
            extra={"event": "config.override", "env_var": env_var},
        )
    return value


ENVIRONMENT = os.getenv("CLMM_ENVIRONMENT", "development").strip() or "development"
LOG_LEVEL = os.getenv("CLMM_LOG_LEVEL", "INFO").strip().upper() or "INFO"
LOG_FILE = os.getenv("CLMM_LOG_FILE", "").strip()

# Hard cap on swap loop iterations (denial-of-service bound)
MAX_SWAP_ITERATIONS = get_positive_int("CLMM_MAX_SWAP_ITERATIONS", 1024)
# Cap on candidate ticks examined per next-initialized-tick search
MAX_TICK_SEARCH_STEPS = get_positive_int("CLMM_MAX_TICK_SEARCH_STEPS", 2048)
# Deposits below this liquidity are rejected as dust
MIN_LIQUIDITY = get_positive_int("CLMM_MIN_LIQUIDITY", 1000)

if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(f"CLMM_LOG_LEVEL must be a logging level name (got {LOG_LEVEL!r})")
