"""
Shared fixtures for the CLMM engine tests.
"""

import pytest

from clmm.core.amm.custody import InMemoryTokenLedger
from clmm.core.amm.events import RecordingEventSink
from clmm.core.amm.liquidity_math import get_amounts_for_liquidity
from clmm.core.amm.pool import ConcentratedLiquidityPool
from clmm.core.amm.storage import InMemoryStateStore
from clmm.core.amm.tick_math import tick_to_sqrt_price

TOKEN_A = "TOKEN_A"
TOKEN_B = "TOKEN_B"
POOL_ADDRESS = "0xpool"
ADMIN = "admin"
STARTING_BALANCE = 10**30


def build_pool(protocol_fee_bps: int = 0, fee_bps: int = 30, tick_spacing: int = 60):
    """Initialized pool at tick 0 with funded users. Returns (pool, store, ledger, sink)."""
    store = InMemoryStateStore()
    ledger = InMemoryTokenLedger()
    sink = RecordingEventSink()

    for user in ("alice", "bob", "carol", "trader"):
        ledger.mint(user, TOKEN_A, STARTING_BALANCE)
        ledger.mint(user, TOKEN_B, STARTING_BALANCE)

    pool = ConcentratedLiquidityPool(store, ledger, events=sink, address=POOL_ADDRESS)
    pool.initialize(ADMIN, TOKEN_A, TOKEN_B, fee_bps, protocol_fee_bps, tick_spacing)
    return pool, store, ledger, sink


def deposit_for_liquidity(pool, owner, lower, upper, liquidity):
    """Add roughly ``liquidity`` to [lower, upper] by depositing the matching amounts."""
    state = pool.get_pool_state()
    amount0, amount1 = get_amounts_for_liquidity(
        liquidity, tick_to_sqrt_price(lower), tick_to_sqrt_price(upper), state.sqrt_price
    )
    return pool.add_liquidity(owner, lower, upper, amount0 + 10, amount1 + 10)


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def ledger():
    ledger = InMemoryTokenLedger()
    for user in ("alice", "bob", "carol", "trader"):
        ledger.mint(user, TOKEN_A, STARTING_BALANCE)
        ledger.mint(user, TOKEN_B, STARTING_BALANCE)
    return ledger


@pytest.fixture
def sink():
    return RecordingEventSink()


@pytest.fixture
def pool(store, ledger, sink):
    """Pool at tick 0 (price 1:1), spacing 60, fee 30 bps, no protocol fee."""
    pool = ConcentratedLiquidityPool(store, ledger, events=sink, address=POOL_ADDRESS)
    pool.initialize(ADMIN, TOKEN_A, TOKEN_B, 30, 0, 60)
    return pool


@pytest.fixture
def funded_pool(pool):
    """Pool with one wide position from alice holding deep liquidity."""
    pool.add_liquidity("alice", -6000, 6000, 10**15, 10**15)
    return pool


@pytest.fixture(scope="session")
def pool_factory():
    """build_pool, for tests (hypothesis included) that need several fresh pools."""
    return build_pool


@pytest.fixture(scope="session")
def deposit():
    return deposit_for_liquidity
