"""
Tick registry tests: update/flip, crossing and the next-initialized search.
"""

import logging

import pytest

from clmm.core.amm.fixed_point import MAX_U128
from clmm.core.amm.storage import InMemoryStateStore
from clmm.core.amm.tick_math import MAX_TICK, MIN_TICK
from clmm.core.amm.ticks import TickInfo, cross_tick, find_next_initialized_tick, update_tick
from clmm.core.exceptions import InsufficientLiquidityError, ReasonCode


def register(store, tick, liquidity=1000, current_tick=0, upper=False, g0=0, g1=0):
    return update_tick(store, tick, current_tick, liquidity, g0, g1, upper=upper)


class TestUpdateTick:
    def test_first_reference_flips(self, store):
        assert register(store, 60) is True
        info = store.get_tick(60)
        assert info.initialized
        assert info.liquidity_gross == 1000
        assert info.liquidity_net == 1000

    def test_second_reference_does_not_flip(self, store):
        register(store, 60)
        assert register(store, 60, liquidity=500) is False
        assert store.get_tick(60).liquidity_gross == 1500

    def test_upper_bound_subtracts_net(self, store):
        register(store, 120, upper=True)
        info = store.get_tick(120)
        assert info.liquidity_gross == 1000
        assert info.liquidity_net == -1000

    def test_shared_boundary_nets_out(self, store):
        """Upper of one range and lower of the next: gross adds, net cancels."""
        register(store, 60, upper=True)
        register(store, 60, upper=False)
        info = store.get_tick(60)
        assert info.liquidity_gross == 2000
        assert info.liquidity_net == 0

    def test_seeding_at_or_below_current(self, store):
        """Fees so far are deemed below a tick at or under the price."""
        register(store, 0, current_tick=0, g0=111, g1=222)
        register(store, -60, current_tick=0, g0=111, g1=222)
        for tick in (0, -60):
            info = store.get_tick(tick)
            assert (info.fee_growth_outside_0, info.fee_growth_outside_1) == (111, 222)

    def test_seeding_above_current(self, store):
        register(store, 60, current_tick=0, g0=111, g1=222)
        info = store.get_tick(60)
        assert (info.fee_growth_outside_0, info.fee_growth_outside_1) == (0, 0)

    def test_reseed_only_on_first_initialization(self, store):
        register(store, -60, g0=100)
        register(store, -60, g0=999)
        assert store.get_tick(-60).fee_growth_outside_0 == 100

    def test_removal_to_zero_clears_record(self, store):
        register(store, 60)
        assert update_tick(store, 60, 0, -1000, 0, 0, upper=False) is True
        assert not store.has_tick(60)
        assert store.get_tick(60) == TickInfo()

    def test_removal_beyond_gross_rejected(self, store):
        register(store, 60)
        with pytest.raises(InsufficientLiquidityError) as excinfo:
            update_tick(store, 60, 0, -1001, 0, 0, upper=False)
        assert excinfo.value.reason == ReasonCode.INSUFFICIENT_LIQUIDITY
        assert store.get_tick(60).liquidity_gross == 1000


class TestCrossTick:
    def test_flips_outside(self, store):
        register(store, 60, current_tick=0)
        net = cross_tick(store, 60, 500, 700)
        assert net == 1000
        info = store.get_tick(60)
        assert (info.fee_growth_outside_0, info.fee_growth_outside_1) == (500, 700)

    def test_cross_twice_restores(self, store):
        register(store, -60, current_tick=0, g0=300, g1=40)
        before = store.get_tick(-60)
        cross_tick(store, -60, 1000, 2000)
        cross_tick(store, -60, 1000, 2000)
        assert store.get_tick(-60) == before

    def test_cross_wraps(self, store):
        register(store, -60, current_tick=0, g0=50)
        cross_tick(store, -60, 10, 0)
        assert store.get_tick(-60).fee_growth_outside_0 == MAX_U128 - 39

    def test_unregistered_tick_is_noop(self, store):
        assert cross_tick(store, 600, 1, 1) == 0
        assert not store.has_tick(600)


class TestFindNextInitializedTick:
    @pytest.fixture
    def populated(self, store):
        for tick in (-600, -120, 0, 180, 600):
            register(store, tick)
        return store

    def test_search_down_includes_current_aligned_tick(self, populated):
        assert find_next_initialized_tick(populated, 0, 60, True, 100) == 0
        assert find_next_initialized_tick(populated, 30, 60, True, 100) == 0

    def test_search_down(self, populated):
        assert find_next_initialized_tick(populated, -1, 60, True, 100) == -120
        assert find_next_initialized_tick(populated, -121, 60, True, 100) == -600

    def test_search_up_skips_current(self, populated):
        assert find_next_initialized_tick(populated, 0, 60, False, 100) == 180
        assert find_next_initialized_tick(populated, -120, 60, False, 100) == 0
        assert find_next_initialized_tick(populated, 180, 60, False, 100) == 600

    def test_search_up_from_unaligned_negative(self, populated):
        # -130 snaps to -180; the next boundary above it is -120
        assert find_next_initialized_tick(populated, -130, 60, False, 100) == -120

    def test_nothing_found_returns_start(self, populated):
        assert find_next_initialized_tick(populated, 600, 60, False, 100) == 600
        assert find_next_initialized_tick(populated, -601, 60, True, 100) == -601

    def test_empty_store(self, store):
        assert find_next_initialized_tick(store, 0, 60, True, 100) == 0
        assert find_next_initialized_tick(store, 0, 60, False, 100) == 0

    def test_invalid_spacing_returns_start(self, populated):
        assert find_next_initialized_tick(populated, 0, 0, True, 100) == 0

    def test_out_of_domain_candidate_ignored(self):
        store = InMemoryStateStore()
        store.set_tick(MAX_TICK + 8, TickInfo(liquidity_gross=1, initialized=True))
        assert find_next_initialized_tick(store, MAX_TICK - 100, 1, False, 100) == MAX_TICK - 100
        store.set_tick(MIN_TICK - 8, TickInfo(liquidity_gross=1, initialized=True))
        assert find_next_initialized_tick(store, MIN_TICK + 100, 1, True, 100) == MIN_TICK + 100

    def test_skips_records_without_liquidity(self):
        store = InMemoryStateStore()
        store.set_tick(60, TickInfo(liquidity_gross=0, initialized=True))
        store.set_tick(120, TickInfo(liquidity_gross=5, initialized=True))
        assert find_next_initialized_tick(store, 0, 60, False, 100) == 120

    def test_step_cap(self, caplog):
        store = InMemoryStateStore()
        for tick in range(60, 60 * 11, 60):
            store.set_tick(tick, TickInfo(liquidity_gross=0, initialized=False))
        store.set_tick(6000, TickInfo(liquidity_gross=5, initialized=True))

        with caplog.at_level(logging.WARNING, logger="clmm.core.amm.ticks"):
            assert find_next_initialized_tick(store, 0, 60, False, 5) == 0
        assert any(getattr(r, "event", None) == "clmm.tick_search_capped" for r in caplog.records)

        assert find_next_initialized_tick(store, 0, 60, False, 50) == 6000
