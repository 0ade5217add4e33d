import itertools

import pytest

from xvb_scheduler.helper.modes import RuntimeDonationLevel, RuntimeMode
from xvb_scheduler.helper.stats import XvbPrivStats
from xvb_scheduler.service.algo_service import (
    DecisionContext,
    Strategy,
    clamp_non_negative,
    get_spared_time,
    minimum_hashrate_share,
    select_strategy,
)
from xvb_scheduler.service.state_service import RuntimeConfig, XvbState


def make_ctx(hashrate, difficulty, mode=RuntimeMode.AUTO, amount=0.0,
             level=RuntimeDonationLevel.DONOR, sidechain=0.0, p2pool_avg=0.0,
             pool_type="Mini", share=1):
    return DecisionContext(
        share=share, hashrate=hashrate, donor_1h_avg=0.0, donor_24h_avg=0.0,
        address="", mode=mode, amount=amount, donation_level=level,
        sidechain_hashrate=sidechain, pool_type=pool_type, difficulty=difficulty,
        p2pool_avg=p2pool_avg, window=600,
    )


# --- minimum hashrate to keep a share ---

def test_minimum_hashrate_share_mini():
    # 95e6 // (2160 * 10) = 4398, times the 5% buffer
    assert minimum_hashrate_share(95_000_000, "Mini", 0) == pytest.approx(4617.9)


def test_minimum_hashrate_share_can_be_negative():
    assert minimum_hashrate_share(95_000_000, "Mini", 25_000) < 0
    assert clamp_non_negative(minimum_hashrate_share(95_000_000, "Mini", 25_000)) == 0


def test_minimum_hashrate_share_is_monotonic():
    difficulties = [0, 10_000, 1_000_000, 95_000_000, 2_000_000_000]
    externals = [0, 100, 5_000, 1_000_000]
    for pool_type in ("Main", "Mini", "Nano"):
        for d1, d2 in itertools.combinations(difficulties, 2):
            for ext in externals:
                assert minimum_hashrate_share(d1, pool_type, ext) <= minimum_hashrate_share(d2, pool_type, ext)
        for e1, e2 in itertools.combinations(externals, 2):
            for d in difficulties:
                assert minimum_hashrate_share(d, pool_type, e1) >= minimum_hashrate_share(d, pool_type, e2)


def test_main_window_needs_more_hashrate_than_mini():
    assert minimum_hashrate_share(95_000_000, "Main", 0) > minimum_hashrate_share(95_000_000, "Mini", 0)


# --- target per mode ---

def test_hero_target_is_spareable_hashrate():
    ctx = make_ctx(20_000, 95_000_000, mode=RuntimeMode.HERO)
    assert ctx.target == pytest.approx(15382.1)


def test_hero_target_with_external_hashrate_covering_the_share():
    ctx = make_ctx(20_000, 95_000_000, mode=RuntimeMode.HERO, sidechain=25_000)
    assert ctx.min_hashrate_share < 0
    assert ctx.target == 20_000


def test_external_hashrate_excludes_own_contribution():
    ctx = make_ctx(20_000, 95_000_000, sidechain=8_000, p2pool_avg=10_000)
    assert ctx.external_hashrate == 0


def test_auto_target_picks_highest_exceeded_tier():
    assert make_ctx(20_000, 9_000_000).target == 10_000
    assert make_ctx(10_000, 95_000_000).target == 1_000


def test_auto_target_is_zero_below_every_tier():
    ctx = make_ctx(4_000, 95_000_000)
    assert ctx.spareable_hashrate < 0
    assert ctx.target == 0
    assert ctx.spared_time == 0


def test_auto_target_boundary_is_strict():
    # min share is 0 with zero difficulty, so spareable == hashrate
    assert make_ctx(10_000, 0).target == 1_000
    assert make_ctx(10_001, 0).target == 10_000


def test_manual_xvb_target():
    assert make_ctx(20_000, 95_000_000, mode=RuntimeMode.MANUAL_XVB, amount=1_000).target == 1_000


def test_manual_p2pool_target_keeps_amount_local():
    assert make_ctx(10_000, 95_000_000, mode=RuntimeMode.MANUAL_P2POOL, amount=1_000).target == 9_000
    assert make_ctx(500, 95_000_000, mode=RuntimeMode.MANUAL_P2POOL, amount=1_000).target == 0


def test_manual_donation_level_target():
    ctx = make_ctx(20_000, 95_000_000, mode=RuntimeMode.MANUAL_DONATION_LEVEL,
                   level=RuntimeDonationLevel.DONOR)
    assert ctx.target == 1_000


# --- spared time ---

def test_spared_time_is_proportional():
    assert get_spared_time(1_000, 10_000, 600) == 60


def test_spared_time_never_exceeds_window():
    assert get_spared_time(10_000, 10_000, 600) == 600
    assert get_spared_time(50_000, 10_000, 600) == 600
    assert get_spared_time(float("inf"), 10_000, 600) == 600


def test_spared_time_without_hashrate():
    assert get_spared_time(1_000, 0, 600) == 0
    assert get_spared_time(-5, 10_000, 600) == 0


# --- strategy ---

def test_strategy_selection():
    assert select_strategy(5, 100, 150) is Strategy.HYBRID
    assert select_strategy(5, 150, 100) is Strategy.DONATE_ALL
    assert select_strategy(0, 100, 150) is Strategy.LOCAL_ALL
    assert select_strategy(0, 150, 100) is Strategy.LOCAL_ALL


def test_nothing_to_donate_stays_local():
    assert select_strategy(5, 0, 0) is Strategy.LOCAL_ALL


# --- context built from shared state ---

def test_build_reads_shared_state():
    state = XvbState(runtime=RuntimeConfig(mode=RuntimeMode.HERO))
    state.update_measurements(hashrate_15m=20_000, hashrate_10s=1, p2pool_difficulty=95_000_000,
                              pool_type="Mini", shares_in_window=2)
    state.set_priv_stats(XvbPrivStats(fails=0, donor_1hr_avg=1.5, donor_24hr_avg=2.0))

    ctx = DecisionContext.build(state, window=600)

    assert ctx.hashrate == 20_000
    assert ctx.share == 2
    assert ctx.donor_1h_avg == 1_500
    assert ctx.donor_24h_avg == 2_000
    assert ctx.target == pytest.approx(15382.1)
    assert ctx.spared_time == 461


def test_huge_manual_target_donates_the_whole_window():
    ctx = make_ctx(20_000, 95_000_000, mode=RuntimeMode.MANUAL_XVB, amount=1e308)
    assert ctx.spared_time == 600


def test_one_hour_average_against_target():
    ctx = make_ctx(20_000, 95_000_000, mode=RuntimeMode.MANUAL_XVB, amount=1_000)
    assert not ctx.fulfilled_1h
    ctx = DecisionContext(
        share=1, hashrate=20_000, donor_1h_avg=1_500.0, donor_24h_avg=0.0,
        address="", mode=RuntimeMode.MANUAL_XVB, amount=1_000,
        donation_level=RuntimeDonationLevel.DONOR, sidechain_hashrate=0.0,
        pool_type="Mini", difficulty=95_000_000, p2pool_avg=0.0, window=600,
    )
    assert ctx.fulfilled_1h
