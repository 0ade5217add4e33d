import asyncio

import pytest
import requests

from xvb_scheduler.helper.modes import ProcessState
from xvb_scheduler.helper.nodes import XvbNode
from xvb_scheduler.service.data_service import DataService
from xvb_scheduler.service.state_service import XvbState

from conftest import FakeMiner

pytestmark = pytest.mark.asyncio

SUMMARY = {"hashrate": {"total": [9800.0, 9900.0, 10000.0]}, "connection": {"pool": "eu.xmrvsbeast.com:4247"}}


def make_service(state, miner, difficulty=95_000_000, stratum=None):
    stratum = stratum or {"hashrate_1h": 12_000, "shares_found": 1, "last_share_found_time": 990}
    return DataService(
        state, miner,
        p2pool_reader=lambda: {"type": "Mini", "difficulty": difficulty},
        stratum_reader=lambda: stratum,
        clock=lambda: 1000.0,
    )


async def test_update_writes_measurements():
    state = XvbState()
    fields = await make_service(state, FakeMiner(SUMMARY)).update_once()

    m = state.get_measurements()
    assert m.hashrate_15m == 10_000
    assert m.sidechain_hashrate == 12_000
    assert m.p2pool_difficulty == 95_000_000
    assert m.shares_in_window == 1
    assert m.timestamp == 1000.0
    assert fields["pool_type"] == "Mini"


async def test_reported_pool_becomes_current_node():
    state = XvbState()
    await make_service(state, FakeMiner(SUMMARY)).update_once()
    assert state.get_current_node() == XvbNode.EUROPE


async def test_ready_data_promotes_syncing_to_alive():
    state = XvbState()
    state.set_process_state(ProcessState.SYNCING)
    await make_service(state, FakeMiner(SUMMARY)).update_once()
    assert state.get_process_state() == ProcessState.ALIVE


async def test_missing_data_demotes_alive_to_syncing():
    state = XvbState()
    state.set_process_state(ProcessState.ALIVE)
    await make_service(state, FakeMiner(SUMMARY), difficulty=0).update_once()
    assert state.get_process_state() == ProcessState.SYNCING


async def test_unreachable_miner_zeroes_hashrate():
    state = XvbState()
    state.update_measurements(hashrate_15m=5_000)
    miner = FakeMiner(requests.ConnectionError("refused"))
    await make_service(state, miner).update_once()
    assert state.get_measurements().controllable_hashrate() == 0


async def test_retry_is_not_touched():
    state = XvbState()
    state.set_process_state(ProcessState.RETRY)
    await make_service(state, FakeMiner(SUMMARY)).update_once()
    assert state.get_process_state() == ProcessState.RETRY


async def test_non_finite_difficulty_does_not_stop_the_loop():
    state = XvbState()
    reads = []

    def stratum():
        reads.append(1)
        return {"hashrate_1h": 0, "shares_found": 0, "last_share_found_time": 0}

    service = DataService(
        state, FakeMiner(SUMMARY), interval=0.01,
        p2pool_reader=lambda: {"type": "Mini", "difficulty": float("inf")},
        stratum_reader=stratum,
    )
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(service.run(), timeout=0.2)
    assert len(reads) >= 2
