import pytest
from aiohttp.test_utils import TestClient, TestServer

from xvb_scheduler.helper.modes import RuntimeDonationLevel, RuntimeMode
from xvb_scheduler.service.state_service import XvbState
from xvb_scheduler.web.server import create_app

pytestmark = pytest.mark.asyncio


async def test_status_returns_snapshot():
    state = XvbState()
    state.push_samples(600, 0)
    async with TestClient(TestServer(create_app(state))) as client:
        resp = await client.get("/api/status")
        assert resp.status == 200
        body = await resp.json()
    assert body["state"] == "Middle"
    assert body["samples"]["p2pool"][-1] == 600


async def test_console_tail():
    state = XvbState()
    for i in range(4):
        state.console(f"line {i}")
    async with TestClient(TestServer(create_app(state))) as client:
        resp = await client.get("/api/console", params={"tail": 2})
        body = await resp.json()
    assert len(body["lines"]) == 2
    assert body["lines"][-1].endswith("line 3")


async def test_runtime_update():
    state = XvbState()
    async with TestClient(TestServer(create_app(state))) as client:
        resp = await client.post("/api/runtime", json={"mode": "ManualXvb", "amount": 1500})
        assert resp.status == 200
    runtime = state.get_runtime()
    assert runtime.mode == RuntimeMode.MANUAL_XVB
    assert runtime.amount == 1500
    assert runtime.donation_level == RuntimeDonationLevel.DONOR


@pytest.mark.parametrize("payload", [
    {"mode": "Turbo"},
    {"amount": -5},
    {"amount": "lots"},
    {"amount": "inf"},
    {"amount": float("inf")},
    {"donation_level": "Platinum"},
    ["ManualXvb"],
])
async def test_runtime_rejects_bad_input(payload):
    state = XvbState()
    async with TestClient(TestServer(create_app(state))) as client:
        resp = await client.post("/api/runtime", json=payload)
        assert resp.status == 400
    assert state.get_runtime().mode == RuntimeMode.AUTO


async def test_runtime_rejects_non_json_body():
    async with TestClient(TestServer(create_app(XvbState()))) as client:
        resp = await client.post("/api/runtime", data="not json")
        assert resp.status == 400
