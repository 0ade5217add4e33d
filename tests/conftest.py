import requests

from xvb_scheduler.helper.nodes import XvbNode
from xvb_scheduler.helper.stats import XvbPrivStats, XvbPubStats

ADDRESS = "4AdUndXHHZ6cfufTMvppY6JwXNouMBzSkbLYfpAV5Usx3skxNgYeYTRj5UzqtReoS44qo9mtmXCqY45DJ852K5Jv2684Rge"

PUBLIC_PAYLOAD = {
    "time_remain": 34,
    "bonus_hr": 121.3,
    "donate_hr": 205680.0,
    "donate_miners": 38,
    "donate_workers": 102,
    "players": 119,
    "players_round": 28,
    "winner": "48ykJu...XL6WAE",
    "share_effort": "45.12%",
    "block_reward": "0.61234",
    "round_type": "donor_vip",
    "block_height": "3212345",
    "block_hash": "a1b2c3",
    "roll_winner": 17,
    "roll_round": "63",
    "reward_yearly": [0.1, 0.25, 1.5],
}


class FakeMiner:
    """Stands in for XMRigApiClient; records every pool switch."""
    name = "XMRig"

    def __init__(self, summary=None):
        self.switches = []
        self.failing = set()
        self.summary = summary or {}

    def switch_node(self, node, wallet_address, rig_id=""):
        if node in self.failing:
            raise requests.ConnectionError(f"cannot reach miner API for {node}")
        self.switches.append(node)

    def get_summary(self):
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary


class FakeSelector:
    """Stands in for NodeSelector; always picks the same node."""
    def __init__(self, state, node=XvbNode.EUROPE):
        self.state = state
        self.node = node
        self.calls = 0

    async def select_fastest(self, candidates=None):
        self.calls += 1
        self.state.set_selected_node(self.node)
        return self.node, not self.node.is_donation


class FakeXvbClient:
    def __init__(self, pings=None, pub=None, priv=None):
        self.pings = pings or {}
        self.ping_calls = []
        self.pub = pub if pub is not None else XvbPubStats()
        self.priv = priv if priv is not None else XvbPrivStats()
        self.private_calls = 0

    async def ping(self, host, port, timeout_ms):
        self.ping_calls.append(host)
        value = self.pings.get(host, timeout_ms)
        if isinstance(value, list):
            return value.pop(0) if value else timeout_ms
        return value

    async def get_public_stats(self):
        if isinstance(self.pub, Exception):
            raise self.pub
        return self.pub

    async def get_private_stats(self, address, token):
        self.private_calls += 1
        if isinstance(self.priv, Exception):
            raise self.priv
        return self.priv


class SleepRecorder:
    """Replaces the interruptible wait; optional hook runs after each call."""
    def __init__(self, hook=None):
        self.calls = []
        self.hook = hook

    async def __call__(self, seconds):
        self.calls.append(seconds)
        if self.hook is not None:
            self.hook(len(self.calls))

