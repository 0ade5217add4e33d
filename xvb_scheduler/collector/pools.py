import json
import os

from xvb_scheduler.config.config import (
    P2P_STATS_PATH, POOL_STATS_PATH, STRATUM_STATS_PATH,
    BLOCK_PPLNS_WINDOW_MAIN, BLOCK_PPLNS_WINDOW_MINI, BLOCK_PPLNS_WINDOW_NANO,
    SECOND_PER_BLOCK_P2POOL_MAIN, SECOND_PER_BLOCK_P2POOL_MINI, SECOND_PER_BLOCK_P2POOL_NANO,
)

# pool type -> (PPLNS window in blocks, seconds per side-chain block)
PPLNS_PARAMS = {
    "Main": (BLOCK_PPLNS_WINDOW_MAIN, SECOND_PER_BLOCK_P2POOL_MAIN),
    "Mini": (BLOCK_PPLNS_WINDOW_MINI, SECOND_PER_BLOCK_P2POOL_MINI),
    "Nano": (BLOCK_PPLNS_WINDOW_NANO, SECOND_PER_BLOCK_P2POOL_NANO),
}


def _read_json(path):
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def detect_pool_type(peers):
    counts = {"Main": 0, "Mini": 0, "Nano": 0}
    if not peers: return "Unknown"
    for p in peers:
        if "37889" in p: counts["Main"] += 1
        elif "37888" in p: counts["Mini"] += 1
        elif "37890" in p: counts["Nano"] += 1
    winner = max(counts, key=counts.get)
    return winner if counts[winner] > 0 else "Unknown"


def pplns_params(pool_type):
    """Unknown pool types are treated as Mini, the most common side-chain for small miners."""
    return PPLNS_PARAMS.get(pool_type, PPLNS_PARAMS["Mini"])


def pplns_window_seconds(pool_type):
    blocks, seconds_per_block = pplns_params(pool_type)
    return blocks * seconds_per_block


def get_p2pool_stats(p2p_path=P2P_STATS_PATH, pool_path=POOL_STATS_PATH):
    """Returns the pool type and the side-chain figures the scheduler needs."""
    raw_p2p = _read_json(p2p_path)
    pool_stats = _read_json(pool_path).get("pool_statistics", {})
    if not isinstance(pool_stats, dict):
        pool_stats = {}

    return {
        "type": detect_pool_type(raw_p2p.get("peers", [])),
        "difficulty": pool_stats.get("sidechainDifficulty", 0),
    }


def get_stratum_stats(path=STRATUM_STATS_PATH):
    """
    Returns the local stratum figures: this instance's hashrate as seen by p2pool
    and its share counters.
    """
    raw = _read_json(path)
    return {
        "hashrate_1h": raw.get("hashrate_1h", 0),
        "shares_found": raw.get("shares_found", 0),
        "last_share_found_time": raw.get("last_share_found_time", 0),
    }


class ShareTracker:
    """
    Remembers when shares were found and counts those still inside the PPLNS window.

    p2pool only reports a cumulative counter, so a new share is recorded whenever
    the counter grows (or the reported last-share time moves forward).
    """
    def __init__(self, max_entries=10000):
        self.max_entries = max_entries
        self._shares = []
        self._last_count = None
        self._last_ts = 0

    def update(self, shares_found, last_share_ts, now):
        shares_found = int(shares_found or 0)
        last_share_ts = int(last_share_ts or 0)

        new_shares = 0
        if self._last_count is None:
            # First reading: only the most recent share has a known timestamp
            if shares_found > 0 and last_share_ts > 0:
                new_shares = 1
        elif shares_found > self._last_count:
            new_shares = shares_found - self._last_count
        elif last_share_ts > self._last_ts:
            new_shares = 1
        self._last_count = shares_found

        if new_shares:
            ts = last_share_ts if last_share_ts > self._last_ts else int(now)
            self._shares.extend([ts] * new_shares)
            # Keep the list bounded
            if len(self._shares) > self.max_entries:
                self._shares = self._shares[-self.max_entries:]
        if last_share_ts > self._last_ts:
            self._last_ts = last_share_ts

    def in_window(self, window_seconds, now):
        cutoff = now - window_seconds
        return sum(1 for ts in self._shares if ts >= cutoff)
