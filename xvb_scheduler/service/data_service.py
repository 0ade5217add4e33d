import asyncio
import logging
import time

import requests

from xvb_scheduler.collector.miners import parse_proxy_summary, parse_xmrig_summary
from xvb_scheduler.collector.pools import (
    ShareTracker, get_p2pool_stats, get_stratum_stats, pplns_window_seconds,
)
from xvb_scheduler.config.config import P2POOL_DIFFICULTY_READY, UPDATE_INTERVAL
from xvb_scheduler.helper.modes import ProcessState
from xvb_scheduler.helper.nodes import XvbNode

logger = logging.getLogger("DataService")


class DataService:
    """
    Feeds live measurements into the shared state: miner hashrates from the
    XMRig (or XMRig-Proxy) API and side-chain figures from the p2pool data-api files.
    """
    def __init__(self, state, xmrig_client, proxy_mode=False, interval=UPDATE_INTERVAL,
                 p2pool_reader=get_p2pool_stats, stratum_reader=get_stratum_stats, clock=time.time):
        self.state = state
        self.xmrig_client = xmrig_client
        self.proxy_mode = proxy_mode
        self.interval = interval
        self.p2pool_reader = p2pool_reader
        self.stratum_reader = stratum_reader
        self.clock = clock
        self.shares = ShareTracker()

    async def collect_miner(self):
        try:
            data = await asyncio.to_thread(self.xmrig_client.get_summary)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Miner API Fetch Error: {e}")
            return None
        return parse_proxy_summary(data) if self.proxy_mode else parse_xmrig_summary(data)

    async def update_once(self):
        now = self.clock()
        miner = await self.collect_miner()
        pool = self.p2pool_reader()
        stratum = self.stratum_reader()

        pool_type = pool.get("type", "Unknown")
        if pool_type == "Unknown":
            pool_type = self.state.get_measurements().pool_type

        self.shares.update(stratum.get("shares_found", 0), stratum.get("last_share_found_time", 0), now)
        shares_in_window = self.shares.in_window(pplns_window_seconds(pool_type), now)

        fields = {
            "sidechain_hashrate": float(stratum.get("hashrate_1h", 0) or 0),
            "p2pool_difficulty": int(pool.get("difficulty", 0) or 0),
            "pool_type": pool_type,
            "shares_in_window": shares_in_window,
            "timestamp": now,
        }
        if miner is not None:
            fields.update({
                "hashrate_10s": miner["h10"],
                "hashrate_1m": miner["h60"],
                "hashrate_15m": miner["h15"],
                "miner_pool": miner["active_pool"],
            })
            node = XvbNode.from_pool_url(miner["active_pool"])
            if node is not None and node != self.state.get_current_node():
                logger.info(f"Miner reports pool {miner['active_pool']} ({node})")
                self.state.set_current_node(node)
        else:
            fields.update({"hashrate_10s": 0.0, "hashrate_1m": 0.0, "hashrate_15m": 0.0})

        self.state.update_measurements(**fields)
        self._update_process_state(fields)
        return fields

    def _update_process_state(self, fields):
        hashrate = max(fields["hashrate_15m"], fields["hashrate_1m"], fields["hashrate_10s"])
        ready = hashrate > 0 and fields["p2pool_difficulty"] > P2POOL_DIFFICULTY_READY
        if ready:
            if self.state.transition_if(ProcessState.SYNCING, ProcessState.ALIVE):
                self.state.console("Miner and P2pool data are available.")
        elif self.state.transition_if(ProcessState.ALIVE, ProcessState.SYNCING):
            self.state.console("Miner or P2pool data went missing, waiting for them to come back.")

    async def run(self):
        """
        Main execution loop: refreshes the measurements every `interval` seconds.
        """
        logger.info("Service Started: Data Collection Loop")
        while True:
            try:
                fields = await self.update_once()
                logger.debug(f"Data updated. HR: {fields['hashrate_15m']}, shares: {fields['shares_in_window']}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Data Collection Error: {e}")
            await asyncio.sleep(self.interval)
