import asyncio
import logging

import aiohttp

from xvb_scheduler.client.xvb_client import XvbApiError
from xvb_scheduler.config.config import XVB_RETRY_BACKOFF, XVB_STATS_INTERVAL
from xvb_scheduler.helper.modes import ProcessState
from xvb_scheduler.helper.rounds import classify_round
from xvb_scheduler.helper.utils import head_tail_of_address

logger = logging.getLogger("StatsService")


class StatsPoller:
    """
    Refreshes XvB public (and, with a token, private) statistics into the shared state.

    A failed refresh flips the process into Retry, narrates once, waits the fixed
    backoff and hands control back; the next tick of run() tries again.
    """
    def __init__(self, state, xvb_client, address="", token="",
                 interval=XVB_STATS_INTERVAL, backoff=XVB_RETRY_BACKOFF, sleep=None):
        self.state = state
        self.xvb_client = xvb_client
        self.address = address
        self.token = token
        self.interval = interval
        self.backoff = backoff
        self._sleep = sleep or asyncio.sleep

    async def poll_once(self):
        """Returns True when the refresh succeeded."""
        try:
            pub = await self.xvb_client.get_public_stats()
            priv = None
            if self.address and self.token:
                priv = await self.xvb_client.get_private_stats(self.address, self.token)
        except (aiohttp.ClientError, asyncio.TimeoutError, XvbApiError) as e:
            await self._on_failure(e)
            return False

        self.state.set_pub_stats(pub)
        if priv is not None:
            self.state.set_priv_stats(priv)
            share = self.state.get_measurements().shares_in_window
            round_type = classify_round(share, priv.donor_1hr_avg, priv.donor_24hr_avg)
            win_current = bool(pub.winner) and pub.winner == head_tail_of_address(self.address)
            self.state.set_round(round_type, win_current)
            if win_current:
                self.state.console("Your address is the winner of the current XvB round!")

        if self.state.transition_if(ProcessState.RETRY, ProcessState.SYNCING):
            self.state.console("XvB stats are reachable again, leaving retry.")
            logger.info("Stats refresh recovered")

        logger.debug(f"Stats refreshed: round {pub.round_type}, {pub.time_remain} min remaining")
        return True

    async def _on_failure(self, error):
        previous = self.state.set_process_state(ProcessState.RETRY)
        if previous != ProcessState.RETRY:
            logger.warning(f"Stats refresh failed: {error}")
            self.state.console(f"Failure to retrieve XvB stats: {error}")
        self.state.console(f"Waiting {self.backoff} seconds before retry...")
        await self._sleep(self.backoff)

    async def run(self):
        logger.info("Service Started: XvB Stats Loop")
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Stats Loop Error: {e}")
            await self._sleep(self.interval)
