import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum

import requests

from xvb_scheduler.client.xmrig_client import XMRigConfigError
from xvb_scheduler.collector.pools import pplns_params
from xvb_scheduler.config.config import (
    XVB_TIME_ALGO,
    XVB_ALGO_RETRY_INTERVAL,
    P2POOL_BUFFER_PERCENT,
    P2POOL_DIFFICULTY_READY,
)
from xvb_scheduler.helper.modes import ProcessState, RuntimeMode, RuntimeDonationLevel
from xvb_scheduler.helper.nodes import XvbNode
from xvb_scheduler.helper.utils import clamp, format_duration, format_hashrate

logger = logging.getLogger("AlgoService")


class Strategy(Enum):
    HYBRID = "hybrid"           # local pool first, donation node for the spared time
    DONATE_ALL = "donate-all"
    LOCAL_ALL = "local-all"

    def __str__(self):
        return self.value


def minimum_hashrate_share(difficulty, pool_type, external_hashrate,
                           buffer_percent=P2POOL_BUFFER_PERCENT):
    """
    Hashrate this instance must send to p2pool to keep one share in the PPLNS window.

    Signed: the result is negative when the rest of this address's side-chain
    hashrate already covers the need. Use clamp_non_negative() before subtracting it.
    """
    blocks, seconds_per_block = pplns_params(pool_type)
    buffer = 1 + buffer_percent / 100
    return (int(difficulty) // (blocks * seconds_per_block)) * buffer - external_hashrate


def clamp_non_negative(value):
    return value if value > 0 else 0.0


def get_spared_time(target_hashrate, hashrate, window=XVB_TIME_ALGO):
    """Seconds of the window to spend on XvB, always within [0, window]."""
    if hashrate <= 0 or target_hashrate <= 0:
        return 0
    if target_hashrate >= hashrate:
        return window
    return int(clamp(math.floor(target_hashrate / hashrate * window), 0, window))


def select_strategy(share, target, donor_24h_avg):
    if share <= 0 or target <= 0:
        return Strategy.LOCAL_ALL
    if donor_24h_avg > target:
        return Strategy.HYBRID
    return Strategy.DONATE_ALL


@dataclass
class DecisionContext:
    """Everything one window decides on. Built fresh each window, then discarded."""
    share: int
    hashrate: float                 # controllable hashrate of the miner, H/s
    donor_1h_avg: float             # H/s
    donor_24h_avg: float            # H/s
    address: str
    mode: RuntimeMode
    amount: float
    donation_level: RuntimeDonationLevel
    sidechain_hashrate: float
    pool_type: str
    difficulty: int
    p2pool_avg: float
    window: int = XVB_TIME_ALGO
    external_hashrate: float = 0.0
    min_hashrate_share: float = 0.0     # signed
    spareable_hashrate: float = 0.0     # signed
    target: float = 0.0
    spared_time: int = 0
    fulfilled_1h: bool = False          # 1h average above target; logged only

    def __post_init__(self):
        self.external_hashrate = clamp_non_negative(self.sidechain_hashrate - self.p2pool_avg)
        self.min_hashrate_share = minimum_hashrate_share(
            self.difficulty, self.pool_type, self.external_hashrate)
        self.spareable_hashrate = self.hashrate - clamp_non_negative(self.min_hashrate_share)
        self.target = get_target_donation_hashrate(self)
        self.spared_time = get_spared_time(self.target, self.hashrate, self.window)
        self.fulfilled_1h = self.donor_1h_avg > self.target

    @classmethod
    def build(cls, state, address="", window=XVB_TIME_ALGO):
        m = state.get_measurements()
        priv = state.get_priv_stats()
        runtime = state.get_runtime()
        return cls(
            share=m.shares_in_window,
            hashrate=m.controllable_hashrate(),
            # XvB reports donor averages in kH/s
            donor_1h_avg=priv.donor_1hr_avg * 1000,
            donor_24h_avg=priv.donor_24hr_avg * 1000,
            address=address,
            mode=runtime.mode,
            amount=runtime.amount,
            donation_level=runtime.donation_level,
            sidechain_hashrate=m.sidechain_hashrate,
            pool_type=m.pool_type,
            difficulty=m.p2pool_difficulty,
            p2pool_avg=state.p2pool_samples_average(),
            window=window,
        )


def _target_auto(ctx):
    level = RuntimeDonationLevel.highest_exceeded_by(ctx.spareable_hashrate)
    return float(level.min_hashrate) if level else 0.0


def _target_hero(ctx):
    return clamp_non_negative(ctx.spareable_hashrate)


def _target_manual_xvb(ctx):
    return float(ctx.amount)


def _target_manual_p2pool(ctx):
    # amount is what stays on p2pool
    return clamp_non_negative(ctx.hashrate - ctx.amount)


def _target_manual_donation_level(ctx):
    return float(ctx.donation_level.min_hashrate)


_TARGETS = {
    RuntimeMode.AUTO: _target_auto,
    RuntimeMode.HERO: _target_hero,
    RuntimeMode.MANUAL_XVB: _target_manual_xvb,
    RuntimeMode.MANUAL_P2POOL: _target_manual_p2pool,
    RuntimeMode.MANUAL_DONATION_LEVEL: _target_manual_donation_level,
}


def get_target_donation_hashrate(ctx):
    return _TARGETS[ctx.mode](ctx)


@dataclass
class WindowOutcome:
    strategy: Strategy
    target: float
    spared_time: int
    p2pool_hashrate: float = 0.0
    xvb_hashrate: float = 0.0
    interrupted: bool = False


class DonationScheduler:
    def __init__(self, state, xmrig_client, selector, address="", rig_id="",
                 window=XVB_TIME_ALGO, retry_interval=XVB_ALGO_RETRY_INTERVAL, sleep=None):
        """
        :param state: shared XvbState.
        :param xmrig_client: XMRigApiClient (blocking, called through a thread).
        :param selector: NodeSelector used at start and whenever nodes must be re-probed.
        :param sleep: optional coroutine function replacing the interruptible wait.
        """
        self.state = state
        self.xmrig_client = xmrig_client
        self.selector = selector
        self.address = address
        self.rig_id = rig_id
        self.window = window
        self.retry_interval = retry_interval
        self._sleep = sleep
        self._stop = asyncio.Event()
        self._reselect = False

    @property
    def miner_name(self):
        return getattr(self.xmrig_client, "name", "XMRig")

    def stop(self):
        """Interrupts the current wait; the loop falls back to p2pool and exits."""
        self._stop.set()

    async def _wait(self, seconds):
        """Returns False when the wait was interrupted by stop()."""
        if self._stop.is_set():
            return False
        if seconds <= 0:
            return True
        if self._sleep is not None:
            await self._sleep(seconds)
            return not self._stop.is_set()
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def _switch_to(self, node):
        """Points the miner at node unless it already mines there. Returns success."""
        if self.state.get_current_node() == node:
            logger.debug(f"{self.miner_name} already mining on {node}, no update needed")
            return True

        try:
            await asyncio.to_thread(self.xmrig_client.switch_node, node, self.address, self.rig_id)
        except (requests.RequestException, XMRigConfigError) as e:
            logger.warning(f"Failed to switch {self.miner_name} to {node}: {e}")
            self.state.console(f"Failure to update {self.miner_name} config with new pool {node}: {e}")
            if node.is_donation:
                # The node may be gone, probe again before the next window
                self._reselect = True
            return False

        self.state.set_current_node(node)
        self.state.console(f"{self.miner_name} is now mining on {node}")
        return True

    def get_target_donation_hashrate(self, ctx=None):
        ctx = ctx or DecisionContext.build(self.state, self.address, self.window)
        return ctx.target

    async def run_one_window(self):
        ctx = DecisionContext.build(self.state, self.address, self.window)
        donation_node = self.state.get_selected_node()
        strategy = select_strategy(ctx.share, ctx.target, ctx.donor_24h_avg)

        if strategy is not Strategy.LOCAL_ALL and (
                not donation_node.is_donation
                or self.state.get_process_state() == ProcessState.OFFLINE_NODES_ALL):
            self.state.console("XvB nodes are unavailable, mining on P2pool for this window.")
            strategy = Strategy.LOCAL_ALL

        logger.info(
            f"Decision Strategy: {strategy} (mode {ctx.mode}, hashrate {format_hashrate(ctx.hashrate)}, "
            f"target {format_hashrate(ctx.target)}, 24h avg {format_hashrate(ctx.donor_24h_avg)}, "
            f"1h avg fulfilled {ctx.fulfilled_1h}, share {ctx.share})"
        )

        if strategy is Strategy.LOCAL_ALL:
            spared = 0
            if ctx.share <= 0:
                self.state.console("No share in the PPLNS window, mining on P2pool for the whole window.")
            elif ctx.target <= 0:
                self.state.console("No hashrate to spare for XvB, mining on P2pool for the whole window.")
            await self._switch_to(XvbNode.P2POOL)
            self.state.set_indicator(self.window, "Next decision in")
            completed = await self._wait(self.window)

        elif strategy is Strategy.DONATE_ALL:
            spared = self.window
            self.state.console(
                f"24h average below target of {format_hashrate(ctx.target)}, "
                f"mining on {donation_node} for the whole window."
            )
            await self._switch_to(donation_node)
            self.state.set_indicator(self.window, "Next decision in")
            completed = await self._wait(self.window)

        else:
            spared = ctx.spared_time
            local_time = self.window - spared
            self.state.console(
                f"Share and 24h average fulfilled, mining on P2pool for {format_duration(local_time)} "
                f"then on {donation_node} for {format_duration(spared)}."
            )
            completed = True
            if local_time > 0:
                await self._switch_to(XvbNode.P2POOL)
                if spared > 0:
                    self.state.set_indicator(local_time, f"Switching to {donation_node} in")
                else:
                    self.state.set_indicator(local_time, "Next decision in")
                completed = await self._wait(local_time)
            if completed and spared > 0:
                await self._switch_to(donation_node)
                self.state.set_indicator(spared, "Next decision in")
                completed = await self._wait(spared)

        outcome = WindowOutcome(strategy=strategy, target=ctx.target, spared_time=spared)
        if not completed:
            outcome.interrupted = True
            return outcome

        # Re-read: the hashrate has drifted while the window ran
        hashrate = self.state.get_measurements().controllable_hashrate()
        outcome.p2pool_hashrate = hashrate * (self.window - spared) / self.window
        outcome.xvb_hashrate = hashrate * spared / self.window
        self.state.push_samples(outcome.p2pool_hashrate, outcome.xvb_hashrate)
        return outcome

    def _is_ready(self):
        m = self.state.get_measurements()
        return m.controllable_hashrate() > 0 and m.p2pool_difficulty > P2POOL_DIFFICULTY_READY

    async def _wait_until_ready(self):
        notified = False
        while not self._is_ready():
            if not notified:
                self.state.console("Waiting for miner hashrate and P2pool data before starting the algorithm...")
                self.state.set_indicator(0, "Waiting for data")
                notified = True
            if not await self._wait(self.retry_interval):
                return False
        return True

    def _needs_reselect(self):
        return (
            self._reselect
            or self.state.get_process_state() == ProcessState.OFFLINE_NODES_ALL
            or not self.state.get_selected_node().is_donation
        )

    async def _fallback(self):
        self.state.set_indicator(0, "Algorithm is not running")
        if self.state.get_current_node() not in (None, XvbNode.P2POOL):
            await self._switch_to(XvbNode.P2POOL)

    async def run(self):
        """
        Periodic task executing one decision window after the other until stop().
        Cancellation is honoured at any await; stop() interrupts the running wait.
        """
        logger.info("Service Started: Algorithm Control Loop")
        self.state.console("XvB algorithm started.")
        try:
            await self.selector.select_fastest()
            while not self._stop.is_set():
                if not await self._wait_until_ready():
                    break
                if self._needs_reselect():
                    self._reselect = False
                    await self.selector.select_fastest()
                try:
                    await self.run_one_window()
                except (asyncio.CancelledError, KeyboardInterrupt):
                    raise
                except Exception as e:
                    logger.error(f"Algorithm Error: {e}")
                    self.state.console(f"Algorithm error: {e}")
                    await self._wait(self.retry_interval)
        finally:
            await self._fallback()
            self.state.reset_stats()
            self.state.set_process_state(ProcessState.DEAD)
            self.state.console("XvB algorithm stopped.")
            logger.info("Service Stopped: Algorithm Control Loop")
