import threading
import logging
import time
from collections import deque
from dataclasses import dataclass, fields as dataclass_fields, replace
from typing import Any, Dict, List, Optional

from xvb_scheduler.config.config import (
    CONSOLE_MAX_LINES,
    XVB_SAMPLES_CAPACITY,
    RUNTIME_MODE,
    RUNTIME_AMOUNT,
    RUNTIME_DONATION_LEVEL,
)
from xvb_scheduler.helper.modes import ProcessState, RuntimeMode, RuntimeDonationLevel
from xvb_scheduler.helper.nodes import XvbNode
from xvb_scheduler.helper.rounds import XvbRound
from xvb_scheduler.helper.samples import SampleWindow
from xvb_scheduler.helper.stats import Measurements, XvbPrivStats, XvbPubStats
from xvb_scheduler.helper.utils import format_console_line


@dataclass(frozen=True)
class RuntimeConfig:
    """Operator settings that may change between two windows without a restart."""
    mode: RuntimeMode = RuntimeMode.AUTO
    amount: float = 0.0                 # H/s, used by the manual hashrate modes
    donation_level: RuntimeDonationLevel = RuntimeDonationLevel.DONOR

    @classmethod
    def from_config(cls):
        return cls(
            mode=RuntimeMode.parse(RUNTIME_MODE),
            amount=max(0.0, RUNTIME_AMOUNT),
            donation_level=RuntimeDonationLevel.parse(RUNTIME_DONATION_LEVEL),
        )

    def to_dict(self):
        return {
            "mode": str(self.mode),
            "amount": self.amount,
            "donation_level": str(self.donation_level),
        }


class XvbState:
    """
    Process-lifetime state shared by the scheduler, the pollers and the status API.

    Every accessor takes the lock for a single read or write and returns copies,
    so no caller can hold it across a network call or a sleep.
    """
    def __init__(self, runtime=None, samples_capacity=XVB_SAMPLES_CAPACITY,
                 console_max_lines=CONSOLE_MAX_LINES):
        self.logger = logging.getLogger("StateManager")
        self._lock = threading.Lock()
        self._process_state = ProcessState.MIDDLE
        self._current_node: Optional[XvbNode] = None
        self._selected_node = XvbNode.EUROPE
        self._p2pool_samples = SampleWindow(samples_capacity)
        self._xvb_samples = SampleWindow(samples_capacity)
        self._stats_pub = XvbPubStats()
        self._stats_priv = XvbPrivStats()
        self._round_participate: Optional[XvbRound] = None
        self._win_current = False
        self._measurements = Measurements()
        self._runtime = runtime if runtime is not None else RuntimeConfig()
        self._switch_deadline = 0.0
        self._msg_indicator = "Algorithm is not running"
        self._console = deque(maxlen=console_max_lines)

    # --- Process state ---

    def get_process_state(self) -> ProcessState:
        with self._lock:
            return self._process_state

    def set_process_state(self, state: ProcessState):
        with self._lock:
            previous = self._process_state
            self._process_state = state
        if previous != state:
            self.logger.info(f"Process state: {previous} -> {state}")
        return previous

    def transition_if(self, expected, new_state: ProcessState) -> bool:
        """Sets new_state only when the current state is one of expected."""
        if isinstance(expected, ProcessState):
            expected = (expected,)
        with self._lock:
            if self._process_state not in expected:
                return False
            previous = self._process_state
            self._process_state = new_state
        self.logger.info(f"Process state: {previous} -> {new_state}")
        return True

    # --- Nodes ---

    def get_current_node(self) -> Optional[XvbNode]:
        with self._lock:
            return self._current_node

    def set_current_node(self, node: Optional[XvbNode]):
        with self._lock:
            self._current_node = node

    def get_selected_node(self) -> XvbNode:
        with self._lock:
            return self._selected_node

    def set_selected_node(self, node: XvbNode):
        with self._lock:
            self._selected_node = node

    # --- Hashrate samples ---

    def push_samples(self, p2pool_hr: float, xvb_hr: float):
        """Pushes both windows together so they never drift apart."""
        with self._lock:
            self._p2pool_samples.push(p2pool_hr)
            self._xvb_samples.push(xvb_hr)

    def p2pool_samples_average(self) -> float:
        with self._lock:
            return self._p2pool_samples.average()

    def xvb_samples_average(self) -> float:
        with self._lock:
            return self._xvb_samples.average()

    def get_samples(self) -> Dict[str, List[float]]:
        with self._lock:
            return {
                "p2pool": self._p2pool_samples.values(),
                "xvb": self._xvb_samples.values(),
            }

    # --- XvB statistics ---

    def get_pub_stats(self) -> XvbPubStats:
        with self._lock:
            return replace(self._stats_pub, reward_yearly=list(self._stats_pub.reward_yearly))

    def set_pub_stats(self, stats: XvbPubStats):
        with self._lock:
            self._stats_pub = stats

    def get_priv_stats(self) -> XvbPrivStats:
        with self._lock:
            return replace(self._stats_priv)

    def set_priv_stats(self, stats: XvbPrivStats):
        with self._lock:
            self._stats_priv = stats

    def get_round(self) -> Optional[XvbRound]:
        with self._lock:
            return self._round_participate

    def set_round(self, round_type: Optional[XvbRound], win_current: bool = False):
        with self._lock:
            self._round_participate = round_type
            self._win_current = win_current

    # --- Measurements ---

    def get_measurements(self) -> Measurements:
        with self._lock:
            return replace(self._measurements)

    def update_measurements(self, **fields: Any):
        """Partial update; unknown keys are ignored with a warning."""
        names = {f.name for f in dataclass_fields(Measurements)}
        known = {k: v for k, v in fields.items() if k in names}
        unknown = set(fields) - set(known)
        with self._lock:
            known.setdefault("timestamp", time.time())
            self._measurements = replace(self._measurements, **known)
        if unknown:
            self.logger.warning(f"Ignoring unknown measurement fields: {sorted(unknown)}")

    # --- Runtime configuration ---

    def get_runtime(self) -> RuntimeConfig:
        with self._lock:
            return self._runtime

    def set_runtime(self, runtime: RuntimeConfig):
        with self._lock:
            self._runtime = runtime

    # --- Indicator ---

    def set_indicator(self, seconds: int, message: str):
        """Starts a countdown of seconds until the next switch or decision."""
        with self._lock:
            self._switch_deadline = time.time() + max(0, int(seconds)) if seconds else 0.0
            self._msg_indicator = message

    def get_indicator(self):
        with self._lock:
            return self._seconds_left(), self._msg_indicator

    def _seconds_left(self):
        if not self._switch_deadline:
            return 0
        return max(0, int(round(self._switch_deadline - time.time())))

    # --- Console narration ---

    def console(self, msg: str):
        line = format_console_line(msg)
        with self._lock:
            self._console.append(line)

    def get_console(self) -> List[str]:
        with self._lock:
            return list(self._console)

    # --- Lifecycle ---

    def reset_stats(self):
        """
        Clears statistics and samples after a stop. The current node and the
        runtime configuration are kept since they describe the miner and the operator.
        """
        with self._lock:
            self._p2pool_samples.clear()
            self._xvb_samples.clear()
            self._stats_pub = XvbPubStats()
            self._stats_priv = XvbPrivStats()
            self._round_participate = None
            self._win_current = False
            self._switch_deadline = 0.0
            self._msg_indicator = "Algorithm is not running"

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of everything the presentation layer reads."""
        with self._lock:
            return {
                "state": str(self._process_state),
                "current_node": str(self._current_node) if self._current_node else None,
                "selected_node": str(self._selected_node),
                "round": str(self._round_participate) if self._round_participate else None,
                "win_current": self._win_current,
                "stats_pub": self._stats_pub.to_dict(),
                "stats_priv": self._stats_priv.to_dict(),
                "measurements": self._measurements.to_dict(),
                "runtime": self._runtime.to_dict(),
                "samples": {
                    "p2pool": self._p2pool_samples.values(),
                    "xvb": self._xvb_samples.values(),
                    "p2pool_avg": self._p2pool_samples.average(),
                    "xvb_avg": self._xvb_samples.average(),
                },
                "indicator": {
                    "seconds": self._seconds_left(),
                    "message": self._msg_indicator,
                },
            }
