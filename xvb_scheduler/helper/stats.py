from dataclasses import dataclass, field, asdict
from typing import List, Optional

from xvb_scheduler.helper.rounds import XvbRound


def _as_u64(value):
    """Accepts numbers or numeric strings, as the XvB API mixes both."""
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    if isinstance(value, str):
        value = value.strip()
        return int(float(value)) if value else 0
    return int(value)


@dataclass
class XvbPubStats:
    """Public round statistics published by XvB."""
    time_remain: int = 0        # remaining time of round in minutes
    bonus_hr: float = 0.0
    donate_hr: float = 0.0      # donated hr from all donors
    donate_miners: int = 0      # numbers of donors
    donate_workers: int = 0     # numbers of workers from donors
    players: int = 0
    players_round: int = 0
    winner: str = ""
    share_effort: str = ""
    block_reward: str = ""
    round_type: XvbRound = XvbRound.VIP
    block_height: int = 0
    block_hash: str = ""
    roll_winner: int = 0
    roll_round: int = 0
    reward_yearly: List[float] = field(default_factory=list)

    @classmethod
    def from_json(cls, data):
        """
        Builds the stats from the decoded API payload.

        Raises:
            ValueError: if the payload is not an object or a field has the wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError("public stats payload is not a JSON object")
        try:
            return cls(
                time_remain=int(data["time_remain"]),
                bonus_hr=float(data["bonus_hr"]),
                donate_hr=float(data["donate_hr"]),
                donate_miners=int(data["donate_miners"]),
                donate_workers=int(data["donate_workers"]),
                players=int(data["players"]),
                players_round=int(data["players_round"]),
                winner=str(data["winner"]),
                share_effort=str(data["share_effort"]),
                block_reward=str(data["block_reward"]),
                round_type=XvbRound.from_api(data["round_type"]),
                block_height=_as_u64(data["block_height"]),
                block_hash=str(data["block_hash"]),
                roll_winner=_as_u64(data["roll_winner"]),
                roll_round=_as_u64(data["roll_round"]),
                reward_yearly=[float(v) for v in data["reward_yearly"]],
            )
        except KeyError as e:
            raise ValueError(f"public stats payload is missing {e}") from e
        except (TypeError, OverflowError) as e:
            raise ValueError(f"public stats payload is malformed: {e}") from e

    def to_dict(self):
        d = asdict(self)
        d["round_type"] = str(self.round_type)
        return d


@dataclass
class XvbPrivStats:
    """Donor statistics for one address. Averages are in kH/s, as served."""
    fails: int = 0
    donor_1hr_avg: float = 0.0
    donor_24hr_avg: float = 0.0

    @classmethod
    def from_json(cls, data):
        if not isinstance(data, dict):
            raise ValueError("private stats payload is not a JSON object")
        try:
            return cls(
                fails=int(data["fails"]),
                donor_1hr_avg=float(data["donor_1hr_avg"]),
                donor_24hr_avg=float(data["donor_24hr_avg"]),
            )
        except KeyError as e:
            raise ValueError(f"private stats payload is missing {e}") from e
        except (TypeError, OverflowError) as e:
            raise ValueError(f"private stats payload is malformed: {e}") from e

    def to_dict(self):
        return asdict(self)


@dataclass
class Measurements:
    """Live readings supplied by the data collector."""
    hashrate_10s: float = 0.0
    hashrate_1m: float = 0.0
    hashrate_15m: float = 0.0
    sidechain_hashrate: float = 0.0     # estimated hashrate of this address on the side-chain
    p2pool_difficulty: int = 0
    pool_type: str = "Mini"
    shares_in_window: int = 0
    miner_pool: Optional[str] = None
    timestamp: float = 0.0

    def controllable_hashrate(self):
        """Longest available average: 15m, then 1m, then instantaneous."""
        if self.hashrate_15m > 0:
            return self.hashrate_15m
        if self.hashrate_1m > 0:
            return self.hashrate_1m
        return self.hashrate_10s

    def to_dict(self):
        return asdict(self)
