from enum import Enum

from xvb_scheduler.config.config import (
    XVB_ROUND_DONOR_MIN_HR,
    XVB_ROUND_DONOR_VIP_MIN_HR,
    XVB_ROUND_DONOR_WHALE_MIN_HR,
    XVB_ROUND_DONOR_MEGA_MIN_HR,
)


class ProcessState(Enum):
    """Lifecycle of the XvB process as seen by the status API."""
    MIDDLE = "Middle"                       # starting, nothing decided yet
    SYNCING = "Syncing"                     # healthy, waiting for miner/p2pool data
    ALIVE = "Alive"
    RETRY = "Retry"                         # last stats refresh failed
    OFFLINE_NODES_ALL = "OfflineNodesAll"   # no XvB node answered the probes
    DEAD = "Dead"

    def __str__(self):
        return self.value


class RuntimeMode(Enum):
    AUTO = "Auto"
    HERO = "Hero"
    MANUAL_XVB = "ManualXvb"
    MANUAL_P2POOL = "ManualP2pool"
    MANUAL_DONATION_LEVEL = "ManualDonationLevel"

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, value):
        """Accepts the enum value or its member name, case-insensitively."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().replace(" ", "").replace("_", "").lower()
        for mode in cls:
            if key in (mode.value.lower(), mode.name.replace("_", "").lower()):
                return mode
        raise ValueError(f"Unknown runtime mode: {value!r}")


class RuntimeDonationLevel(Enum):
    """Donation tiers, lowest first. Each member carries its minimum hashrate."""
    DONOR = ("Donor", XVB_ROUND_DONOR_MIN_HR)
    DONOR_VIP = ("DonorVip", XVB_ROUND_DONOR_VIP_MIN_HR)
    DONOR_WHALE = ("DonorWhale", XVB_ROUND_DONOR_WHALE_MIN_HR)
    DONOR_MEGA = ("DonorMega", XVB_ROUND_DONOR_MEGA_MIN_HR)

    def __init__(self, label, min_hashrate):
        self.label = label
        self.min_hashrate = min_hashrate

    def __str__(self):
        return self.label

    @classmethod
    def descending(cls):
        """Tiers from highest to lowest threshold."""
        return sorted(cls, key=lambda level: level.min_hashrate, reverse=True)

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        key = str(value).strip().replace(" ", "").replace("_", "").lower()
        for level in cls:
            if key in (level.label.lower(), level.name.replace("_", "").lower()):
                return level
        raise ValueError(f"Unknown donation level: {value!r}")

    @classmethod
    def highest_exceeded_by(cls, hashrate):
        """
        First tier, checked from the highest down, whose threshold is strictly
        exceeded by hashrate. None if no tier is exceeded.
        """
        for level in cls.descending():
            if hashrate > level.min_hashrate:
                return level
        return None
