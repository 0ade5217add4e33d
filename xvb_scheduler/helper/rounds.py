from enum import Enum

from xvb_scheduler.helper.modes import RuntimeDonationLevel


class XvbRound(Enum):
    VIP = "VIP"
    DONOR = "Donor"
    DONOR_VIP = "VIP Donor"
    DONOR_WHALE = "Whale Donor"
    DONOR_MEGA = "Mega Donor"

    def __str__(self):
        return self.value

    @property
    def rank(self):
        return _RANKS[self]

    @classmethod
    def from_api(cls, value):
        """Maps the public API spelling ("vip", "donor_whale", ...) to a round."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _API_ALIASES:
            return _API_ALIASES[key]
        for round_type in cls:
            if key == round_type.value.lower():
                return round_type
        raise ValueError(f"Unknown round type: {value!r}")


_RANKS = {
    XvbRound.VIP: 0,
    XvbRound.DONOR: 1,
    XvbRound.DONOR_VIP: 2,
    XvbRound.DONOR_WHALE: 3,
    XvbRound.DONOR_MEGA: 4,
}

_API_ALIASES = {
    "vip": XvbRound.VIP,
    "donor": XvbRound.DONOR,
    "donor_vip": XvbRound.DONOR_VIP,
    "donor_whale": XvbRound.DONOR_WHALE,
    "donor_mega": XvbRound.DONOR_MEGA,
}

_LEVEL_TO_ROUND = {
    RuntimeDonationLevel.DONOR: XvbRound.DONOR,
    RuntimeDonationLevel.DONOR_VIP: XvbRound.DONOR_VIP,
    RuntimeDonationLevel.DONOR_WHALE: XvbRound.DONOR_WHALE,
    RuntimeDonationLevel.DONOR_MEGA: XvbRound.DONOR_MEGA,
}


def classify_round(share, donor_1h_avg, donor_24h_avg):
    """
    Determines which round the operator currently participates in.

    Args:
        share (int): Shares held in the PPLNS window.
        donor_1h_avg (float): 1 hour average donated to XvB, in kH/s.
        donor_24h_avg (float): 24 hour average donated to XvB, in kH/s.

    Returns:
        XvbRound or None: None when no share is held, otherwise the highest tier
        whose threshold both averages meet, falling back to VIP.
    """
    if share <= 0:
        return None

    # Compare in whole H/s so float noise cannot flip a tier
    avg_1h = int(donor_1h_avg * 1000)
    avg_24h = int(donor_24h_avg * 1000)

    for level in RuntimeDonationLevel.descending():
        if avg_1h >= level.min_hashrate and avg_24h >= level.min_hashrate:
            return _LEVEL_TO_ROUND[level]

    return XvbRound.VIP
