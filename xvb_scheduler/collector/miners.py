def _rate(values, index, scale=1):
    if len(values) > index and values[index] is not None:
        try:
            return float(values[index]) * scale
        except (TypeError, ValueError):
            return 0.0
    return 0.0


def parse_xmrig_summary(data):
    """
    Normalizes an XMRig /1/summary payload.

    Returns:
        dict: h10, h60, h15 in H/s and the pool the miner is connected to.
    """
    if not isinstance(data, dict):
        data = {}

    # Validate hashrate structure (expected: [10s, 60s, 15m])
    hr_total = (data.get("hashrate") or {}).get("total")
    if not isinstance(hr_total, list):
        hr_total = [0, 0, 0]

    return {
        "h10": _rate(hr_total, 0),
        "h60": _rate(hr_total, 1),
        "h15": _rate(hr_total, 2),
        "active_pool": (data.get("connection") or {}).get("pool"),
    }


def parse_proxy_summary(data):
    """
    Normalizes an XMRig-Proxy /1/summary payload.

    The proxy reports [1m, 10m, 1h, 12h, 24h] in kH/s and has no 10s figure;
    1m stands in for both short averages and 10m for the long one.
    """
    if not isinstance(data, dict):
        data = {}

    hr_total = (data.get("hashrate") or {}).get("total")
    if not isinstance(hr_total, list):
        hr_total = []

    h1m = _rate(hr_total, 0, 1000)
    h10m = _rate(hr_total, 1, 1000)
    return {
        "h10": h1m,
        "h60": h1m,
        "h15": h10m if h10m > 0 else h1m,
        "active_pool": None,
    }
