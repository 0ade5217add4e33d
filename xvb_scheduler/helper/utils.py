import math
import time


def format_hashrate(hashrate):
    """
    Formats a raw hashrate value into a human-readable string with appropriate units.

    Args:
        hashrate (float): The raw hashrate in H/s.

    Returns:
        str: Formatted string (e.g., "1.25 MH/s").
    """
    try:
        val = float(hashrate)

        if val >= 1_000_000_000:
            return f"{val / 1_000_000_000:.2f} GH/s"
        elif val >= 1_000_000:
            return f"{val / 1_000_000:.2f} MH/s"
        elif val >= 1_000:
            return f"{val / 1_000:.2f} kH/s"
        else:
            return f"{int(val)} H/s"

    except (ValueError, TypeError):
        return "0 H/s"


def format_duration(seconds):
    """
    Formats a duration in seconds into a concise human-readable string.

    Format logic:
    - > 1 hour: "Xh Xm"
    - < 1 hour: "Xm Xs"
    """
    try:
        seconds = int(seconds)
        hours = seconds // 3600
        minutes = (seconds // 60) % 60
        secs = seconds % 60

        if hours > 0:
            return f"{hours}h {minutes}m"

        return f"{minutes}m {secs}s"

    except (ValueError, TypeError):
        return "0s"


def format_console_line(msg, timestamp=None):
    """Prefixes a narration line with the local time, the way miner consoles print."""
    if timestamp is None:
        timestamp = time.time()
    return f"[{time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(timestamp))}] {msg}"


def head_tail_of_address(address, length=6):
    """Abbreviates a wallet address as XvB publishes round winners ("4Abc12...xyz789")."""
    if not address or len(address) <= length * 2:
        return address or ""
    return f"{address[:length]}...{address[-length:]}"


def clamp(value, lower, upper):
    """Bounds value to [lower, upper]; NaN collapses to lower."""
    if isinstance(value, float) and math.isnan(value):
        return lower
    return max(lower, min(upper, value))
