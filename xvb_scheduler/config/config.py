import os

from xvb_scheduler import __version__


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- System Paths ---
# Adjust these if your Docker container paths differ
BASE_STATS_DIR = os.environ.get("BASE_STATS_DIR", "/app/stats")

# --- P2Pool Data API File Paths ---
STRATUM_STATS_PATH = f"{BASE_STATS_DIR}/local/stratum"
P2P_STATS_PATH = f"{BASE_STATS_DIR}/local/p2p"
POOL_STATS_PATH = f"{BASE_STATS_DIR}/pool/stats"

# --- Identity (supplied, never derived here) ---
MONERO_WALLET_ADDRESS = os.environ.get("MONERO_WALLET_ADDRESS", "")
XVB_TOKEN = os.environ.get("XVB_TOKEN", "")

# Username sent to the local pool / proxy instead of the payout address
USER_TAG = "xvb_scheduler_v" + __version__.replace(".", "_")

# --- Miner Management API ---
XMRIG_API_URL = os.environ.get("XMRIG_API_URL", "http://127.0.0.1:18088")
XMRIG_PROXY_API_URL = os.environ.get("XMRIG_PROXY_API_URL", "http://127.0.0.1:18090")
XMRIG_API_TOKEN = os.environ.get("XMRIG_API_TOKEN", "")
XMRIG_RIG_ID = os.environ.get("XMRIG_RIG_ID", USER_TAG)
# When True the scheduler drives XMRig-Proxy instead of a single XMRig
XMRIG_PROXY_MODE = _env_bool("XMRIG_PROXY_MODE")
API_TIMEOUT = 5         # Seconds to wait for miner response
UPDATE_INTERVAL = _env_int("UPDATE_INTERVAL", 10)    # Seconds between data refresh cycles

# --- Status API ---
WEB_PORT = _env_int("WEB_PORT", 8080)
CONSOLE_MAX_LINES = _env_int("CONSOLE_MAX_LINES", 500)

# --- XvB Algorithm Constants ---
XVB_TIME_ALGO = _env_int("XVB_TIME_ALGO", 600)          # Decision window (10 minutes)
XVB_SAMPLES_CAPACITY = max(1, 3600 // XVB_TIME_ALGO)    # One sample per window over the last hour
XVB_ALGO_RETRY_INTERVAL = 10                            # Seconds between readiness checks
P2POOL_BUFFER_PERCENT = _env_int("P2POOL_BUFFER_PERCENT", 5)
P2POOL_DIFFICULTY_READY = 100_000                       # Below this, p2pool has not reported real data yet

# Donation round thresholds (H/s)
XVB_ROUND_DONOR_MIN_HR = 1_000          # 1 kH/s
XVB_ROUND_DONOR_VIP_MIN_HR = 10_000     # 10 kH/s
XVB_ROUND_DONOR_WHALE_MIN_HR = 100_000  # 100 kH/s
XVB_ROUND_DONOR_MEGA_MIN_HR = 1_000_000 # 1 MH/s

# P2Pool PPLNS Math Constants
# Used to calculate if you have enough hashrate to hold a share
BLOCK_PPLNS_WINDOW_MAIN = 363
BLOCK_PPLNS_WINDOW_MINI = 2160
BLOCK_PPLNS_WINDOW_NANO = 2160
SECOND_PER_BLOCK_P2POOL_MAIN = 10
SECOND_PER_BLOCK_P2POOL_MINI = 10
SECOND_PER_BLOCK_P2POOL_NANO = 30

# --- XvB Endpoints ---
XVB_URL = "https://xmrvsbeast.com"
XVB_URL_PUBLIC_API = f"{XVB_URL}/p2pool/stats"
XVB_URL_PRIVATE_API = f"{XVB_URL}/cgi-bin/p2pool_bonus_history_api.cgi"
XVB_PUBLIC_API_TIMEOUT = 5
XVB_STATS_INTERVAL = 60     # Seconds between stats refreshes
XVB_RETRY_BACKOFF = 10      # Fixed wait after a failed stats refresh

XVB_NODE_EU = os.environ.get("XVB_NODE_EU", "eu.xmrvsbeast.com")
XVB_NODE_NA = os.environ.get("XVB_NODE_NA", "na.xmrvsbeast.com")
XVB_NODE_PORT = 4247
XVB_NODE_RPC = 18089
P2POOL_NODE_PORT = 3333
XMRIG_PROXY_NODE_PORT = 3355
NODE_PING_ATTEMPTS = 6
TIMEOUT_NODE_PING_MS = 5000

# --- Initial Runtime Configuration ---
RUNTIME_MODE = os.environ.get("RUNTIME_MODE", "Auto")
RUNTIME_AMOUNT = float(os.environ.get("RUNTIME_AMOUNT", "0") or 0)
RUNTIME_DONATION_LEVEL = os.environ.get("RUNTIME_DONATION_LEVEL", "Donor")
