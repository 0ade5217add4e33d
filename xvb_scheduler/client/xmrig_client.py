import requests
import logging
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from xvb_scheduler.config.config import API_TIMEOUT


class XMRigConfigError(Exception):
    """The miner's configuration document does not have the expected pool fields."""


class XMRigApiClient:
    def __init__(self, base_url="http://127.0.0.1:18088", access_token=None, proxy=False):
        """
        Initialize the XMRig (or XMRig-Proxy) HTTP API client.

        :param base_url: Base URL of the miner API (configured via --http-host/--http-port).
        :param access_token: The access token (configured via --http-access-token).
        :param proxy: True when talking to XMRig-Proxy, whose pools carry no rig id.
        """
        self.logger = logging.getLogger("XMRigClient")
        self.base_url = base_url.rstrip("/")
        self.proxy = proxy
        self.name = "XMRig-Proxy" if proxy else "XMRig"

        # Configure Session with Retries
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1, # Wait 1s, 2s, 4s between retries
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "PUT", "OPTIONS"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        if access_token:
            self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    def get_summary(self):
        """
        Get miner summary information.
        Endpoint: GET /1/summary

        XMRig reports "hashrate": {"total": [10s, 60s, 15m]} in H/s and the active
        pool under "connection": {"pool": "host:port"}.
        XMRig-Proxy reports "hashrate": {"total": [1m, 10m, 1h, 12h, 24h]} in kH/s.
        """
        url = f"{self.base_url}/1/summary"
        response = self.session.get(url, timeout=API_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def get_config(self):
        """
        Get the current configuration of the miner.
        Endpoint: GET /1/config

        Response (relevant part):
        {
            "pools": [
                {
                    "url": "str",
                    "user": "str",
                    "rig-id": "str",
                    "keepalive": bool,
                    "tls": bool
                }
            ],
            ...
        }
        """
        url = f"{self.base_url}/1/config"
        response = self.session.get(url, timeout=API_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def update_config(self, config_data):
        """
        Replace the miner configuration.
        Endpoint: PUT /1/config
        """
        url = f"{self.base_url}/1/config"
        response = self.session.put(url, json=config_data, timeout=API_TIMEOUT)
        response.raise_for_status()
        # Handle 204 No Content or empty responses which cause JSON decode errors
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def switch_node(self, node, wallet_address, rig_id=""):
        """
        Points the first pool of the miner at node, keeping every other setting.

        :param node: XvbNode to mine on.
        :param wallet_address: Payout address; XvB nodes only see its first 8 characters.
        :param rig_id: Rig identifier, ignored for XMRig-Proxy.
        :raises XMRigConfigError: if the configuration has no first pool to rewrite.
        :raises requests.RequestException: on transport or HTTP errors.
        """
        config = self.get_config()
        pools = config.get("pools") if isinstance(config, dict) else None
        if not pools or not isinstance(pools[0], dict):
            raise XMRigConfigError(f"pools/0 does not exist in {self.name} config")

        pool = pools[0]
        for key in ("url", "user", "tls", "keepalive"):
            if key not in pool:
                raise XMRigConfigError(f"pools/0/{key} does not exist in {self.name} config")

        pool["url"] = node.address
        pool["user"] = node.user(wallet_address)
        pool["tls"] = node.tls
        pool["keepalive"] = node.keepalive
        if not self.proxy:
            pool["rig-id"] = rig_id

        self.logger.info(f"Replacing {self.name} pool with {node} ({node.address})")
        self.update_config(config)
