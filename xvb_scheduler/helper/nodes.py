from enum import Enum

from xvb_scheduler.config.config import (
    XVB_NODE_EU,
    XVB_NODE_NA,
    XVB_NODE_PORT,
    P2POOL_NODE_PORT,
    XMRIG_PROXY_NODE_PORT,
    USER_TAG,
)


class XvbNode(Enum):
    """
    Mining destinations the miner can be pointed at.

    Each member carries its own connection settings, so callers never branch
    on which node they hold.
    """
    NORTH_AMERICA = ("XvB North America Node", XVB_NODE_NA, XVB_NODE_PORT, True)
    EUROPE = ("XvB European Node", XVB_NODE_EU, XVB_NODE_PORT, True)
    P2POOL = ("Local P2pool", "127.0.0.1", P2POOL_NODE_PORT, False)
    XMRIG_PROXY = ("Xmrig Proxy", "127.0.0.1", XMRIG_PROXY_NODE_PORT, False)

    def __init__(self, label, url, port, remote):
        self.label = label
        self.url = url
        self.port = port
        self.remote = remote

    def __str__(self):
        return self.label

    @property
    def address(self):
        return f"{self.url}:{self.port}"

    @property
    def tls(self):
        return self.remote

    @property
    def keepalive(self):
        return self.remote

    @property
    def is_donation(self):
        return self.remote

    def user(self, wallet_address):
        """XvB identifies donors by the first 8 characters of the payout address."""
        if self.remote:
            return (wallet_address or "")[:8]
        return USER_TAG

    @classmethod
    def donation_nodes(cls):
        return [cls.EUROPE, cls.NORTH_AMERICA]

    @classmethod
    def from_pool_url(cls, pool_url):
        """
        Maps the pool a miner reports as connected ("host:port") back to a node.
        Returns None for pools this service does not manage.
        """
        if not pool_url:
            return None
        host, _, port = str(pool_url).rpartition(":")
        if not host:
            host, port = port, ""
        host = host.split("://")[-1].lower()
        for node in cls:
            if host == node.url.lower() and (not port or port == str(node.port)):
                return node
        if host in ("localhost", "127.0.0.1"):
            for node in (cls.P2POOL, cls.XMRIG_PROXY):
                if port == str(node.port):
                    return node
        return None
