import asyncio
import json
import logging
import time

import aiohttp
from aiohttp import ClientTimeout

from xvb_scheduler.config.config import (
    XVB_URL_PUBLIC_API,
    XVB_URL_PRIVATE_API,
    XVB_PUBLIC_API_TIMEOUT,
    XVB_NODE_RPC,
    TIMEOUT_NODE_PING_MS,
)
from xvb_scheduler.helper.stats import XvbPrivStats, XvbPubStats

GET_INFO_BODY = {"jsonrpc": "2.0", "id": "0", "method": "get_info"}


class XvbApiError(Exception):
    """XvB answered, but not with something usable."""


class XvbClient:
    def __init__(self, session: aiohttp.ClientSession,
                 public_url=XVB_URL_PUBLIC_API, private_url=XVB_URL_PRIVATE_API):
        """
        Initialize the XvB Client.

        :param session: An active aiohttp.ClientSession.
        """
        self.session = session
        self.public_url = public_url
        self.private_url = private_url
        self.logger = logging.getLogger("XvbClient")

    async def get_public_stats(self):
        """
        Retrieves the public round statistics.

        Raises:
            XvbApiError: unexpected status or undecodable payload.
            aiohttp.ClientError, asyncio.TimeoutError: transport failures.
        """
        timeout = ClientTimeout(total=XVB_PUBLIC_API_TIMEOUT)
        async with self.session.get(self.public_url, timeout=timeout) as response:
            if response.status != 200:
                raise XvbApiError(f"public API answered with status {response.status}")
            data = await self._read_json(response)
        try:
            return XvbPubStats.from_json(data)
        except ValueError as e:
            raise XvbApiError(f"public stats are not deserializable: {e}") from e

    async def get_private_stats(self, address, token):
        """
        Retrieves the donor statistics of address.

        Raises:
            XvbApiError: invalid token (HTTP 422), unexpected status or undecodable payload.
            aiohttp.ClientError, asyncio.TimeoutError: transport failures.
        """
        params = {"address": address, "token": token}
        timeout = ClientTimeout(total=XVB_PUBLIC_API_TIMEOUT)
        async with self.session.get(self.private_url, params=params, timeout=timeout) as response:
            if response.status == 422:
                raise XvbApiError("the token is invalid for this xmr address.")
            if response.status != 200:
                raise XvbApiError(f"private API answered with status {response.status}")
            data = await self._read_json(response)
        try:
            return XvbPrivStats.from_json(data)
        except ValueError as e:
            raise XvbApiError(f"private stats are not deserializable: {e}") from e

    async def ping(self, host, port=XVB_NODE_RPC, timeout_ms=TIMEOUT_NODE_PING_MS):
        """
        Times one JSON-RPC get_info round trip to a node.

        Returns:
            int: elapsed milliseconds, or timeout_ms when the node errors, times
                 out, or reports that it is not a synchronized mainnet node.
        """
        url = f"http://{host}:{port}/json_rpc"
        timeout = ClientTimeout(total=timeout_ms / 1000)
        start = time.monotonic()
        try:
            async with self.session.post(url, json=GET_INFO_BODY, timeout=timeout) as response:
                raw = await response.read()
            elapsed = int((time.monotonic() - start) * 1000)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            self.logger.debug(f"Ping | {host} unreachable: {e}")
            return timeout_ms

        try:
            result = json.loads(raw)["result"]
            synced = result["mainnet"] is True and result["synchronized"] is True
        except (ValueError, KeyError, TypeError):
            self.logger.warning(f"Ping | {host} responded but with invalid get_info, remove this node!")
            return timeout_ms

        if not synced:
            self.logger.warning(f"Ping | {host} responded with valid get_info but is not in sync, remove this node!")
            return timeout_ms

        return min(elapsed, timeout_ms)

    async def _read_json(self, response):
        try:
            return await response.json(content_type=None)
        except (json.JSONDecodeError, ValueError) as e:
            raise XvbApiError(f"payload is not JSON: {e}") from e
