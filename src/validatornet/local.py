"""
validatornet/local.py

Client for the locally-run node's own status endpoint.

These calls go straight to ``http://localhost:{externalPort}``; they do not
use the peer network and are not retried.
"""

from typing import Any, Optional
import logging

import httpx

from .config import DEFAULT_TIMEOUT
from .errors import NodeNotActive

logger = logging.getLogger("validatornet.local")


class LocalNodeClient:
    """
    Queries load, tx-stats and node info from the local node.

    Example:
        local = LocalNodeClient("http://localhost:9001", http)
        load = await local.fetch_node_load()
    """

    def __init__(self, base_url: str, http: httpx.AsyncClient, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.http = http
        self.timeout = timeout

    async def _get(self, path: str, what: str) -> Any:
        url = self.base_url + path
        try:
            response = await self.http.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Local node request {url} failed: {e!r}")
            raise NodeNotActive(
                f"Node not active in the network. Unable to fetch {what}"
            ) from e

        if data is None:
            raise NodeNotActive(f"Node not active in the network. Unable to fetch {what}")
        return data

    async def fetch_node_load(self) -> Any:
        return await self._get("/load", "node load")

    async def fetch_node_tx_stats(self) -> Any:
        return await self._get("/tx-stats", "node tx-stats")

    async def fetch_node_info(self) -> Optional[dict]:
        """Node info including intermediate (pre-active) status."""
        data = await self._get("/nodeinfo?reportIntermediateStatus=true", "node info")
        if not isinstance(data, dict):
            raise NodeNotActive("Node info response is not an object")
        return data.get("nodeInfo")
