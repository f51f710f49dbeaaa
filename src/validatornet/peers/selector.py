"""
validatornet/peers/selector.py

Picks a new active peer via the bootstrap registry.

A random archiver is asked for the current node list and a random member of
that list becomes the session's active peer. There is no retry here; the
fetch loop calls select again on its next attempt.
"""

from typing import List, Optional, Sequence
import logging
import random

import httpx

from ..config import BootstrapPeer, DEFAULT_TIMEOUT
from ..errors import SelectionError
from .session import PeerSession
from .store import ActivePeer

logger = logging.getLogger("validatornet.peers.selector")


class PeerSelector:
    """
    Chooses active peers from archiver node lists.

    Example:
        selector = PeerSelector(config.archivers, session, http)
        peer = await selector.select_new_active_peer()
    """

    NODELIST_PATH = "/nodelist"

    def __init__(
        self,
        archivers: Sequence[BootstrapPeer],
        session: PeerSession,
        http: httpx.AsyncClient,
        timeout: float = DEFAULT_TIMEOUT,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            archivers: Bootstrap registry; read only
            session: Session whose active peer gets replaced
            http: Shared async HTTP client
            timeout: Per-request timeout in seconds
            rng: Random source (fresh random.Random() if None)
        """
        self.archivers: List[BootstrapPeer] = list(archivers)
        self.session = session
        self.http = http
        self.timeout = timeout
        self._rng = rng or random.Random()

        self._selections = 0
        self._failures = 0

    async def select_new_active_peer(self) -> ActivePeer:
        """
        Query a random archiver and adopt a random member of its node list.

        Returns:
            The new active peer (already persisted and made current)

        Raises:
            SelectionError: archiver unreachable or node list empty/malformed
        """
        try:
            peer = await self._select()
        except SelectionError:
            self._failures += 1
            raise

        await self.session.replace(peer)
        self._selections += 1
        return peer

    async def _select(self) -> ActivePeer:
        if not self.archivers:
            raise SelectionError("No archivers configured")

        archiver = self._rng.choice(self.archivers)
        url = archiver.url + self.NODELIST_PATH
        logger.debug(f"Requesting node list from archiver {url}")

        try:
            response = await self.http.get(url, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Archiver {url} returned {e.response.status_code}")
            raise SelectionError(f"Archiver {url} returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Archiver {url} unreachable: {e!r}")
            raise SelectionError(f"Archiver {url} unreachable") from e
        except ValueError as e:
            logger.warning(f"Archiver {url} sent invalid JSON: {e}")
            raise SelectionError(f"Archiver {url} sent invalid JSON") from e

        node_list = body.get("nodeList") if isinstance(body, dict) else None
        if not isinstance(node_list, list) or not node_list:
            raise SelectionError("Unable to fetch list of nodes in the network")

        entry = self._rng.choice(node_list)
        try:
            return ActivePeer.from_dict(entry)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SelectionError(f"Malformed node list entry {entry!r}: {e}") from e

    def get_stats(self) -> dict:
        """Get selector statistics."""
        return {
            "archivers": len(self.archivers),
            "selections": self._selections,
            "failures": self._failures,
        }
