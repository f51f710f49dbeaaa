"""
validatornet/peers/session.py

Holder for the current active peer.

One PeerSession is shared by every fetch issued through a NetworkClient.
Readers see whichever peer is current; replacement (assign + persist) runs
under a trio lock so two selections finishing together cannot interleave
their writes.
"""

from typing import Any, Dict, Optional
import logging
import trio

from .store import ActivePeer, ActivePeerStore

logger = logging.getLogger("validatornet.peers.session")


class PeerSession:
    """
    Current active peer plus its persistent store.

    Attributes:
        store: Persistent record of the last selected peer
        active: Peer in use right now, or None before the first load/selection
    """

    def __init__(self, store: ActivePeerStore):
        self.store = store
        self._active: Optional[ActivePeer] = None
        self._lock = trio.Lock()

        # Stats
        self._replacements = 0
        self._persist_failures = 0
        self._loaded_from_disk = False

    @property
    def active(self) -> Optional[ActivePeer]:
        return self._active

    def load(self) -> Optional[ActivePeer]:
        """
        Populate the active peer from disk if nothing is held in memory.

        Returns:
            The active peer, or None if neither memory nor disk has one
        """
        if self._active is not None:
            return self._active

        peer = self.store.load()
        if peer is not None:
            self._active = peer
            self._loaded_from_disk = True
            logger.info(f"Resumed active peer {peer.id} at {peer.ip}:{peer.port}")
        return self._active

    async def replace(self, peer: ActivePeer) -> None:
        """Make ``peer`` current and persist it."""
        async with self._lock:
            previous = self._active
            self._active = peer
            self._replacements += 1
            try:
                self.store.save(peer)
            except OSError as e:
                self._persist_failures += 1
                logger.error(f"Failed to persist active peer {peer.id}: {e}")

        if previous is None or previous.id != peer.id:
            logger.info(f"Active peer is now {peer.id} at {peer.ip}:{peer.port}")
        else:
            logger.debug(f"Active peer {peer.id} re-selected")

    def get_stats(self) -> Dict[str, Any]:
        """Get session statistics."""
        return {
            "active_peer": self._active.to_dict() if self._active else None,
            "replacements": self._replacements,
            "persist_failures": self._persist_failures,
            "loaded_from_disk": self._loaded_from_disk,
        }

    def __repr__(self) -> str:
        peer = f"{self._active.ip}:{self._active.port}" if self._active else "none"
        return f"PeerSession(active={peer}, replacements={self._replacements})"
