"""
validatornet.peers - Active peer discovery and persistence

    ActivePeerStore  - JSON record of the last selected peer
    PeerSession      - current active peer, shared by all fetches
    PeerSelector     - random archiver -> /nodelist -> random member
"""

from .store import ActivePeer, ActivePeerStore
from .session import PeerSession
from .selector import PeerSelector

__all__ = [
    "ActivePeer",
    "ActivePeerStore",
    "PeerSession",
    "PeerSelector",
]
