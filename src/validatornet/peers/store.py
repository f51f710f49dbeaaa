"""
validatornet/peers/store.py

On-disk record of the last selected active peer.

The record is a single JSON object ``{id, ip, port, publicKey}`` that is
overwritten wholesale on every successful selection, so a restarted process
can resume against the same peer without asking an archiver first.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging
import os

logger = logging.getLogger("validatornet.peers.store")


@dataclass(frozen=True)
class ActivePeer:
    """Live network member against which data queries are issued."""
    id: str
    ip: str
    port: int
    public_key: str = ""

    @property
    def url(self) -> str:
        return f"http://{self.ip}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted/wire form."""
        return {
            "id": self.id,
            "ip": self.ip,
            "port": self.port,
            "publicKey": self.public_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivePeer":
        """
        Create from a node list entry or a persisted record.

        Extra fields are ignored. Raises KeyError/TypeError/ValueError when
        ip or port are missing or unusable.
        """
        ip = data["ip"]
        if not ip:
            raise ValueError("peer entry has an empty ip")
        return cls(
            id=str(data.get("id", "")),
            ip=str(ip),
            port=int(data["port"]),
            public_key=str(data.get("publicKey", "")),
        )


class ActivePeerStore:
    """
    JSON file holding the current active peer.

    Usage:
        store = ActivePeerStore(Path("/opt/validator/active-node.json"))
        peer = store.load()          # None if absent or unreadable
        store.save(new_peer)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[ActivePeer]:
        """Read the record; missing or malformed files yield None."""
        if not self.path.exists():
            logger.debug(f"No active peer record at {self.path}")
            return None

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            return ActivePeer.from_dict(data)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read active peer record {self.path}: {e}")
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring malformed active peer record {self.path}: {e}")
        return None

    def save(self, peer: ActivePeer) -> None:
        """Overwrite the record. Writes a temp file and renames it into place."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(peer.to_dict(), f)
        os.replace(tmp, self.path)
        logger.debug(f"Saved active peer {peer.id} to {self.path}")

    def clear(self) -> bool:
        """Remove the record. Returns True if a file was deleted."""
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
