"""
validatornet/errors.py

Exception hierarchy for network data fetching.

Transient conditions (SelectionError, TransportError) are recovered inside
the fetch loop; the rest surface to callers as hard failures.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .fetch.fetcher import FetchTrace


class NetworkDataError(Exception):
    """Base class for all validatornet errors."""
    pass


class ConfigError(NetworkDataError):
    """Raised when a network configuration document is invalid."""
    pass


class SelectionError(NetworkDataError):
    """No archiver reachable, or the returned node list was empty/malformed."""
    pass


class TransportError(NetworkDataError):
    """A request to the active peer failed at the transport or HTTP level."""

    def __init__(self, message: str, url: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class RetriesExhausted(NetworkDataError):
    """The attempt budget ran out without an acceptable payload."""

    def __init__(self, query: str, attempts: int, trace: Optional["FetchTrace"] = None):
        super().__init__(
            f"Unable to fetch data from network (out of retries): "
            f"{query} after {attempts} attempts"
        )
        self.query = query
        self.attempts = attempts
        self.trace = trace


class NoPeerAvailable(NetworkDataError):
    """No active peer could be established even once."""
    pass


class MissingField(NetworkDataError):
    """An otherwise successful response lacks an expected field."""

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"Response is missing expected field: {field}")
        self.field = field


class NodeNotActive(NetworkDataError):
    """The locally-run node did not answer its status endpoint."""
    pass
