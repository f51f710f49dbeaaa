"""
validatornet/fetch/fetcher.py

Bounded retry loop for queries against the active peer.

Each attempt re-selects the active peer before requesting, so a peer that
went stale or dropped out since the last call is replaced even when nothing
has failed yet. The loop is an explicit state machine:

    SELECTING_PEER --PEER_SELECTED--> REQUESTING
    SELECTING_PEER --SELECTION_FAILED--> SELECTING_PEER | EXHAUSTED
    REQUESTING --RESPONSE_RECEIVED--> EVALUATING_RESPONSE
    REQUESTING --TRANSPORT_FAILED--> SELECTING_PEER | EXHAUSTED
    EVALUATING_RESPONSE --PAYLOAD_ACCEPTED--> SUCCEEDED
    EVALUATING_RESPONSE --PAYLOAD_REJECTED--> SELECTING_PEER | EXHAUSTED

A failure transition leads to EXHAUSTED (via BUDGET_SPENT) once the attempt
budget is used up.

Usage:
    fetcher = ResilientFetcher(session, selector, http)
    payload = await fetcher.fetch("/network-stats", lambda data: data is None)
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import time

import httpx

from ..config import DEFAULT_MAX_ATTEMPTS, DEFAULT_TIMEOUT
from ..errors import NoPeerAvailable, RetriesExhausted, SelectionError, TransportError
from ..peers.selector import PeerSelector
from ..peers.session import PeerSession

logger = logging.getLogger("validatornet.fetch.fetcher")

# Returns True while the payload is not yet acceptable
RetryPredicate = Callable[[Any], bool]

FAILED_STATUS = 500


class FetchState(Enum):
    """States of a single fetch."""
    SELECTING_PEER = auto()
    REQUESTING = auto()
    EVALUATING_RESPONSE = auto()
    SUCCEEDED = auto()
    EXHAUSTED = auto()


class Transition(Enum):
    """Named edges between fetch states."""
    PEER_SELECTED = auto()
    SELECTION_FAILED = auto()
    RESPONSE_RECEIVED = auto()
    TRANSPORT_FAILED = auto()
    PAYLOAD_ACCEPTED = auto()
    PAYLOAD_REJECTED = auto()
    BUDGET_SPENT = auto()


_TRANSITIONS: Dict[Tuple[FetchState, Transition], FetchState] = {
    (FetchState.SELECTING_PEER, Transition.PEER_SELECTED): FetchState.REQUESTING,
    (FetchState.SELECTING_PEER, Transition.SELECTION_FAILED): FetchState.SELECTING_PEER,
    (FetchState.REQUESTING, Transition.RESPONSE_RECEIVED): FetchState.EVALUATING_RESPONSE,
    (FetchState.REQUESTING, Transition.TRANSPORT_FAILED): FetchState.SELECTING_PEER,
    (FetchState.EVALUATING_RESPONSE, Transition.PAYLOAD_ACCEPTED): FetchState.SUCCEEDED,
    (FetchState.EVALUATING_RESPONSE, Transition.PAYLOAD_REJECTED): FetchState.SELECTING_PEER,
}

FAILURE_TRANSITIONS = (
    Transition.SELECTION_FAILED,
    Transition.TRANSPORT_FAILED,
    Transition.PAYLOAD_REJECTED,
)


@dataclass
class FetchOutcome:
    """Result of one request against the active peer."""
    payload: Any = None
    status: int = FAILED_STATUS

    @property
    def failed(self) -> bool:
        return self.status == FAILED_STATUS


@dataclass
class FetchTrace:
    """What happened during one fetch."""
    query: str
    attempts: int = 0
    transitions: List[Tuple[FetchState, Transition]] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)
    statuses: List[int] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)

    def count(self, transition: Transition) -> int:
        """Number of times ``transition`` was taken."""
        return sum(1 for _, t in self.transitions if t is transition)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "attempts": self.attempts,
            "transitions": [(s.name, t.name) for s, t in self.transitions],
            "urls": list(self.urls),
            "statuses": list(self.statuses),
            "duration_ms": (time.time() - self.started_at) * 1000,
        }


class ResilientFetcher:
    """
    Issues GET queries against the active peer with peer refresh and retry.

    Attributes:
        session: Holds the current active peer
        selector: Re-selects the active peer on every attempt
        max_attempts: Attempt budget per fetch
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        session: PeerSession,
        selector: PeerSelector,
        http: httpx.AsyncClient,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.session = session
        self.selector = selector
        self.http = http
        self.timeout = timeout
        self.max_attempts = max_attempts

        # Stats
        self._fetches = 0
        self._succeeded = 0
        self._exhausted = 0
        self._attempts = 0
        self._transition_counts: Dict[Transition, int] = {t: 0 for t in Transition}

    async def fetch(self, query: str, retry_if: RetryPredicate) -> Any:
        """
        Fetch ``query`` from the network.

        Args:
            query: Path (and query string) to request, e.g. "/stake"
            retry_if: Returns True when the payload should be retried

        Returns:
            The accepted payload

        Raises:
            NoPeerAvailable: no active peer could be established at all
            RetriesExhausted: the attempt budget ran out
        """
        payload, _ = await self.fetch_with_trace(query, retry_if)
        return payload

    async def fetch_with_trace(self, query: str, retry_if: RetryPredicate) -> Tuple[Any, FetchTrace]:
        """Like fetch(), also returning the FetchTrace of the run."""
        self._fetches += 1
        await self._ensure_active_peer()

        trace = FetchTrace(query=query)
        state = FetchState.SELECTING_PEER
        outcome = FetchOutcome()

        while state not in (FetchState.SUCCEEDED, FetchState.EXHAUSTED):
            if state is FetchState.SELECTING_PEER:
                trace.attempts += 1
                self._attempts += 1
                try:
                    await self.selector.select_new_active_peer()
                except SelectionError as e:
                    logger.warning(
                        f"Peer selection failed on attempt {trace.attempts}/{self.max_attempts}: {e}"
                    )
                    state = self._advance(trace, state, Transition.SELECTION_FAILED)
                    continue
                state = self._advance(trace, state, Transition.PEER_SELECTED)

            elif state is FetchState.REQUESTING:
                try:
                    outcome = await self._request(query, trace)
                except TransportError as e:
                    logger.warning(
                        f"Request failed on attempt {trace.attempts}/{self.max_attempts}: {e}"
                    )
                    outcome = FetchOutcome()
                trace.statuses.append(outcome.status)
                if outcome.failed:
                    state = self._advance(trace, state, Transition.TRANSPORT_FAILED)
                else:
                    state = self._advance(trace, state, Transition.RESPONSE_RECEIVED)

            elif state is FetchState.EVALUATING_RESPONSE:
                if retry_if(outcome.payload):
                    logger.debug(f"Payload for {query} not acceptable yet (attempt {trace.attempts})")
                    state = self._advance(trace, state, Transition.PAYLOAD_REJECTED)
                else:
                    state = self._advance(trace, state, Transition.PAYLOAD_ACCEPTED)

        if state is FetchState.EXHAUSTED:
            self._exhausted += 1
            logger.error(f"Out of retries fetching {query} after {trace.attempts} attempts")
            raise RetriesExhausted(query, trace.attempts, trace)

        self._succeeded += 1
        return outcome.payload, trace

    def _advance(self, trace: FetchTrace, state: FetchState, transition: Transition) -> FetchState:
        """Record ``transition`` and return the next state."""
        trace.transitions.append((state, transition))
        self._transition_counts[transition] += 1

        next_state = _TRANSITIONS[(state, transition)]
        if transition in FAILURE_TRANSITIONS and trace.attempts >= self.max_attempts:
            trace.transitions.append((next_state, Transition.BUDGET_SPENT))
            self._transition_counts[Transition.BUDGET_SPENT] += 1
            return FetchState.EXHAUSTED
        return next_state

    async def _ensure_active_peer(self) -> None:
        if self.session.load() is not None:
            return
        try:
            await self.selector.select_new_active_peer()
        except SelectionError as e:
            raise NoPeerAvailable(f"Unable to fetch active node: {e}") from e

    async def _request(self, query: str, trace: FetchTrace) -> FetchOutcome:
        """
        GET ``query`` from whichever peer is current right now.

        Raises:
            TransportError: timeout, connection failure, non-2xx or bad JSON
        """
        peer = self.session.active
        if peer is None:
            raise TransportError("No active peer to query")

        url = peer.url + query
        trace.urls.append(url)
        logger.debug(f"GET {url}")

        try:
            response = await self.http.get(url, timeout=self.timeout)
            response.raise_for_status()
            return FetchOutcome(payload=response.json(), status=response.status_code)
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Error occurred with status {e.response.status_code} from {url}",
                url=url,
                status=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"No response received from {url} (timeout)", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"No response received from {url}: {e!r}", url=url) from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}", url=url) from e

    def get_stats(self) -> Dict[str, Any]:
        """Get fetcher statistics."""
        return {
            "fetches": self._fetches,
            "succeeded": self._succeeded,
            "exhausted": self._exhausted,
            "attempts": self._attempts,
            "max_attempts": self.max_attempts,
            "transitions": {t.name.lower(): n for t, n in self._transition_counts.items()},
        }
