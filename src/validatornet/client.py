"""
validatornet/client.py

Network data client for a locally-run validator node.

Wires the bootstrap registry, active peer session, resilient fetcher and
result cache together and exposes the domain queries built on them.

Example:
    from validatornet import NetworkClient, load_config

    async with NetworkClient(load_config()) as client:
        params = await client.fetch_initial_parameters()
        stake = await client.fetch_stake_parameters()
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import random

import httpx

from .config import NETWORK_ACCOUNT, NetworkConfig
from .errors import MissingField
from .fetch.cache import ResultCache
from .fetch.fetcher import ResilientFetcher
from .local import LocalNodeClient
from .peers.selector import PeerSelector
from .peers.session import PeerSession
from .peers.store import ActivePeerStore
from .process import is_running

logger = logging.getLogger("validatornet.client")


# Cache keys
INITIAL_PARAMETERS_KEY = "initialParameters"
STAKE_PARAMETERS_KEY = "stakeParams"

# Account types understood by /account/{id}?type=N
NETWORK_ACCOUNT_TYPE = 5
NODE_ACCOUNT_TYPE = 9


@dataclass(frozen=True)
class InitialParameters:
    """Network reward parameters from the network account."""
    node_reward_amount: int
    node_reward_interval: int

    def to_dict(self) -> dict:
        return {
            "nodeRewardAmount": self.node_reward_amount,
            "nodeRewardInterval": self.node_reward_interval,
        }


@dataclass(frozen=True)
class StakeParameters:
    """Stake currently required to join, as a decimal string."""
    stake_required: str

    def to_dict(self) -> dict:
        return {"stakeRequired": self.stake_required}


def _dig(data: Any, *path: str) -> Any:
    """Follow ``path`` through nested dicts; None if any step is missing."""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def account_missing(data: Any) -> bool:
    """Retry while the response has no account."""
    return _dig(data, "account") is None


def payload_empty(data: Any) -> bool:
    """Retry while the response is empty."""
    return not data


def payload_missing(data: Any) -> bool:
    """Retry while there is no response body at all."""
    return data is None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_object(data: Any, field: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise MissingField(field, f"Expected an object for {field}, got {type(data).__name__}")
    return data


def _hex_to_int(value: Any, field: str) -> int:
    """Decode a hex string; JSON integers are already decoded."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str):
        raise MissingField(field, f"Field {field} is not a hex number: {value!r}")
    try:
        return int(value, 16)
    except ValueError as e:
        raise MissingField(field, f"Field {field} is not a hex number: {value!r}") from e


class NetworkClient:
    """
    Fetches network and account state on behalf of the local node.

    All queries share one active peer session and one result cache, so
    independent clients (e.g. in tests) never see each other's state.

    Attributes:
        config: Network configuration
        session: Current active peer
        selector: Chooses new active peers through the archivers
        fetcher: Retry loop against the active peer
        cache: TTL cache for network-wide results
        local: Client for the local node's status endpoint
    """

    def __init__(
        self,
        config: NetworkConfig,
        http: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResultCache] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize NetworkClient.

        Args:
            config: Network configuration
            http: Async HTTP client to use (one is created and owned if None)
            cache: Result cache (a fresh one if None)
            rng: Random source for archiver/peer choice
        """
        self.config = config
        self._own_http = http is None
        self.http = http or httpx.AsyncClient(timeout=config.request_timeout)

        self.session = PeerSession(ActivePeerStore(config.active_node_path))
        self.selector = PeerSelector(
            config.archivers,
            self.session,
            self.http,
            timeout=config.request_timeout,
            rng=rng,
        )
        self.fetcher = ResilientFetcher(
            self.session,
            self.selector,
            self.http,
            timeout=config.request_timeout,
            max_attempts=config.max_attempts,
        )
        self.cache = cache if cache is not None else ResultCache()
        self.local = LocalNodeClient(config.local_node_url, self.http, timeout=config.request_timeout)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._own_http:
            await self.http.aclose()

    async def __aenter__(self) -> "NetworkClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Cached network-wide queries
    # ------------------------------------------------------------------

    async def fetch_initial_parameters(self) -> InitialParameters:
        """
        Reward amount and interval from the network account.

        Cached under "initialParameters" for one cycle.

        Raises:
            MissingField: the account carries no current parameters
        """
        cached = self.cache.get(INITIAL_PARAMETERS_KEY)
        if cached is not None:
            return cached

        payload = await self.fetcher.fetch(
            f"/account/{NETWORK_ACCOUNT}?type={NETWORK_ACCOUNT_TYPE}",
            account_missing,
        )
        current = _dig(payload, "account", "data", "current")
        if not isinstance(current, dict) or not current:
            raise MissingField(
                "account.data.current",
                "Fetched initial parameters, but account data isn't found",
            )

        params = InitialParameters(
            node_reward_amount=_hex_to_int(current.get("nodeRewardAmountUsd"), "nodeRewardAmountUsd"),
            node_reward_interval=_hex_to_int(current.get("nodeRewardInterval"), "nodeRewardInterval"),
        )
        await self._cache_for_cycle(INITIAL_PARAMETERS_KEY, params)
        return params

    async def fetch_stake_parameters(self) -> StakeParameters:
        """
        Stake required to join the network.

        Cached under "stakeParams" for one cycle.
        """
        cached = self.cache.get(STAKE_PARAMETERS_KEY)
        if cached is not None:
            return StakeParameters(stake_required=cached)

        payload = await self.fetcher.fetch("/stake", payload_empty)
        raw = _dig(payload, "stakeRequired")
        if raw is None:
            raise MissingField("stakeRequired", "Couldn't fetch stake parameters")

        stake_required = str(_hex_to_int(raw, "stakeRequired"))
        await self._cache_for_cycle(STAKE_PARAMETERS_KEY, stake_required)
        return StakeParameters(stake_required=stake_required)

    async def fetch_cycle_duration(self) -> float:
        """Duration of the newest cycle, in seconds."""
        payload = await self.fetcher.fetch("/sync-newest-cycle", payload_empty)
        duration = _dig(payload, "newestCycle", "duration")
        if duration is None:
            raise MissingField("newestCycle.duration", "Couldn't fetch latest cycle")
        if not _is_number(duration):
            raise MissingField(
                "newestCycle.duration",
                f"Cycle duration is not a number: {duration!r}",
            )
        return duration

    async def _cache_for_cycle(self, key: str, value: Any) -> None:
        """Cache ``value`` for one cycle; costs a network round trip."""
        duration = await self.fetch_cycle_duration()
        self.cache.set(key, value, duration * 1000)

    # ------------------------------------------------------------------
    # Uncached queries
    # ------------------------------------------------------------------

    async def fetch_node_parameters(self, node_public_key: str) -> Any:
        """Per-node stake and reward data."""
        payload = await self.fetcher.fetch(
            f"/account/{node_public_key}?type={NODE_ACCOUNT_TYPE}",
            account_missing,
        )
        account = _dig(payload, "account")
        data = _dig(account, "data")
        return data if data is not None else account

    async def fetch_eoa_details(self, eoa_address: str) -> Any:
        """Arbitrary externally-owned account."""
        payload = await self.fetcher.fetch(f"/account/{eoa_address}", account_missing)
        return _dig(payload, "account")

    async def fetch_network_stats(self) -> Dict[str, Any]:
        payload = await self.fetcher.fetch("/network-stats", payload_missing)
        return _require_object(payload, "network-stats")

    async def fetch_validator_versions(self) -> Any:
        """Validator version info reported by the active peer."""
        payload = await self.fetcher.fetch("/nodeinfo", payload_missing)
        app_data = _dig(payload, "nodeInfo", "appData")
        if app_data is None:
            raise MissingField("nodeInfo.appData")
        return app_data

    async def fetch_node_info(self) -> Optional[dict]:
        """Local node's own info, including intermediate status."""
        return await self.local.fetch_node_info()

    async def get_network_params(self, description: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Network stats, merged with the local node's load and tx-stats while
        the node process is not stopped.

        Args:
            description: Process-manager description of the local node
        """
        result = dict(await self.fetch_network_stats())
        if not description:
            return result

        if is_running(description):
            result.update(_require_object(await self.local.fetch_node_load(), "load"))
            result.update(_require_object(await self.local.fetch_node_tx_stats(), "tx-stats"))
        return result

    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics."""
        return {
            "session": self.session.get_stats(),
            "selector": self.selector.get_stats(),
            "fetcher": self.fetcher.get_stats(),
            "cache": self.cache.get_stats(),
        }

    def __repr__(self) -> str:
        return f"NetworkClient({self.session!r}, cached={len(self.cache)})"
