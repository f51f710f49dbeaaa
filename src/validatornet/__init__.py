"""
validatornet - Network data client for validator nodes

Keeps a locally-running validator connected to the peer network:
- Bootstrap registry of archivers for discovering live membership
- Active peer chosen at random and persisted across restarts
- Resilient fetcher that refreshes the active peer on every attempt
- TTL cache sized from the network's cycle duration

Usage:
    from validatornet import NetworkClient, load_config

    config = load_config("network-config.json")

    async with NetworkClient(config) as client:
        params = await client.fetch_initial_parameters()
        stake = await client.fetch_stake_parameters()
        stats = await client.get_network_params(pm2_description)

Lower-level usage:
    from validatornet.fetch import ResilientFetcher

    payload = await client.fetcher.fetch("/network-stats", lambda data: data is None)
"""

from .client import (
    NetworkClient,
    InitialParameters,
    StakeParameters,
    INITIAL_PARAMETERS_KEY,
    STAKE_PARAMETERS_KEY,
)
from .config import (
    NetworkConfig,
    BootstrapPeer,
    IpConfig,
    ReportingConfig,
    DEFAULT_ARCHIVERS,
    NETWORK_ACCOUNT,
    load_config,
)
from .errors import (
    NetworkDataError,
    ConfigError,
    SelectionError,
    TransportError,
    RetriesExhausted,
    NoPeerAvailable,
    MissingField,
    NodeNotActive,
)
from .fetch import ResilientFetcher, ResultCache, FetchState, FetchTrace, Transition
from .local import LocalNodeClient
from .peers import ActivePeer, ActivePeerStore, PeerSession, PeerSelector
from .process import status_from_description

__version__ = "1.0.0"
__all__ = [
    # Client
    "NetworkClient",
    "InitialParameters",
    "StakeParameters",
    "INITIAL_PARAMETERS_KEY",
    "STAKE_PARAMETERS_KEY",
    # Config
    "NetworkConfig",
    "BootstrapPeer",
    "IpConfig",
    "ReportingConfig",
    "DEFAULT_ARCHIVERS",
    "NETWORK_ACCOUNT",
    "load_config",
    # Errors
    "NetworkDataError",
    "ConfigError",
    "SelectionError",
    "TransportError",
    "RetriesExhausted",
    "NoPeerAvailable",
    "MissingField",
    "NodeNotActive",
    # Fetching
    "ResilientFetcher",
    "ResultCache",
    "FetchState",
    "FetchTrace",
    "Transition",
    # Peers
    "ActivePeer",
    "ActivePeerStore",
    "PeerSession",
    "PeerSelector",
    # Local node
    "LocalNodeClient",
    "status_from_description",
]
