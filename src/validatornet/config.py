"""
validatornet/config.py

Configuration constants and data classes for validatornet.

The configuration document keeps the shape the validator tooling has always
used:

    {
        "server": {
            "baseDir": ".",
            "p2p": {"existingArchivers": [{"ip": ..., "port": ..., "publicKey": ...}]},
            "ip": {"externalIp": ..., "externalPort": ..., "internalIp": ..., "internalPort": ...},
            "reporting": {"report": ..., "recipient": ..., "interval": ..., "console": ...}
        }
    }

Usage:
    from validatornet.config import load_config

    config = load_config("network-config.json")
    config.validate()
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging
import os

from .errors import ConfigError

logger = logging.getLogger("validatornet.config")


# Per-request timeout for every peer/archiver query (seconds)
DEFAULT_TIMEOUT = 2.0

# Attempts per fetch before giving up
DEFAULT_MAX_ATTEMPTS = 3

# Active peer record, relative to base_dir
ACTIVE_NODE_FILE = "active-node.json"

# Account holding network-wide parameters
NETWORK_ACCOUNT = "0" * 64

# Valid range for any configured port
MIN_PORT = 1024
MAX_PORT = 65535

# Environment overrides
ENV_CONFIG_PATH = "VALIDATORNET_CONFIG"
ENV_BASE_DIR = "VALIDATORNET_BASE_DIR"


@dataclass(frozen=True)
class BootstrapPeer:
    """Well-known archiver used only to discover current network membership."""
    ip: str
    port: int
    public_key: str

    @property
    def url(self) -> str:
        return f"http://{self.ip}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {"ip": self.ip, "port": self.port, "publicKey": self.public_key}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BootstrapPeer":
        try:
            return cls(
                ip=str(data["ip"]),
                port=int(data["port"]),
                public_key=str(data["publicKey"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid archiver entry {data!r}: {e}") from e


DEFAULT_ARCHIVERS: List[BootstrapPeer] = [
    BootstrapPeer(
        ip="3.127.57.166",
        port=4000,
        public_key="758b1c119412298802cd28dbfa394cdfeecc4074492d60844cc192d632d84de3",
    ),
    BootstrapPeer(
        ip="139.144.189.238",
        port=4000,
        public_key="840e7b59a95d3c5f5044f4bc62ab9fa94bc107d391001141410983502e3cde63",
    ),
    BootstrapPeer(
        ip="194.195.220.150",
        port=4000,
        public_key="616f720f4b6145373acd95b068cb674ff3a24ba738cfff5da568ec36873859f6",
    ),
    BootstrapPeer(
        ip="45.79.113.106",
        port=4000,
        public_key="7af699dd711074eb96a8d1103e32b589e511613ebb0c6a789a9e8791b2b05f34",
    ),
]


@dataclass
class IpConfig:
    """Addresses the local node listens on."""
    external_ip: str = "127.0.0.1"
    external_port: int = 9001
    internal_ip: str = "127.0.0.1"
    internal_port: int = 10001


@dataclass
class ReportingConfig:
    """Where and how often the local node reports its status."""
    report: bool = True
    recipient: str = "http://localhost:3000/api"
    interval: int = 2  # seconds
    console: bool = False


@dataclass
class NetworkConfig:
    """
    Complete configuration for talking to the validator network.

    Usage:
        config = NetworkConfig(base_dir="/opt/validator")
        config = NetworkConfig.from_dict(json.load(f))
    """

    # Installation root; the active peer record lives here
    base_dir: str = "."

    # Bootstrap registry
    archivers: List[BootstrapPeer] = field(default_factory=lambda: list(DEFAULT_ARCHIVERS))

    # Local node addresses
    ip: IpConfig = field(default_factory=IpConfig)

    # Status reporting
    reporting: ReportingConfig = field(default_factory=ReportingConfig)

    # Fetch behaviour
    request_timeout: float = DEFAULT_TIMEOUT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @property
    def active_node_path(self) -> Path:
        """Location of the persisted active peer record."""
        return Path(self.base_dir) / ACTIVE_NODE_FILE

    @property
    def local_node_url(self) -> str:
        """Base URL of the locally-run node's status endpoint."""
        return f"http://localhost:{self.ip.external_port}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkConfig":
        """Build a config from the ``{"server": {...}}`` document shape."""
        if not isinstance(data, dict) or not isinstance(data.get("server"), dict):
            raise ConfigError("Configuration must contain a 'server' object")
        server = data["server"]

        p2p = server.get("p2p") or {}
        raw_archivers = p2p.get("existingArchivers")
        if raw_archivers is None:
            archivers = list(DEFAULT_ARCHIVERS)
        elif isinstance(raw_archivers, list):
            archivers = [BootstrapPeer.from_dict(a) for a in raw_archivers]
        else:
            raise ConfigError("server.p2p.existingArchivers must be a list")

        ip = server.get("ip") or {}
        reporting = server.get("reporting") or {}
        try:
            return cls(
                base_dir=str(server.get("baseDir", ".")),
                archivers=archivers,
                ip=IpConfig(
                    external_ip=ip.get("externalIp", IpConfig.external_ip),
                    external_port=int(ip.get("externalPort", IpConfig.external_port)),
                    internal_ip=ip.get("internalIp", IpConfig.internal_ip),
                    internal_port=int(ip.get("internalPort", IpConfig.internal_port)),
                ),
                reporting=ReportingConfig(
                    report=bool(reporting.get("report", ReportingConfig.report)),
                    recipient=reporting.get("recipient", ReportingConfig.recipient),
                    interval=int(reporting.get("interval", ReportingConfig.interval)),
                    console=bool(reporting.get("console", ReportingConfig.console)),
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Export in the ``{"server": {...}}`` document shape."""
        return {
            "server": {
                "baseDir": self.base_dir,
                "p2p": {"existingArchivers": [a.to_dict() for a in self.archivers]},
                "ip": {
                    "externalIp": self.ip.external_ip,
                    "externalPort": self.ip.external_port,
                    "internalIp": self.ip.internal_ip,
                    "internalPort": self.ip.internal_port,
                },
                "reporting": {
                    "report": self.reporting.report,
                    "recipient": self.reporting.recipient,
                    "interval": self.reporting.interval,
                    "console": self.reporting.console,
                },
            }
        }

    def validate(self) -> None:
        """
        Check ranges and required values.

        Raises:
            ConfigError: on the first problem found
        """
        if not self.archivers:
            raise ConfigError("At least one archiver is required")
        for archiver in self.archivers:
            _check_port(f"archiver {archiver.ip}", archiver.port)
            if not archiver.ip or not archiver.public_key:
                raise ConfigError(f"Archiver {archiver!r} needs ip and publicKey")

        _check_port("externalPort", self.ip.external_port)
        _check_port("internalPort", self.ip.internal_port)

        if self.reporting.interval < 1:
            raise ConfigError("reporting.interval must be at least 1")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")


def _check_port(name: str, port: int) -> None:
    if not MIN_PORT <= port <= MAX_PORT:
        raise ConfigError(f"{name} must be between {MIN_PORT} and {MAX_PORT}, got {port}")


def load_config(path: Optional[Union[str, Path]] = None) -> NetworkConfig:
    """
    Load configuration from a JSON file.

    Priority for the file location:
    1. ``path`` argument
    2. Environment variable: VALIDATORNET_CONFIG
    3. Built-in defaults (no file)

    VALIDATORNET_BASE_DIR overrides ``baseDir`` in every case. A relative
    ``baseDir`` is resolved against the directory holding the configuration
    file (the installation root); without a file, against the working
    directory at load time.

    Returns:
        NetworkConfig: validated configuration
    """
    path = path or os.environ.get(ENV_CONFIG_PATH)
    if path:
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to read configuration {path}: {e}") from e
        config = NetworkConfig.from_dict(data)
        root = Path(path).resolve().parent
        logger.info(f"Loaded network configuration from {path}")
    else:
        config = NetworkConfig()
        root = Path.cwd()

    base_dir = os.environ.get(ENV_BASE_DIR)
    if base_dir:
        logger.info(f"Base directory from env: {base_dir}")
        config.base_dir = base_dir
    elif not path:
        logger.warning(f"No configuration file; active peer record will live in {root}")

    config.base_dir = str(root / config.base_dir)
    config.validate()
    return config
