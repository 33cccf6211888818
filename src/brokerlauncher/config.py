"""
Configuration for the broker launcher.

This module provides:
- ClusterConfig: The cluster description loaded from the YAML config file
- LaunchSettings: Command-line values plus the coordination and supervision tunables
- load_cluster_config: Read and validate the YAML config file
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from brokerlauncher.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = "/brokers/ids"
DEFAULT_ELECTION_ROOT = "/_election"


class ClusterConfig(BaseModel):
    """
    Cluster description shared by every broker of the cluster.

    Immutable after load. The cluster name doubles as the ZooKeeper
    namespace root so that several clusters can share one ensemble.

    Attributes:
        zk_hosts: ZooKeeper endpoints, as host:port strings
        cluster: Cluster name

    Example:
        >>> config = ClusterConfig(zk_hosts=["zk1:2181", "zk2:2181"], cluster="events")
        >>> config.namespace
        '/kafka-events'
    """

    model_config = ConfigDict(frozen=True)

    zk_hosts: tuple[str, ...] = Field(
        ...,
        min_length=1,
        description="ZooKeeper endpoints in host:port form",
    )
    cluster: str = Field(
        ...,
        min_length=1,
        description="Cluster name, used as the namespace root",
    )

    @field_validator("zk_hosts")
    @classmethod
    def _strip_hosts(cls, hosts: tuple[str, ...]) -> tuple[str, ...]:
        stripped = tuple(host.strip() for host in hosts)
        if any(not host for host in stripped):
            raise ValueError("zk_hosts entries must not be blank")
        return stripped

    @property
    def namespace(self) -> str:
        """ZooKeeper chroot for this cluster."""
        return f"/kafka-{self.cluster}"

    def connection_string(self, rng: random.Random | None = None) -> str:
        """
        Build the kazoo hosts string.

        Hosts are shuffled so that brokers spread their sessions across the
        ensemble instead of all connecting to the first server.

        Args:
            rng: Random generator used for shuffling (defaults to module random)

        Returns:
            Comma separated host list
        """
        hosts = list(self.zk_hosts)
        (rng or random).shuffle(hosts)
        return ",".join(hosts)


def load_cluster_config(path: str | Path) -> ClusterConfig:
    """
    Load the cluster configuration from a YAML file.

    The file must contain a mapping with ``zk_hosts`` (list of endpoints)
    and ``cluster`` (name) keys. Unknown keys are ignored.

    Args:
        path: Path to the YAML file

    Returns:
        Validated ClusterConfig

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_path = Path(path)
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read cluster config {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in cluster config {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Cluster config {config_path} must be a mapping with 'zk_hosts' and 'cluster' keys"
        )

    try:
        config = ClusterConfig(zk_hosts=data.get("zk_hosts"), cluster=data.get("cluster"))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid cluster config {config_path}: {e}") from e

    logger.debug(
        "Loaded cluster config",
        extra={"cluster": config.cluster, "zk_hosts": list(config.zk_hosts)},
    )
    return config


@dataclass(frozen=True)
class LaunchSettings:
    """
    Settings for one launcher run.

    The first four fields come from the command line; the rest are tunables
    with production defaults that tests shrink to keep time deterministic.

    Attributes:
        heap_size: Broker JVM heap size in megabytes
        broker_count: Total number of broker slots in the cluster
        ports: Port list; index 1 is the JMX management port
        config_path: Path to the cluster YAML file
        session_timeout: Seconds to wait for a ZooKeeper session
        reconnect_cooldown: Seconds to wait between a lost session and reconnecting
        attempts_per_broker: Vote budget per broker slot
        flap_threshold: Minimum seconds between two consecutive worker starts
        poll_interval: Seconds between session-event checks while the worker runs
        registry_path: ZooKeeper path where brokers register their ids
        election_root: ZooKeeper path under which per-id elections live

    Example:
        >>> settings = LaunchSettings(
        ...     heap_size=4096,
        ...     broker_count=5,
        ...     ports=("9092", "9999"),
        ...     config_path="cluster.yml",
        ... )
        >>> settings.max_attempts
        15
    """

    heap_size: int
    broker_count: int
    ports: tuple[str, ...]
    config_path: str = "cluster.yml"

    session_timeout: float = 5.0
    reconnect_cooldown: float = 10.0
    attempts_per_broker: int = 3
    flap_threshold: float = 120.0
    poll_interval: float = 1.0

    registry_path: str = DEFAULT_REGISTRY_PATH
    election_root: str = DEFAULT_ELECTION_ROOT

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.heap_size <= 0:
            raise ValueError(f"heap_size must be positive, got {self.heap_size}.")

        if self.broker_count <= 0:
            raise ValueError(
                f"broker_count must be positive, got {self.broker_count}. "
                "Use the total number of brokers in the cluster."
            )

        if len(self.ports) < 2:
            raise ValueError(
                f"at least 2 ports are required (index 1 is the JMX port), got {list(self.ports)}."
            )

        if self.session_timeout <= 0:
            raise ValueError(f"session_timeout must be positive, got {self.session_timeout}.")

        if self.reconnect_cooldown < 0:
            raise ValueError(f"reconnect_cooldown must be >= 0, got {self.reconnect_cooldown}.")

        if self.attempts_per_broker < 1:
            raise ValueError(
                f"attempts_per_broker must be >= 1, got {self.attempts_per_broker}."
            )

        if self.flap_threshold < 0:
            raise ValueError(f"flap_threshold must be >= 0, got {self.flap_threshold}.")

        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}.")

    @property
    def max_attempts(self) -> int:
        """Vote budget for the whole process lifetime."""
        return self.attempts_per_broker * self.broker_count

    @property
    def jmx_port(self) -> str:
        """Management port handed to the worker."""
        return self.ports[1]

    @classmethod
    def from_arguments(
        cls,
        heap_size: str | int,
        broker_count: str | int,
        ports: str,
        config_path: str,
    ) -> LaunchSettings:
        """
        Build settings from raw command-line values.

        Args:
            heap_size: Heap size in megabytes
            broker_count: Number of brokers in the cluster
            ports: Comma separated port list
            config_path: Path to the cluster YAML file

        Raises:
            ConfigurationError: If a value cannot be parsed or is out of range
        """
        try:
            return cls(
                heap_size=int(heap_size),
                broker_count=int(broker_count),
                ports=tuple(port.strip() for port in ports.split(",") if port.strip()),
                config_path=config_path,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
