"""
brokerlauncher - Claim a free Kafka broker id through ZooKeeper and supervise the broker.

This package provides:
- Broker id allocation from the ids missing in the ZooKeeper registry
- Per-id leader election with jittered retries and a bounded attempt budget
- Session-expiry recovery that re-contends the same broker id
- A supervision loop that restarts the broker and aborts on flapping
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("broker-launcher")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from brokerlauncher.allocation import compute_missing, create_rng, pick_candidate
from brokerlauncher.config import ClusterConfig, LaunchSettings, load_cluster_config
from brokerlauncher.coordination import (
    Contender,
    CoordinationClient,
    ElectionCampaign,
    ElectionState,
)
from brokerlauncher.exceptions import (
    BrokerLauncherError,
    ConfigurationError,
    ConnectTimeoutError,
    CoordinationError,
    ElectionExhaustedError,
    ExitCode,
    LauncherFatalError,
    NoIdentityAvailableError,
    TerminationRequested,
    WorkerFlappingError,
)
from brokerlauncher.launcher import BrokerLauncher
from brokerlauncher.supervisor import ProcessSupervisor, SupervisionRecord

__all__ = [
    "__version__",
    # Allocation
    "compute_missing",
    "create_rng",
    "pick_candidate",
    # Configuration
    "ClusterConfig",
    "LaunchSettings",
    "load_cluster_config",
    # Coordination
    "Contender",
    "CoordinationClient",
    "ElectionCampaign",
    "ElectionState",
    # Launcher
    "BrokerLauncher",
    # Supervision
    "ProcessSupervisor",
    "SupervisionRecord",
    # Exceptions
    "BrokerLauncherError",
    "ConfigurationError",
    "ConnectTimeoutError",
    "CoordinationError",
    "ElectionExhaustedError",
    "ExitCode",
    "LauncherFatalError",
    "NoIdentityAvailableError",
    "TerminationRequested",
    "WorkerFlappingError",
]
