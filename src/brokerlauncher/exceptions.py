"""Library exceptions and process exit statuses for brokerlauncher."""

import signal
from enum import IntEnum


class ExitCode(IntEnum):
    """
    Process exit statuses.

    Each fatal condition has its own status so that operators and automation
    can tell "no capacity", "coordination contention" and "unhealthy worker"
    apart. A supervised run never exits with 0. A run stopped by a signal
    exits with 128 + the signal number, like a shell would report it.
    """

    UNEXPECTED_ERROR = 1
    NO_IDENTITY_AVAILABLE = 3
    ELECTION_EXHAUSTED = 4
    WORKER_FLAPPING = 5
    CONFIGURATION_ERROR = 6
    COORDINATION_ERROR = 7


class BrokerLauncherError(Exception):
    """Base exception for brokerlauncher."""

    exit_code: int = ExitCode.UNEXPECTED_ERROR


class ConfigurationError(BrokerLauncherError):
    """Raised when the cluster configuration file or arguments are invalid."""

    exit_code = ExitCode.CONFIGURATION_ERROR


class CoordinationError(BrokerLauncherError):
    """Raised when there's an error talking to ZooKeeper."""

    exit_code = ExitCode.COORDINATION_ERROR


class ConnectTimeoutError(CoordinationError):
    """Raised when a ZooKeeper session cannot be established in time."""

    def __init__(self, hosts: str, timeout: float) -> None:
        self.hosts = hosts
        self.timeout = timeout
        super().__init__(f"Could not connect to ZooKeeper at {hosts} within {timeout}s")


class LauncherFatalError(BrokerLauncherError):
    """
    Base class for the conditions that terminate the launcher on purpose.

    These are not bugs: they are the distinguished outcomes of the allocation,
    election and supervision policies, each mapped to its own exit status.
    """

    pass


class NoIdentityAvailableError(LauncherFatalError):
    """Raised when every broker id in the cluster is already registered."""

    exit_code = ExitCode.NO_IDENTITY_AVAILABLE

    def __init__(self, broker_count: int) -> None:
        self.broker_count = broker_count
        super().__init__(f"No missing brokers found: all {broker_count} broker ids are registered")


class ElectionExhaustedError(LauncherFatalError):
    """
    Raised when the election for a broker id could not be won.

    Attributes:
        broker_id: The candidate broker id that was contended
        attempts: Number of votes cast before giving up
        max_attempts: The attempt budget that was exceeded
    """

    exit_code = ExitCode.ELECTION_EXHAUSTED

    def __init__(self, broker_id: int, attempts: int, max_attempts: int) -> None:
        self.broker_id = broker_id
        self.attempts = attempts
        self.max_attempts = max_attempts
        super().__init__(
            f"Couldn't become broker {broker_id} after {attempts} attempts "
            f"(limit {max_attempts})"
        )


class WorkerFlappingError(LauncherFatalError):
    """
    Raised when the worker is restarted too quickly after its previous start.

    Attributes:
        elapsed: Seconds between the previous launch and the attempted relaunch
        threshold: Minimum number of seconds required between launches
        launches: Number of launches performed so far
    """

    exit_code = ExitCode.WORKER_FLAPPING

    def __init__(self, elapsed: float, threshold: float, launches: int) -> None:
        self.elapsed = elapsed
        self.threshold = threshold
        self.launches = launches
        super().__init__(
            f"Worker exited too soon: {elapsed:.1f}s since previous start "
            f"(minimum {threshold:.0f}s) after {launches} launches"
        )


class TerminationRequested(BrokerLauncherError):
    """
    Raised from the signal handler when the launcher is asked to stop.

    Unwinding through this exception stops the worker and releases the
    broker id before the process exits.

    Attributes:
        signum: The signal that was received
    """

    def __init__(self, signum: int) -> None:
        self.signum = signum
        self.exit_code = 128 + signum
        super().__init__(f"Received {signal.Signals(signum).name}")
