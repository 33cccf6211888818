"""
Standard span attributes for brokerlauncher.

Attribute constants shared by every component so spans from the
coordination, election and supervision layers can be correlated.

Example:
    >>> from brokerlauncher.observability.attributes import ATTR_BROKER_ID
    >>>
    >>> with tracer.span(
    ...     "brokerlauncher.election.vote",
    ...     {ATTR_BROKER_ID: broker_id},
    ... ):
    ...     pass
"""

# =============================================================================
# Cluster Attributes
# =============================================================================

ATTR_CLUSTER_NAME = "brokerlauncher.cluster.name"
"""Name of the cluster, used as the ZooKeeper chroot suffix."""

ATTR_BROKER_COUNT = "brokerlauncher.cluster.broker_count"
"""Total number of broker slots in the cluster (integer)."""

ATTR_ZK_HOSTS = "brokerlauncher.zookeeper.hosts"
"""Comma separated ZooKeeper connection string."""

# =============================================================================
# Election Attributes
# =============================================================================

ATTR_BROKER_ID = "brokerlauncher.broker.id"
"""Candidate broker id being contended (integer)."""

ATTR_ELECTION_PATH = "brokerlauncher.election.path"
"""ZooKeeper path of the election node."""

ATTR_ATTEMPT = "brokerlauncher.election.attempt"
"""Cumulative vote attempt number (integer)."""

ATTR_ELECTED = "brokerlauncher.election.elected"
"""Whether the vote won the election (boolean)."""

ATTR_RECOVERY_COUNT = "brokerlauncher.election.recoveries"
"""Number of session-expiry recoveries performed so far (integer)."""

# =============================================================================
# Supervision Attributes
# =============================================================================

ATTR_LAUNCH_COUNT = "brokerlauncher.worker.launch"
"""Sequence number of the worker launch (integer)."""

ATTR_WORKER_COMMAND = "brokerlauncher.worker.command"
"""Command line used to start the worker."""

ATTR_EXIT_CODE = "brokerlauncher.worker.exit_code"
"""Exit status reported for the worker process (integer)."""

__all__ = [
    "ATTR_CLUSTER_NAME",
    "ATTR_BROKER_COUNT",
    "ATTR_ZK_HOSTS",
    "ATTR_BROKER_ID",
    "ATTR_ELECTION_PATH",
    "ATTR_ATTEMPT",
    "ATTR_ELECTED",
    "ATTR_RECOVERY_COUNT",
    "ATTR_LAUNCH_COUNT",
    "ATTR_WORKER_COMMAND",
    "ATTR_EXIT_CODE",
]
