"""
Observability utilities for brokerlauncher.

Provides the composition-based Tracer abstraction and the standard span
attribute names used by the coordination, election and supervision layers.

Example:
    >>> from brokerlauncher.observability import create_tracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span("brokerlauncher.supervisor.launch"):
    ...     pass
"""

from brokerlauncher.observability.attributes import (
    ATTR_ATTEMPT,
    ATTR_BROKER_COUNT,
    ATTR_BROKER_ID,
    ATTR_CLUSTER_NAME,
    ATTR_ELECTED,
    ATTR_ELECTION_PATH,
    ATTR_EXIT_CODE,
    ATTR_LAUNCH_COUNT,
    ATTR_RECOVERY_COUNT,
    ATTR_WORKER_COMMAND,
    ATTR_ZK_HOSTS,
)
from brokerlauncher.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_ATTEMPT",
    "ATTR_BROKER_COUNT",
    "ATTR_BROKER_ID",
    "ATTR_CLUSTER_NAME",
    "ATTR_ELECTED",
    "ATTR_ELECTION_PATH",
    "ATTR_EXIT_CODE",
    "ATTR_LAUNCH_COUNT",
    "ATTR_RECOVERY_COUNT",
    "ATTR_WORKER_COMMAND",
    "ATTR_ZK_HOSTS",
]
