"""
ZooKeeper coordination for brokerlauncher.

Provides the session owner and the per-broker-id election campaign used to
claim exactly one free broker slot for this process.

Example:
    >>> from brokerlauncher.coordination import CoordinationClient, ElectionCampaign
    >>>
    >>> client = CoordinationClient(cluster_config)
    >>> client.connect()
    >>> campaign = ElectionCampaign(
    ...     client,
    ...     broker_id=2,
    ...     broker_count=3,
    ...     max_attempts=9,
    ...     hostname="host-a",
    ...     rng=rng,
    ... )
    >>> campaign.campaign()
"""

from brokerlauncher.coordination.client import (
    Contender,
    CoordinationClient,
)
from brokerlauncher.coordination.election import (
    ElectionCampaign,
    ElectionState,
    SessionEvent,
    election_path,
)

__all__ = [
    "Contender",
    "CoordinationClient",
    "ElectionCampaign",
    "ElectionState",
    "SessionEvent",
    "election_path",
]
