"""
Broker id allocation.

Works out which broker ids are not registered in ZooKeeper and picks one
candidate to contend for. The registry is read once at startup; it is not
watched.

Example:
    >>> rng = create_rng(seed=42)
    >>> missing = compute_missing(5, {0, 1, 2, 3})
    >>> pick_candidate(missing, rng, broker_count=5)
    4
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterable

from brokerlauncher.exceptions import NoIdentityAvailableError

logger = logging.getLogger(__name__)


def create_rng(seed: int | float | None = None) -> random.Random:
    """
    Create the process-local random generator.

    Without a seed the generator is seeded from the wall clock, so repeated
    runs on different hosts normally pick different candidates and sleep for
    different intervals.

    Args:
        seed: Optional fixed seed for deterministic runs

    Returns:
        A dedicated random.Random instance
    """
    if seed is None:
        seed = int(time.time() * 100000)
    return random.Random(seed)


def compute_missing(broker_count: int, registered: Iterable[int]) -> set[int]:
    """
    Compute the broker ids that nobody has registered.

    Args:
        broker_count: Total number of broker slots
        registered: Broker ids currently present in the registry

    Returns:
        {0, ..., broker_count - 1} minus the registered ids
    """
    return set(range(broker_count)).difference(registered)


def pick_candidate(missing: set[int], rng: random.Random, broker_count: int) -> int:
    """
    Choose the broker id to contend for.

    Selection is uniform over the sorted missing ids, so a fixed seed and a
    fixed missing set always yield the same candidate.

    Args:
        missing: Unregistered broker ids
        rng: Process-local random generator
        broker_count: Cluster size, reported when no id is left

    Returns:
        One element of ``missing``

    Raises:
        NoIdentityAvailableError: If ``missing`` is empty
    """
    if not missing:
        raise NoIdentityAvailableError(broker_count)

    candidate = rng.choice(sorted(missing))
    logger.info(
        "Picked broker id %d from missing ids %s",
        candidate,
        sorted(missing),
    )
    return candidate
