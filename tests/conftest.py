"""
Shared pytest fixtures for the brokerlauncher tests.

This module provides:
- Cluster and launch settings fixtures (cluster_config, settings)
- Deterministic randomness and time (rng, clock)
- The in-memory coordination client (fake_client)
- A MockTracer for span assertions (mock_tracer)
- A cluster YAML file on disk (cluster_yaml)
"""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from brokerlauncher.config import ClusterConfig, LaunchSettings
from brokerlauncher.observability import MockTracer
from tests.fixtures import FakeClock, FakeCoordinationClient


@pytest.fixture
def cluster_config() -> ClusterConfig:
    """A three-node ensemble for the 'events' cluster."""
    return ClusterConfig(
        zk_hosts=("zk1:2181", "zk2:2181", "zk3:2181"),
        cluster="events",
    )


@pytest.fixture
def settings(tmp_path: Path) -> LaunchSettings:
    """Launch settings for a five broker cluster with the production timings."""
    return LaunchSettings(
        heap_size=4096,
        broker_count=5,
        ports=("9092", "9999"),
        config_path=str(tmp_path / "cluster.yml"),
    )


@pytest.fixture
def rng() -> random.Random:
    """Seeded random generator."""
    return random.Random(1234)


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced clock, also usable as a sleep function."""
    return FakeClock()


@pytest.fixture
def fake_client() -> FakeCoordinationClient:
    """Coordination client that wins the first vote."""
    return FakeCoordinationClient()


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Tracer recording span names and attributes."""
    return MockTracer()


@pytest.fixture
def cluster_yaml(tmp_path: Path) -> Path:
    """A valid cluster config file."""
    path = tmp_path / "cluster.yml"
    path.write_text(
        "zk_hosts:\n"
        "  - zk1:2181\n"
        "  - zk2:2181\n"
        "cluster: events\n",
        encoding="utf-8",
    )
    return path
