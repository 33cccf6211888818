"""
Shared pytest fixtures for integration tests.

This module provides a ZooKeeper server for the coordination tests. When
BROKERLAUNCHER_ZK_HOSTS is set, that ensemble is used as is; otherwise a
ZooKeeper container is started with testcontainers.

If neither is available, tests are automatically skipped.
"""

from __future__ import annotations

import os
import subprocess
import uuid
from collections.abc import Generator

import pytest
from kazoo.client import KazooClient
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

from brokerlauncher.config import ClusterConfig

ZOOKEEPER_IMAGE = "zookeeper:3.8"
ZK_HOSTS_ENV = "BROKERLAUNCHER_ZK_HOSTS"


def is_docker_available() -> bool:
    """Check if Docker is available for running containers."""
    try:
        result = subprocess.run(
            ["docker", "info"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return False


EXTERNAL_ZK_HOSTS = os.environ.get(ZK_HOSTS_ENV)
DOCKER_AVAILABLE = EXTERNAL_ZK_HOSTS is None and is_docker_available()

skip_if_no_zookeeper = pytest.mark.skipif(
    EXTERNAL_ZK_HOSTS is None and not DOCKER_AVAILABLE,
    reason=f"ZooKeeper not available (set {ZK_HOSTS_ENV} or run Docker)",
)


@pytest.fixture(scope="session")
def zk_hosts() -> Generator[tuple[str, ...], None, None]:
    """ZooKeeper endpoints shared by the whole session."""
    if EXTERNAL_ZK_HOSTS is not None:
        yield tuple(host.strip() for host in EXTERNAL_ZK_HOSTS.split(",") if host.strip())
        return

    container = DockerContainer(ZOOKEEPER_IMAGE).with_exposed_ports(2181)
    container.start()
    try:
        wait_for_logs(container, "binding to port", timeout=60)
        host = container.get_container_host_ip()
        port = container.get_exposed_port(2181)
        yield (f"{host}:{port}",)
    finally:
        container.stop()


@pytest.fixture
def cluster(zk_hosts: tuple[str, ...]) -> ClusterConfig:
    """A cluster with a unique name, so every test gets its own namespace."""
    return ClusterConfig(zk_hosts=zk_hosts, cluster=f"it-{uuid.uuid4().hex[:12]}")


@pytest.fixture
def admin(cluster: ClusterConfig) -> Generator[KazooClient, None, None]:
    """Plain kazoo client rooted at the cluster namespace, for test setup and checks."""
    client = KazooClient(hosts=",".join(cluster.zk_hosts), timeout=10.0)
    client.start(timeout=30)
    client.ensure_path(cluster.namespace)
    client.chroot = cluster.namespace
    try:
        yield client
    finally:
        client.chroot = ""
        client.delete(cluster.namespace, recursive=True)
        client.stop()
        client.close()
