"""
Integration tests against a real ZooKeeper server.

Tests for:
- Namespace creation and registry reads
- Contention for one election path between two sessions
- A full launcher run ending with a flapping worker
"""

from __future__ import annotations

import random
from pathlib import Path

import pytest
from kazoo.client import KazooClient

from brokerlauncher.config import ClusterConfig, LaunchSettings
from brokerlauncher.coordination import CoordinationClient, ElectionCampaign, ElectionState
from brokerlauncher.exceptions import WorkerFlappingError
from brokerlauncher.launcher import BrokerLauncher
from tests.integration.conftest import skip_if_no_zookeeper

pytestmark = [pytest.mark.integration, skip_if_no_zookeeper]


def make_client(cluster: ClusterConfig) -> CoordinationClient:
    return CoordinationClient(cluster, timeout=30.0, enable_tracing=False)


class TestCoordinationClient:
    """Tests for CoordinationClient with a live session."""

    def test_connect_creates_namespace(self, cluster: ClusterConfig, admin: KazooClient):
        client = make_client(cluster)
        try:
            client.connect()
            assert client.connected is True
            assert client.registered_identities("/brokers/ids") == set()
        finally:
            client.close()

    def test_registered_identities(self, cluster: ClusterConfig, admin: KazooClient):
        for broker_id in (0, 2):
            admin.create(f"/brokers/ids/{broker_id}", b"{}", makepath=True, ephemeral=True)

        client = make_client(cluster)
        try:
            client.connect()
            assert client.registered_identities("/brokers/ids") == {0, 2}
        finally:
            client.close()

    def test_second_contender_wins_after_first_leaves(
        self, cluster: ClusterConfig, admin: KazooClient
    ):
        first, second = make_client(cluster), make_client(cluster)
        try:
            first.connect()
            second.connect()
            a = first.contender("/_election/kafka-1", "host-a")
            b = second.contender("/_election/kafka-1", "host-b")

            assert a.vote() is True
            assert b.vote() is False
            assert b.leader() == "host-a"

            first.close()

            assert b.vote() is True
        finally:
            first.close()
            second.close()


class TestElectionCampaign:
    """Tests for ElectionCampaign with a live session."""

    def test_campaign_wins_free_seat(self, cluster: ClusterConfig, admin: KazooClient):
        client = make_client(cluster)
        try:
            client.connect()
            campaign = ElectionCampaign(
                client,
                broker_id=0,
                broker_count=1,
                max_attempts=3,
                hostname="host-a",
                rng=random.Random(0),
                enable_tracing=False,
            )
            campaign.campaign()

            assert campaign.state is ElectionState.WON
            assert campaign.attempts == 1
            assert admin.get_children("/_election/kafka-0")
        finally:
            client.close()


class TestBrokerLauncher:
    """Tests for a launcher run with a real worker process."""

    def test_run_until_flapping_then_release(
        self, cluster: ClusterConfig, admin: KazooClient, tmp_path: Path
    ):
        admin.create("/brokers/ids/0", b"{}", makepath=True, ephemeral=True)
        settings = LaunchSettings(
            heap_size=256,
            broker_count=2,
            ports=("9092", "9999"),
            session_timeout=30.0,
            poll_interval=0.1,
        )
        launcher = BrokerLauncher(
            settings,
            cluster,
            hostname="host-a",
            rng=random.Random(0),
            command="true",
            archive=None,
            workdir=tmp_path,
            enable_tracing=False,
        )

        with pytest.raises(WorkerFlappingError), launcher:
            launcher.run()

        assert launcher.broker_id == 1
        assert "broker.id=1" in (tmp_path / "server.properties").read_text(encoding="utf-8")
        assert admin.get_children("/_election/kafka-1") == []
