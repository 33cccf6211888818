"""
Broker launcher.

BrokerLauncher is the single owned context of a launcher run. It holds the
ZooKeeper session, the random generator, the candidate broker id and the
election campaign (with its cumulative attempt counter), and it releases the
election seat and the session exactly once however the run ends.

Example:
    >>> with BrokerLauncher(settings, cluster_config) as launcher:
    ...     launcher.run()  # never returns normally
"""

from __future__ import annotations

import logging
import random
import socket
import subprocess
import time
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import Any, NoReturn

from brokerlauncher.allocation import compute_missing, create_rng, pick_candidate
from brokerlauncher.config import ClusterConfig, LaunchSettings
from brokerlauncher.coordination import CoordinationClient, ElectionCampaign
from brokerlauncher.exceptions import CoordinationError
from brokerlauncher.observability import Tracer, create_tracer
from brokerlauncher.supervisor import ProcessSupervisor
from brokerlauncher.worker import (
    DEFAULT_ARCHIVE,
    DEFAULT_COMMAND,
    build_worker_environment,
    render_server_properties,
    template_context,
    unpack_distribution,
)

logger = logging.getLogger(__name__)


class BrokerLauncher:
    """
    Claims one free broker id and supervises the broker under it.

    Steps of run():
    1. allocate(): connect and pick an unregistered broker id
    2. elect(): win the election for that id
    3. prepare_worker(): render server.properties, unpack, build the environment
    4. supervise(): run the broker forever, recovering lost sessions
    """

    def __init__(
        self,
        settings: LaunchSettings,
        cluster: ClusterConfig,
        *,
        hostname: str | None = None,
        rng: random.Random | None = None,
        client: CoordinationClient | None = None,
        command: str = DEFAULT_COMMAND,
        template_path: str | Path | None = None,
        properties_path: str | Path = "server.properties",
        archive: str | Path | None = DEFAULT_ARCHIVE,
        workdir: str | Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        popen: Callable[..., Any] = subprocess.Popen,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.settings = settings
        self.cluster = cluster
        self.hostname = hostname or socket.gethostname()
        self.rng = rng or create_rng()
        self.client = client or CoordinationClient(
            cluster,
            timeout=settings.session_timeout,
            rng=self.rng,
            tracer=self._tracer,
        )
        self._command = command
        self._template_path = template_path
        self._workdir = Path(workdir) if workdir is not None else Path.cwd()
        self._properties_path = self._workdir / properties_path
        self._archive = archive
        self._sleep = sleep
        self._clock = clock
        self._popen = popen

        self.broker_id: int | None = None
        self.campaign: ElectionCampaign | None = None
        self._closed = False

    def __enter__(self) -> BrokerLauncher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the election seat, then the session. Runs once."""
        if self._closed:
            return
        self._closed = True
        self.client.close()

    def allocate(self) -> int:
        """
        Connect and choose the candidate broker id.

        Raises:
            NoIdentityAvailableError: If every broker id is registered
            ConnectTimeoutError: If ZooKeeper cannot be reached
        """
        if self.broker_id is not None:
            return self.broker_id

        self.client.connect()
        registered = self.client.registered_identities(self.settings.registry_path)
        missing = compute_missing(self.settings.broker_count, registered)
        logger.info("Missing broker IDs: %s", sorted(missing))

        self.broker_id = pick_candidate(missing, self.rng, self.settings.broker_count)
        return self.broker_id

    def elect(self) -> ElectionCampaign:
        """
        Win the election for the candidate broker id.

        Raises:
            ElectionExhaustedError: If the attempt budget is exceeded
        """
        if self.broker_id is None:
            raise CoordinationError("allocate() must pick a broker id before elect()")

        if self.campaign is None:
            self.campaign = ElectionCampaign(
                self.client,
                broker_id=self.broker_id,
                broker_count=self.settings.broker_count,
                max_attempts=self.settings.max_attempts,
                hostname=self.hostname,
                rng=self.rng,
                election_root=self.settings.election_root,
                reconnect_cooldown=self.settings.reconnect_cooldown,
                sleep=self._sleep,
                tracer=self._tracer,
            )
        self.campaign.campaign()
        return self.campaign

    def prepare_worker(self) -> dict[str, str]:
        """
        Write server.properties, unpack the distribution and build the environment.

        Returns:
            Environment for the broker process
        """
        if self.broker_id is None:
            raise CoordinationError("allocate() must pick a broker id before prepare_worker()")

        zk_connect = ",".join(self.cluster.zk_hosts) + self.cluster.namespace
        context = template_context(
            broker_id=self.broker_id,
            heap_size=self.settings.heap_size,
            ports=self.settings.ports,
            zk_connect=zk_connect,
            hostname=self.hostname,
        )
        render_server_properties(self._properties_path, context, self._template_path)

        if self._archive is not None:
            unpack_distribution(self._workdir / self._archive, self._workdir)

        return build_worker_environment(self.settings.heap_size, self.settings.ports)

    def supervise(self, environment: dict[str, str]) -> NoReturn:
        """
        Run the broker forever.

        Raises:
            WorkerFlappingError: If the broker crash-loops
            ElectionExhaustedError: If a session recovery cannot win the seat back
        """
        if self.campaign is None:
            raise CoordinationError("elect() must win a broker id before supervise()")

        supervisor = ProcessSupervisor(
            self._command,
            environment,
            flap_threshold=self.settings.flap_threshold,
            poll_interval=self.settings.poll_interval,
            on_poll=self.campaign.poll_session_events,
            cwd=str(self._workdir),
            clock=self._clock,
            popen=self._popen,
            tracer=self._tracer,
        )
        supervisor.run()

    def run(self) -> NoReturn:
        """Allocate, elect, prepare and supervise."""
        self.allocate()
        self.elect()
        environment = self.prepare_worker()
        self.supervise(environment)
