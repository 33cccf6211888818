"""
ZooKeeper session management.

CoordinationClient owns the kazoo session used by a launcher run: it
connects under the cluster namespace, reads the broker registry, hands out
election contenders and reports session expiry.

Usage:
    >>> client = CoordinationClient(cluster_config, timeout=5.0)
    >>> client.connect()
    >>> client.registered_identities("/brokers/ids")
    {0, 1, 3}
    >>> client.close()
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Any

from kazoo.client import KazooClient, KazooState
from kazoo.exceptions import KazooException, NoNodeError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.retry import ForceRetryError, KazooRetry

from brokerlauncher.config import ClusterConfig
from brokerlauncher.exceptions import ConnectTimeoutError, CoordinationError
from brokerlauncher.observability import (
    ATTR_CLUSTER_NAME,
    ATTR_ZK_HOSTS,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]


def single_attempt_retry(client: Any) -> KazooRetry:
    """
    Retry policy that never retries.

    Used for election locks: ZooKeeper errors surface from the vote that hit
    them, and the campaign decides whether to vote again. A lock node that
    vanished (ForceRetryError) ends the acquire as a lost vote.
    """
    retry = KazooRetry(max_tries=1, ignore_expire=False, sleep_func=client.handler.sleep_func)
    retry.retry_exceptions = (ForceRetryError,)
    return retry


class Contender:
    """
    One process's seat in the election for a single broker id.

    Backed by a kazoo Lock: the lock holder is the elected leader, and the
    other contenders follow it. Voting never blocks; a vote either takes the
    seat or reports that someone else holds it.

    Attributes:
        path: ZooKeeper path of the election node
        identifier: Data published for this contender (the hostname)
    """

    def __init__(self, lock: Any, path: str, identifier: str) -> None:
        self._lock = lock
        self.path = path
        self.identifier = identifier
        self._closed = False

    def vote(self) -> bool:
        """
        Try to become leader of the election.

        Returns:
            True if this contender now holds the seat, False if another
            contender does

        Raises:
            KazooException: If ZooKeeper could not be reached for this vote,
                e.g. ConnectionLoss or SessionExpiredError
        """
        return bool(self._lock.acquire(blocking=False))

    def leader(self) -> str | None:
        """Identifier of the current leader, if any."""
        try:
            contenders = self._lock.contenders()
        except KazooException as e:
            logger.debug("Could not list contenders for %s: %s", self.path, e)
            return None
        return contenders[0] if contenders else None

    @property
    def is_leader(self) -> bool:
        return bool(self._lock.is_acquired)

    def close(self, release: bool = True) -> None:
        """
        Give up the seat. Safe to call more than once.

        Args:
            release: Delete the contender node. Skipped when the session is
                already gone, since its ephemeral node goes with it.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._lock.cancel()
            if release:
                self._lock.release()
        except KazooException as e:
            logger.warning(
                "Error releasing election seat: path=%s, error=%s",
                self.path,
                e,
            )


class CoordinationClient:
    """
    Owns the ZooKeeper session for one launcher run.

    The cluster namespace is used as the kazoo chroot, so every path handed
    to this client is relative to ``/kafka-<cluster>``.

    Example:
        >>> client = CoordinationClient(cluster_config)
        >>> client.connect()
        >>> client.on_session_expired(lambda: events.put("expired"))
        >>> contender = client.contender("/_election/kafka-3", "host-a")
        >>> contender.vote()
        True
        >>> client.close()
    """

    def __init__(
        self,
        cluster: ClusterConfig,
        *,
        timeout: float = 5.0,
        rng: random.Random | None = None,
        client_factory: ClientFactory = KazooClient,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the client without connecting.

        Args:
            cluster: Cluster description (endpoints and namespace)
            timeout: Seconds to wait for the session on connect
            rng: Random generator used to shuffle the endpoints
            client_factory: Callable building the kazoo client (for tests)
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._cluster = cluster
        self._timeout = timeout
        self._rng = rng
        self._client_factory = client_factory
        self._client: Any | None = None
        self._contenders: list[Contender] = []
        self._listeners: list[Callable[[str], Any]] = []

    @property
    def connected(self) -> bool:
        return self._client is not None and bool(self._client.connected)

    def connect(self) -> None:
        """
        Establish the session, blocking until connected.

        Raises:
            ConnectTimeoutError: If no session is established within the timeout
            CoordinationError: If the namespace cannot be created
        """
        if self._client is not None:
            raise CoordinationError("Client is already connected; close() it first")

        hosts = self._cluster.connection_string(self._rng)
        namespace = self._cluster.namespace

        with self._tracer.span(
            "brokerlauncher.coordination.connect",
            {ATTR_CLUSTER_NAME: self._cluster.cluster, ATTR_ZK_HOSTS: hosts},
        ):
            client = self._client_factory(hosts=hosts, timeout=self._timeout)
            try:
                client.start(timeout=self._timeout)
            except KazooTimeoutError as e:
                client.close()
                raise ConnectTimeoutError(hosts, self._timeout) from e

            try:
                # A chrooted session cannot create its own root
                client.ensure_path(namespace)
            except KazooException as e:
                client.stop()
                client.close()
                raise CoordinationError(f"Cannot create namespace {namespace}: {e}") from e
            client.chroot = namespace

        self._client = client
        logger.info(
            "Connected to ZooKeeper",
            extra={"hosts": hosts, "namespace": namespace},
        )

    def _require_client(self) -> Any:
        if self._client is None:
            raise CoordinationError("Not connected to ZooKeeper")
        return self._client

    def registered_identities(self, path: str) -> set[int]:
        """
        Read the broker ids currently registered under ``path``.

        A missing path or a path without children is not an error.

        Args:
            path: Registry path, relative to the namespace

        Returns:
            Set of registered broker ids
        """
        client = self._require_client()
        try:
            children = client.get_children(path)
        except NoNodeError:
            children = []

        ids: set[int] = set()
        for child in children:
            try:
                ids.add(int(child))
            except ValueError:
                logger.warning("Ignoring non-numeric broker registration %r under %s", child, path)

        if ids:
            logger.info("Found these broker IDs in ZooKeeper: %s", sorted(ids))
        return ids

    def on_session_expired(self, callback: Callable[[], None]) -> None:
        """
        Register a callback for session expiry.

        The callback runs on kazoo's event thread and must not block; it is
        invoked every time the connection state becomes LOST.

        Args:
            callback: Zero-argument callable
        """
        client = self._require_client()

        def listener(state: str) -> None:
            if state == KazooState.LOST:
                logger.warning("ZooKeeper session expired")
                callback()

        client.add_listener(listener)
        self._listeners.append(listener)

    def contender(self, path: str, identifier: str) -> Contender:
        """
        Create a contender for the election at ``path``.

        Args:
            path: Election path, relative to the namespace
            identifier: Data published for this contender

        Returns:
            Contender handle, released on close()
        """
        client = self._require_client()
        lock = client.Lock(path, identifier)
        # kazoo locks retry connection loss and session expiry without a deadline
        lock._retry = single_attempt_retry(client)
        contender = Contender(lock, path, identifier)
        self._contenders.append(contender)
        return contender

    def close(self) -> None:
        """
        Release every contender, then the session.

        Idempotent, and safe on a client that never connected.
        """
        release = self.connected
        for contender in self._contenders:
            contender.close(release=release)
        self._contenders.clear()

        client, self._client = self._client, None
        if client is None:
            return

        for listener in self._listeners:
            client.remove_listener(listener)
        self._listeners.clear()

        try:
            client.stop()
        finally:
            client.close()
        logger.debug("Closed ZooKeeper session")
