"""
Election campaign for one broker id.

ElectionCampaign drives a single candidate broker id through repeated votes
until the seat is won or the attempt budget is spent. It is an explicit
bounded state machine:

    IDLE --campaign()--> CAMPAIGNING --vote won--> WON
                            |   ^
                   vote lost|   |jittered sleep, attempts <= max_attempts
                            v   |
                           LOST --attempts > max_attempts--> ElectionExhaustedError

Session expiry after winning is delivered by kazoo's event thread as a
message on a queue. The control thread drains it with
poll_session_events(), which runs at most one recovery at a time: close the
session, cool down, reconnect and campaign again for the same broker id.
The attempt counter is never reset.
"""

from __future__ import annotations

import logging
import queue
import random
import time
from collections.abc import Callable
from enum import Enum

from kazoo.exceptions import KazooException, SessionExpiredError

from brokerlauncher.coordination.client import Contender, CoordinationClient
from brokerlauncher.exceptions import CoordinationError, ElectionExhaustedError
from brokerlauncher.observability import (
    ATTR_ATTEMPT,
    ATTR_BROKER_ID,
    ATTR_ELECTED,
    ATTR_ELECTION_PATH,
    ATTR_RECOVERY_COUNT,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


class ElectionState(Enum):
    """
    State of an election campaign.

    Attributes:
        IDLE: Not contending (initial state, and after a session loss)
        CAMPAIGNING: Registered as a contender, waiting for a winning vote
        WON: This process holds the seat for the broker id
        LOST: The last vote found another contender holding the seat
    """

    IDLE = "idle"
    CAMPAIGNING = "campaigning"
    WON = "won"
    LOST = "lost"


class SessionEvent(Enum):
    """Messages delivered from kazoo's event thread to the control thread."""

    EXPIRED = "expired"


def election_path(election_root: str, broker_id: int) -> str:
    """ZooKeeper path of the election for ``broker_id``."""
    return f"{election_root.rstrip('/')}/kafka-{broker_id}"


class ElectionCampaign:
    """
    Campaign to own one broker id.

    Example:
        >>> campaign = ElectionCampaign(
        ...     client,
        ...     broker_id=3,
        ...     broker_count=5,
        ...     max_attempts=15,
        ...     hostname="kafka-host-a",
        ...     rng=rng,
        ... )
        >>> campaign.campaign()  # returns once won, raises when exhausted
        >>> campaign.state
        <ElectionState.WON: 'won'>
    """

    def __init__(
        self,
        client: CoordinationClient,
        *,
        broker_id: int,
        broker_count: int,
        max_attempts: int,
        hostname: str,
        rng: random.Random,
        election_root: str = "/_election",
        reconnect_cooldown: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the campaign.

        Args:
            client: Coordination client owning the session
            broker_id: Candidate broker id; never changes for this campaign
            broker_count: Cluster size, upper bound of the jittered sleep
            max_attempts: Vote budget for the whole process lifetime
            hostname: Published as contender data
            rng: Process-local random generator used for jitter
            election_root: Path under which per-id elections live
            reconnect_cooldown: Seconds to wait before reconnecting after expiry
            sleep: Sleep function (injected by tests)
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._client = client
        self._broker_id = broker_id
        self._broker_count = broker_count
        self._max_attempts = max_attempts
        self._hostname = hostname
        self._rng = rng
        self._path = election_path(election_root, broker_id)
        self._reconnect_cooldown = reconnect_cooldown
        self._sleep = sleep

        self._events: queue.Queue[SessionEvent] = queue.Queue()
        self.state = ElectionState.IDLE
        self.attempts = 0
        self.recoveries = 0

    @property
    def broker_id(self) -> int:
        return self._broker_id

    @property
    def path(self) -> str:
        return self._path

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def next_delay(self) -> float:
        """
        Draw the pause before the next vote.

        Uniform over [0, broker_count) seconds so that contenders started
        together do not vote in lockstep.
        """
        return self._rng.random() * self._broker_count

    def campaign(self) -> None:
        """
        Contend for the broker id until the seat is won.

        Raises:
            ElectionExhaustedError: If the attempt budget is exceeded. All
                coordination resources are closed before raising.
        """
        contender = self._contend()

        while True:
            logger.info("Trying to get elected for kafka-%d...", self._broker_id)
            elected = self._vote(contender)

            if elected:
                self.state = ElectionState.WON
                logger.info("Won election for kafka-%d", self._broker_id)
                self._client.on_session_expired(self._notify_expired)
                return

            if self.attempts > self._max_attempts:
                self._client.close()
                logger.error(
                    "Couldn't become broker %d after %d attempts",
                    self._broker_id,
                    self.attempts,
                )
                raise ElectionExhaustedError(self._broker_id, self.attempts, self._max_attempts)

            if elected is None and not self._client.connected:
                self._reconnect()
                contender = self._contend()

            delay = self.next_delay()
            logger.debug("Sleeping %.2fs before the next vote", delay)
            self._sleep(delay)

    def _contend(self) -> Contender | None:
        if not self._client.connected:
            return None
        contender = self._client.contender(self._path, self._hostname)
        self.state = ElectionState.CAMPAIGNING
        return contender

    def _vote(self, contender: Contender | None) -> bool | None:
        """
        Cast one vote.

        Without a session (a reconnect failed) the attempt is still counted.

        Returns:
            True if won, False if another contender leads, None if the
            vote produced no result
        """
        self.attempts += 1
        if contender is None:
            logger.warning("No ZooKeeper session, vote for kafka-%d skipped", self._broker_id)
            return None

        with self._tracer.span(
            "brokerlauncher.election.vote",
            {
                ATTR_BROKER_ID: self._broker_id,
                ATTR_ELECTION_PATH: self._path,
                ATTR_ATTEMPT: self.attempts,
            },
        ) as span:
            try:
                elected = contender.vote()
            except SessionExpiredError:
                logger.warning(
                    "ZooKeeper session expired while voting for kafka-%d", self._broker_id
                )
                self._client.close()
                return None
            except KazooException as e:
                logger.warning(
                    "Vote for kafka-%d produced no result: %s",
                    self._broker_id,
                    e,
                )
                return None

            if span:
                span.set_attribute(ATTR_ELECTED, elected)

        if not elected:
            self.state = ElectionState.LOST
            logger.info(
                "Lost election for kafka-%d (leader: %s)",
                self._broker_id,
                contender.leader() or "unknown",
            )
        return elected

    def _notify_expired(self) -> None:
        # Runs on kazoo's event thread: enqueue only
        self._events.put(SessionEvent.EXPIRED)

    def poll_session_events(self) -> bool:
        """
        Handle pending session-expiry notifications.

        Duplicate notifications queued while the control thread was busy are
        coalesced into a single recovery.

        Returns:
            True if a recovery was performed
        """
        expired = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            if event is SessionEvent.EXPIRED:
                expired += 1

        if not expired:
            return False

        self.recover()
        return True

    def recover(self) -> None:
        """
        Re-establish the session and win the same broker id again.

        Raises:
            ElectionExhaustedError: If the cumulative attempt budget runs out
        """
        self.recoveries += 1
        with self._tracer.span(
            "brokerlauncher.election.recover",
            {
                ATTR_BROKER_ID: self._broker_id,
                ATTR_RECOVERY_COUNT: self.recoveries,
            },
        ):
            logger.warning(
                "Recovering ZooKeeper session for kafka-%d (recovery %d)",
                self._broker_id,
                self.recoveries,
            )
            self._reconnect()
            self.campaign()

    def _reconnect(self) -> None:
        self.state = ElectionState.IDLE
        self._client.close()
        self._sleep(self._reconnect_cooldown)
        try:
            self._client.connect()
        except CoordinationError as e:
            # The next vote counts against the attempt budget
            logger.warning("Reconnect for kafka-%d failed: %s", self._broker_id, e)
