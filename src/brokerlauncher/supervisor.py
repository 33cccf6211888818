"""
Worker process supervision.

ProcessSupervisor keeps the broker process running: it launches it, waits
for it to exit, and launches it again straight away. Occasional restarts are
fine; back-to-back fast restarts mean the worker is crash-looping, and the
supervisor gives up with WorkerFlappingError instead of masking the problem.

Flapping is measured between consecutive *start* timestamps: a relaunch
that would begin less than ``flap_threshold`` seconds after the previous
launch started aborts the run.
"""

from __future__ import annotations

import gc
import logging
import shlex
import subprocess
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, NoReturn

from brokerlauncher.exceptions import WorkerFlappingError
from brokerlauncher.observability import (
    ATTR_EXIT_CODE,
    ATTR_LAUNCH_COUNT,
    ATTR_WORKER_COMMAND,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)

TERMINATE_TIMEOUT = 30.0


@dataclass
class SupervisionRecord:
    """
    Launch history kept while the supervision loop runs.

    Attributes:
        last_start: Clock reading of the most recent launch, None before the first
        launches: Number of launches so far
    """

    last_start: float | None = None
    launches: int = 0

    def record_start(self, now: float, threshold: float) -> None:
        """
        Register a launch starting at ``now``.

        Raises:
            WorkerFlappingError: If the previous launch started less than
                ``threshold`` seconds ago
        """
        if self.last_start is not None:
            elapsed = now - self.last_start
            if elapsed < threshold:
                raise WorkerFlappingError(elapsed, threshold, self.launches)
        self.last_start = now
        self.launches += 1


class ProcessSupervisor:
    """
    Runs the worker command forever, aborting on flapping.

    Example:
        >>> supervisor = ProcessSupervisor(
        ...     ["./kafka-exec/bin/kafka-run-class.sh", "kafka.Kafka", "server.properties"],
        ...     environment,
        ...     on_poll=campaign.poll_session_events,
        ... )
        >>> supervisor.run()  # never returns; raises WorkerFlappingError
    """

    def __init__(
        self,
        command: str | Sequence[str],
        environment: Mapping[str, str],
        *,
        flap_threshold: float = 120.0,
        poll_interval: float = 1.0,
        on_poll: Callable[[], Any] | None = None,
        cwd: str | None = None,
        clock: Callable[[], float] = time.monotonic,
        popen: Callable[..., Any] = subprocess.Popen,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            command: Worker command line, as a string or argument list
            environment: Complete environment for the worker process
            flap_threshold: Minimum seconds between two consecutive starts
            poll_interval: Seconds between on_poll calls while the worker runs
            on_poll: Called periodically while waiting for the worker; used
                to handle ZooKeeper session events on the control thread
            cwd: Working directory for the worker
            clock: Monotonic clock (injected by tests)
            popen: Process factory (injected by tests)
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._command = shlex.split(command) if isinstance(command, str) else list(command)
        self._environment = dict(environment)
        self._flap_threshold = flap_threshold
        self._poll_interval = poll_interval
        self._on_poll = on_poll
        self._cwd = cwd
        self._clock = clock
        self._popen = popen
        self.record = SupervisionRecord()

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def run(self) -> NoReturn:
        """
        Launch the worker in an endless loop.

        Raises:
            WorkerFlappingError: When the worker restarts too quickly
        """
        while True:
            self.launch_once()

    def launch_once(self) -> int:
        """
        Run the worker once and wait for it to exit.

        Returns:
            The worker's exit status (negative for a signal)

        Raises:
            WorkerFlappingError: If this launch comes too soon after the previous one
        """
        self.record.record_start(self._clock(), self._flap_threshold)
        launch = self.record.launches
        command_line = shlex.join(self._command)

        logger.info("About to run: %s", command_line, extra={"launch": launch})
        gc.collect()

        with self._tracer.span(
            "brokerlauncher.supervisor.launch",
            {ATTR_LAUNCH_COUNT: launch, ATTR_WORKER_COMMAND: command_line},
        ) as span:
            process = self._popen(self._command, env=self._environment, cwd=self._cwd)
            exit_code = self._wait(process)
            if span:
                span.set_attribute(ATTR_EXIT_CODE, exit_code)

        logger.warning(
            "Worker exited with status %d",
            exit_code,
            extra={"launch": launch, "exit_code": exit_code},
        )
        return exit_code

    def _wait(self, process: Any) -> int:
        # The worker never outlives a failed poll or a termination signal
        try:
            while True:
                try:
                    return int(process.wait(timeout=self._poll_interval))
                except subprocess.TimeoutExpired:
                    pass

                if self._on_poll is not None:
                    self._on_poll()
        except BaseException:
            self._terminate(process)
            raise

    def _terminate(self, process: Any) -> None:
        """Stop a running worker before the launcher gives up its broker id."""
        if process.poll() is not None:
            return
        logger.warning("Sending SIGTERM to worker process %s", process.pid)
        process.terminate()
        try:
            process.wait(timeout=TERMINATE_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("Worker didn't terminate in %.0fs, sending SIGKILL", TERMINATE_TIMEOUT)
            process.kill()
            process.wait()
