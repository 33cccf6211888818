"""
Deterministic time and process doubles for supervision tests.

FakeClock only moves when told to. FakePopen builds FakeProcess objects
whose lifetime is expressed in clock seconds: each wait(timeout) call
advances the clock by at most ``timeout`` and raises TimeoutExpired until
the scripted lifetime is used up.
"""

from __future__ import annotations

import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class FakeClock:
    now: float = 1000.0
    sleeps: list[float] = field(default_factory=list)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeProcess:
    """
    Child process that "runs" for a fixed number of clock seconds.

    When ``interrupt`` is set, the first wait() raises it, as a signal
    handler firing in the parent during the wait would.
    """

    def __init__(
        self,
        clock: FakeClock,
        lifetime: float,
        exit_code: int,
        pid: int,
        interrupt: BaseException | None = None,
    ) -> None:
        self._clock = clock
        self._remaining = lifetime
        self.exit_code = exit_code
        self.pid = pid
        self.returncode: int | None = None
        self.terminated = False
        self.killed = False
        self.interrupt = interrupt

    def wait(self, timeout: float | None = None) -> int:
        if self.returncode is not None:
            return self.returncode
        if self.interrupt is not None:
            interrupt, self.interrupt = self.interrupt, None
            raise interrupt
        if timeout is None or self._remaining <= timeout:
            self._clock.advance(self._remaining)
            self._remaining = 0
            self.returncode = self.exit_code
            return self.returncode
        self._clock.advance(timeout)
        self._remaining -= timeout
        raise subprocess.TimeoutExpired(cmd="fake", timeout=timeout)

    def poll(self) -> int | None:
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self._remaining = 0
        self.returncode = -15

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9


class FakePopen:
    """
    Process factory replaying scripted lifetimes.

    Args:
        clock: Clock advanced while processes run
        lifetimes: Seconds each successive launch runs before exiting
        exit_codes: Exit status of each launch (defaults to 1)
        interrupts: Exception raised by the first wait() of a launch, by launch index
    """

    def __init__(
        self,
        clock: FakeClock,
        lifetimes: Iterable[float],
        exit_codes: Iterable[int] | None = None,
        interrupts: Mapping[int, BaseException] | None = None,
    ) -> None:
        self._clock = clock
        self._lifetimes = list(lifetimes)
        self._exit_codes = list(exit_codes) if exit_codes is not None else []
        self._interrupts = dict(interrupts or {})
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self.processes: list[FakeProcess] = []
        self.start_times: list[float] = []

    def __call__(self, args: list[str], **kwargs: Any) -> FakeProcess:
        index = len(self.calls)
        if index >= len(self._lifetimes):
            raise AssertionError(f"Unexpected launch #{index + 1}")
        self.calls.append((list(args), kwargs))
        self.start_times.append(self._clock.now)
        exit_code = self._exit_codes[index] if index < len(self._exit_codes) else 1
        process = FakeProcess(
            self._clock,
            self._lifetimes[index],
            exit_code,
            pid=4000 + index,
            interrupt=self._interrupts.get(index),
        )
        self.processes.append(process)
        return process
