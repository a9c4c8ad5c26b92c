# Where: bff_e2e/runner/readiness.py
# What: Log-marker readiness probing for launched containers.
# Why: Make startup waits explicit, bounded and testable with a fake clock.
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Protocol

from bff_e2e.runner.errors import LaunchError, ReadinessTimeoutError

logger = logging.getLogger("bff_e2e.readiness")

STATE_STARTING = "starting"
STATE_WAITING = "waiting_for_marker"
STATE_READY = "ready"
STATE_TIMED_OUT = "timed_out"


class Clock(Protocol):
    def now(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class LogMarkerWait:
    """
    Poll a log source until every marker has appeared.

    States: starting -> waiting_for_marker -> ready | timed_out.
    Markers are matched as literal substrings of the accumulated log text.
    """

    def __init__(
        self,
        service: str,
        read_logs: Callable[[], str],
        markers: Iterable[str],
        *,
        timeout: float,
        interval: float = 0.5,
        clock: Clock | None = None,
        is_running: Callable[[], bool] | None = None,
    ) -> None:
        self.service = service
        self.read_logs = read_logs
        self.markers = [m for m in markers if m]
        self.timeout = timeout
        self.interval = interval
        self.clock = clock or MonotonicClock()
        self.is_running = is_running
        self.state = STATE_STARTING
        self.seen: set[str] = set()

    @property
    def missing(self) -> list[str]:
        return [m for m in self.markers if m not in self.seen]

    def poll(self) -> bool:
        """Single probe. Returns True once all markers have been observed."""
        if self.state == STATE_STARTING:
            self.state = STATE_WAITING
        text = self.read_logs()
        for marker in self.missing:
            if marker in text:
                logger.debug(f"{self.service}: observed marker {marker!r}")
                self.seen.add(marker)
        if not self.missing:
            self.state = STATE_READY
            return True
        return False

    def run(self) -> None:
        deadline = self.clock.now() + self.timeout
        while True:
            if self.poll():
                logger.info(f"{self.service} is ready")
                return
            if self.is_running is not None and not self.is_running():
                # output may have been flushed between the probe and the exit
                if self.poll():
                    return
                raise LaunchError(
                    self.service, f"container exited before log marker(s) {self.missing}"
                )
            remaining = deadline - self.clock.now()
            if remaining <= 0:
                self.state = STATE_TIMED_OUT
                raise ReadinessTimeoutError(self.service, self.missing, self.timeout)
            self.clock.sleep(min(self.interval, remaining))


def container_log_reader(container: Any, since: float | None = None) -> Callable[[], str]:
    """Read the container output; with ``since`` only output newer than that timestamp."""
    kwargs: dict[str, Any] = {"stdout": True, "stderr": True}
    if since is not None:
        kwargs["since"] = since

    def _read() -> str:
        raw = container.logs(**kwargs)
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return str(raw)

    return _read


def container_is_running(container: Any) -> Callable[[], bool]:
    def _check() -> bool:
        container.reload()
        return container.status not in ("exited", "dead")

    return _check


def wait_for_log(
    container: Any,
    markers: Iterable[str],
    *,
    timeout: float,
    interval: float = 0.5,
    clock: Clock | None = None,
    service: str | None = None,
    since: float | None = None,
) -> None:
    LogMarkerWait(
        service or container.name,
        container_log_reader(container, since),
        markers,
        timeout=timeout,
        interval=interval,
        clock=clock,
        is_running=container_is_running(container),
    ).run()
