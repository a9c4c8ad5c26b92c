# Where: bff_e2e/runner/logging.py
# What: Log sinks and container output streaming helpers for harness runs.
# Why: Ensure full container logs are persisted while console echo stays optional.
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Iterable, TextIO

import docker.errors
import requests

_OUTPUT_LOCK = threading.Lock()


def safe_print(message: str = "", *, prefix: str | None = None) -> None:
    with _OUTPUT_LOCK:
        if prefix:
            print(f"{prefix} {message}", flush=True)
        else:
            print(message, flush=True)


class LogSink:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._file: TextIO | None = None
        self._lock = threading.Lock()

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("a", encoding="utf-8")

    def close(self) -> None:
        with self._lock:
            if self._file:
                self._file.close()
                self._file = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def write_line(self, line: str) -> None:
        with self._lock:
            if self._file is None:
                raise RuntimeError("LogSink is not open")
            self._file.write(f"{line}\n")
            self._file.flush()

    def offer_line(self, line: str) -> bool:
        """Write ``line`` if the sink is still open; followers may outlive the run."""
        with self._lock:
            if self._file is None:
                return False
            self._file.write(f"{line}\n")
            self._file.flush()
            return True


def make_prefix_printer(label: str, *, width: int = 0) -> Callable[[str], None]:
    formatted = label.ljust(width) if width > 0 else label
    prefix = f"[{formatted}]"

    def _printer(line: str) -> None:
        safe_print(line, prefix=prefix)

    return _printer


def iter_lines(chunks: Iterable[bytes | str]) -> Iterable[str]:
    """Re-split a Docker log stream (arbitrary chunk boundaries) into lines."""
    pending = ""
    for chunk in chunks:
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")
        pending += chunk
        while "\n" in pending:
            line, pending = pending.split("\n", 1)
            yield line.rstrip("\r")
    if pending:
        yield pending.rstrip("\r")


class ContainerLogStreamer:
    """Follow a container's output on a daemon thread and fan it out per line."""

    def __init__(
        self,
        container: Any,
        label: str,
        *,
        sink: LogSink | None = None,
        printer: Callable[[str], None] | None = None,
        since: float | None = None,
    ) -> None:
        self.container = container
        self.label = label
        self.sink = sink
        self.printer = printer
        self.since = since
        self._thread: threading.Thread | None = None
        self._stream: Any = None
        self._closed = False
        self._lock = threading.Lock()

    def start(self) -> "ContainerLogStreamer":
        self._thread = threading.Thread(
            target=self._pump, name=f"logs-{self.label}", daemon=True
        )
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def close(self, timeout: float = 5.0) -> None:
        """Close the followed stream and wait for the follower thread."""
        with self._lock:
            self._closed = True
            stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()
        self.join(timeout)

    def _open_stream(self) -> Any:
        kwargs: dict[str, Any] = {"stream": True, "follow": True, "stdout": True, "stderr": True}
        if self.since is not None:
            kwargs["since"] = self.since
        stream = self.container.logs(**kwargs)
        with self._lock:
            if self._closed:
                stream.close()
                return None
            self._stream = stream
        return stream

    def _pump(self) -> None:
        try:
            stream = self._open_stream()
            if stream is None:
                return
            for line in iter_lines(stream):
                self.emit(line)
        except (docker.errors.DockerException, requests.exceptions.RequestException, OSError):
            # container removed, or stream closed, underneath the follower
            return

    def emit(self, line: str) -> None:
        if self.sink is not None:
            self.sink.offer_line(f"[{self.label}] {line}")
        if self.printer:
            self.printer(line)
