# Where: bff_e2e/runner/cleanup.py
# What: Teardown stack for containers and networks created by a harness run.
# Why: Every started handle must be removed, even when a later step fails.
from __future__ import annotations

import logging
from typing import Any, Callable

import docker.errors

logger = logging.getLogger("bff_e2e.cleanup")


def remove_container(container: Any) -> None:
    try:
        container.stop(timeout=5)
    except docker.errors.NotFound:
        return
    except docker.errors.APIError as e:
        logger.warning(f"Failed to stop container {container.name}: {e}")
    try:
        container.remove(force=True, v=True)
    except docker.errors.NotFound:
        return


class TeardownStack:
    """LIFO list of cleanup callbacks; ``close()`` runs all of them exactly once."""

    def __init__(self) -> None:
        self._callbacks: list[tuple[str, Callable[[], None]]] = []
        self._closed = False

    def __len__(self) -> int:
        return len(self._callbacks)

    def __enter__(self) -> "TeardownStack":
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> bool:
        self.close()
        return False

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self._callbacks]

    def push(self, label: str, callback: Callable[[], None]) -> None:
        if self._closed:
            raise RuntimeError("TeardownStack is already closed")
        self._callbacks.append((label, callback))

    def push_container(self, name: str, container: Any) -> None:
        self.push(f"container:{name}", lambda: remove_container(container))

    def close(self) -> list[tuple[str, Exception]]:
        """Run callbacks newest-first. Failures are logged and returned, never raised."""
        failures: list[tuple[str, Exception]] = []
        if self._closed:
            return failures
        self._closed = True
        while self._callbacks:
            label, callback = self._callbacks.pop()
            logger.info(f"Teardown: {label}")
            try:
                callback()
            except Exception as e:
                logger.error(f"Teardown of {label} failed: {e}", exc_info=True)
                failures.append((label, e))
        return failures
