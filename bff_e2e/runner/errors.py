"""
Harness exception classes.

Represent failures while provisioning, probing and verifying the BFF topology.
"""

from typing import Any


class HarnessError(Exception):
    """Base exception class for the E2E harness."""

    pass


class ConfigurationError(HarnessError):
    """Raised when a configured port or host is malformed."""

    def __init__(self, key: str, value: Any, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}={value!r}: {reason}")


class LaunchError(HarnessError):
    """Raised when the container runtime cannot create, build or start a service."""

    def __init__(self, service: str, cause: Exception | str):
        self.service = service
        self.cause = cause
        super().__init__(f"Failed to launch {service}: {cause}")


class ReadinessTimeoutError(LaunchError):
    """Raised when a readiness marker is not observed before the startup timeout."""

    def __init__(self, service: str, missing: list[str], timeout: float):
        self.missing = missing
        self.timeout = timeout
        markers = ", ".join(repr(m) for m in missing)
        super().__init__(service, f"log marker(s) {markers} not seen within {timeout:g}s")


class TransportError(HarnessError):
    """Raised when an expectation API call could not complete."""

    def __init__(self, url: str, cause: Exception | str):
        self.url = url
        self.cause = cause
        super().__init__(f"Expectation API call to {url} failed: {cause}")


class VerificationError(HarnessError):
    """Raised when the broker mock reports unmet expectations."""

    def __init__(self, errors: list[Any]):
        self.errors = list(errors)
        lines = "\n".join(f"  - {_describe(err)}" for err in self.errors) or "  - (no detail)"
        super().__init__(f"Kafka mock verification failed:\n{lines}")


class SequencingError(RuntimeError):
    """Raised when an orchestration step runs before the step it depends on."""

    pass


def _describe(err: Any) -> str:
    if isinstance(err, dict):
        topic = err.get("topic")
        if topic is not None and "expected" in err:
            return f"topic {topic!r}: expected {err.get('expected')}, got {err.get('actual')}"
        message = err.get("message")
        if message:
            return str(message)
    return str(err)
