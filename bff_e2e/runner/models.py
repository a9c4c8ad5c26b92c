# Where: bff_e2e/runner/models.py
# What: Dataclasses for the harness run context and launch results.
# Why: Keep execution inputs explicit and avoid implicit global state.
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bff_e2e.runner.cleanup import TeardownStack
from bff_e2e.runner.config import HarnessConfig
from bff_e2e.runner.errors import SequencingError


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class ServiceHandle:
    name: str
    alias: str
    container: Any
    mapped_port: str


@dataclass(frozen=True)
class AdvisoryError:
    """A failure of a best-effort step that was logged and did not abort the run."""

    operation: str
    error: Exception


@dataclass
class BrokerLaunch:
    handle: ServiceHandle
    advisory: AdvisoryError | None = None


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    errors: list[Any] = field(default_factory=list)
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContractReport:
    tests_run: int | None = None
    successes: int | None = None
    failures: int | None = None
    errors: int | None = None

    @property
    def passed(self) -> bool:
        if not self.tests_run:
            return False
        return not self.failures and not self.errors


@dataclass
class SuiteResult:
    report: str
    summary: ContractReport
    verification: VerificationResult | None = None
    advisories: list[AdvisoryError] = field(default_factory=list)


@dataclass
class TestEnvironment:
    """Per-run descriptor threaded through every orchestration call."""

    __test__ = False

    config: HarnessConfig
    expected_message_count: int = 0
    run_id: str = field(default_factory=new_run_id)
    workdir: Path = field(default_factory=Path.cwd)
    deadline: float | None = None
    network: Any = None
    kafka_api_host: str | None = None
    kafka_dynamic_api_port: str | None = None
    services: dict[str, ServiceHandle] = field(default_factory=dict)
    teardown: TeardownStack = field(default_factory=TeardownStack)
    clock: Any = None
    log_sink: Any = None
    echo_logs: bool = True

    def __post_init__(self) -> None:
        if self.expected_message_count < 0:
            raise ValueError("expected_message_count must be >= 0")

    @property
    def network_name(self) -> str:
        if self.network is None:
            raise SequencingError("network has not been provisioned for this run")
        return self.network.name

    def container_name(self, base: str) -> str:
        return f"{base}-{self.run_id}"

    def register_service(self, handle: ServiceHandle) -> None:
        self.services[handle.alias] = handle

    def require_service(self, alias: str) -> ServiceHandle:
        handle = self.services.get(alias)
        if handle is None:
            raise SequencingError(f"service {alias!r} is not running on the run network")
        return handle

    def record_kafka_api(self, host: str, port: str) -> None:
        if self.kafka_api_host is not None or self.kafka_dynamic_api_port is not None:
            raise SequencingError("Kafka API address is already recorded for this run")
        self.kafka_api_host = host
        self.kafka_dynamic_api_port = port

    def kafka_api_address(self) -> tuple[str, str]:
        if not self.kafka_api_host or not self.kafka_dynamic_api_port:
            raise SequencingError("broker mock has not been started; Kafka API address unknown")
        return self.kafka_api_host, self.kafka_dynamic_api_port

    def remaining(self, timeout: float) -> float:
        """Clamp a step timeout to the caller-level deadline, if one is set."""
        if self.deadline is None:
            return timeout
        now = self.clock.now() if self.clock is not None else time.monotonic()
        return max(0.0, min(timeout, self.deadline - now))
