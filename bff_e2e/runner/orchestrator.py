# Where: bff_e2e/runner/orchestrator.py
# What: End-to-end harness flow: network, mocks, BFF, contract tests, verification.
# Why: Fix the dependency order between steps and guarantee teardown on every path.
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from bff_e2e.runner.config import HarnessConfig
from bff_e2e.runner.errors import VerificationError
from bff_e2e.runner.expectations import (
    ExpectationClient,
    set_kafka_expectations,
    verify_kafka_expectations,
)
from bff_e2e.runner.launchers import start_bff, start_broker_mock, start_domain_service
from bff_e2e.runner.logging import LogSink
from bff_e2e.runner.models import SuiteResult, TestEnvironment, new_run_id
from bff_e2e.runner.network import provision_network
from bff_e2e.runner.readiness import MonotonicClock
from bff_e2e.runner.runtime import ContainerRuntime
from bff_e2e.runner.tester import run_contract_tests, summarize_report

logger = logging.getLogger("bff_e2e.orchestrator")


@contextmanager
def harness_environment(
    config: HarnessConfig,
    *,
    expected_message_count: int = 0,
    workdir: Path | None = None,
    timeout: float | None = None,
    echo_logs: bool = True,
    clock: Any = None,
) -> Iterator[TestEnvironment]:
    """
    Yield a fresh run descriptor; its teardown stack is closed on exit.

    ``timeout`` is a caller-level deadline for the whole run; every readiness
    wait is clamped to what remains of it.
    """
    run_id = new_run_id()
    clock = clock or MonotonicClock()
    base = workdir or Path.cwd()
    sink = LogSink(base / config.logs_dir / f"{run_id}.log")
    env = TestEnvironment(
        config=config,
        expected_message_count=expected_message_count,
        run_id=run_id,
        workdir=base,
        deadline=clock.now() + timeout if timeout else None,
        clock=clock,
        log_sink=sink,
        echo_logs=echo_logs,
    )
    sink.open()
    logger.info(f"Harness run {run_id} started (logs: {sink.path})")
    try:
        yield env
    finally:
        failures = env.teardown.close()
        if failures:
            logger.warning(f"Teardown finished with {len(failures)} failure(s)")
        sink.close()
        logger.info(f"Harness run {run_id} finished")


def run_suite(
    env: TestEnvironment,
    runtime: ContainerRuntime,
    client: ExpectationClient,
    *,
    generative: bool = True,
    verify: bool = True,
) -> SuiteResult:
    """
    Start every service in dependency order, run the contract tests, then
    verify the Kafka expectations.

    Launch and configuration errors propagate immediately. A failed
    verification raises VerificationError after its detail has been logged.
    """
    provision_network(env, runtime)
    start_domain_service(env, runtime)
    broker = start_broker_mock(env, runtime, client)
    bff = start_bff(env, runtime)

    set_kafka_expectations(env, client)
    report = run_contract_tests(env, runtime, bff, generative=generative)
    result = SuiteResult(
        report=report,
        summary=summarize_report(report),
        advisories=[broker.advisory] if broker.advisory else [],
    )
    if not verify:
        return result

    try:
        result.verification = verify_kafka_expectations(env, client)
    except VerificationError as exc:
        logger.error(str(exc))
        raise
    return result
