# Where: bff_e2e/runner/tester.py
# What: Contract test execution against the BFF inside the run network.
# Why: Keep test-runner startup, log draining and teardown in one reusable step.
from __future__ import annotations

import io
import logging
import re

from bff_e2e.runner import constants
from bff_e2e.runner.cleanup import remove_container
from bff_e2e.runner.logging import iter_lines, make_prefix_printer
from bff_e2e.runner.models import ContractReport, ServiceHandle, TestEnvironment
from bff_e2e.runner.ports import parse_port
from bff_e2e.runner.readiness import wait_for_log
from bff_e2e.runner.runtime import ContainerRuntime

logger = logging.getLogger("bff_e2e.tester")

RUNNER_BASE_NAME = "contract-tests"

_SUMMARY_RE = re.compile(
    r"Tests run:\s*(?P<run>\d+)"
    r"(?:,\s*Successes:\s*(?P<ok>\d+))?"
    r"(?:,\s*Failures:\s*(?P<fail>\d+))?"
    r"(?:,\s*Errors:\s*(?P<err>\d+))?"
)


def _int(value: str | None) -> int | None:
    return int(value) if value is not None else None


def summarize_report(text: str) -> ContractReport:
    """Parse the last ``Tests run: ...`` line of a contract report, if any."""
    matches = list(_SUMMARY_RE.finditer(text))
    if not matches:
        return ContractReport()
    last = matches[-1]
    return ContractReport(
        tests_run=int(last.group("run")),
        successes=_int(last.group("ok")),
        failures=_int(last.group("fail")),
        errors=_int(last.group("err")),
    )


def build_test_command(port: int, host: str) -> list[str]:
    return ["test", f"--port={port}", f"--host={host}", constants.IMPORT_PATH_ARG]


def run_contract_tests(
    env: TestEnvironment,
    runtime: ContainerRuntime,
    bff: ServiceHandle | None = None,
    *,
    generative: bool = True,
) -> str:
    """
    Run the contract suite and return its complete textual report.

    The runner container is removed before this returns, on every path.
    """
    config = env.config
    bff_port = parse_port(config.bff_server.port, key="bff_server.port")
    bff_host = bff.alias if bff is not None else config.bff_server.host

    reports_dir = (env.workdir / config.reports_dir).resolve()
    reports_dir.mkdir(parents=True, exist_ok=True)
    mounts = {str(reports_dir): (constants.CONTAINER_REPORTS_PATH, "rw")}
    spec_path = (env.workdir / config.spec_file).resolve()
    if spec_path.exists():
        mounts[str(spec_path)] = (constants.CONTAINER_SPEC_PATH, "ro")

    name = env.container_name(RUNNER_BASE_NAME)
    container = runtime.run_container(
        config.contract_image,
        name=name,
        network=env.network_name,
        alias=constants.ALIAS_TEST_RUNNER,
        command=build_test_command(bff_port, bff_host),
        environment={
            constants.ENV_GENERATIVE_TESTS: "true" if generative else "false",
            constants.ENV_PROTOC_VERSION: config.protoc_version,
        },
        mounts=mounts,
    )
    try:
        wait_for_log(
            container,
            config.test_completion_markers,
            timeout=env.remaining(config.test_timeout),
            interval=config.poll_interval,
            clock=env.clock,
            service=constants.ALIAS_TEST_RUNNER,
        )
        printer = make_prefix_printer(constants.ALIAS_TEST_RUNNER) if env.echo_logs else None
        buf = io.StringIO()
        # blocks until the runner exits and closes its output stream
        stream = container.logs(stream=True, follow=True, stdout=True, stderr=True)
        for line in iter_lines(stream):
            buf.write(line)
            buf.write("\n")
            if printer:
                printer(line)
            if env.log_sink is not None:
                env.log_sink.offer_line(f"[{constants.ALIAS_TEST_RUNNER}] {line}")
        report = buf.getvalue()
    finally:
        logger.info(f"Removing test runner {name}")
        remove_container(container)

    summary = summarize_report(report)
    logger.info(
        f"Contract tests finished: run={summary.tests_run} "
        f"failures={summary.failures} errors={summary.errors}"
    )
    return report
