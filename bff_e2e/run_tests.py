#!/usr/bin/env python3
# Where: bff_e2e/run_tests.py
# What: Command-line entry point for a single BFF contract harness run.
# Why: Provide one place for setup, execution, verification and teardown.
import sys

from pydantic import ValidationError

from bff_e2e.runner.cli import parse_args
from bff_e2e.runner.config import load_config
from bff_e2e.runner.errors import ConfigurationError, LaunchError, TransportError, VerificationError
from bff_e2e.runner.expectations import ExpectationClient
from bff_e2e.runner.logging_config import setup_logging
from bff_e2e.runner.orchestrator import harness_environment, run_suite
from bff_e2e.runner.runtime import ContainerRuntime

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_LAUNCH = 3


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_config, verbose=args.verbose)

    overrides = {}
    if args.reuse:
        overrides["bff_reuse"] = True
    try:
        config = load_config(args.config, env_file=args.env_file, **overrides)
    except (ValidationError, ValueError, FileNotFoundError) as exc:
        print(f"[ERROR] Invalid harness configuration: {exc}")
        return EXIT_CONFIG

    client = ExpectationClient.from_config(config)
    try:
        with harness_environment(
            config,
            expected_message_count=args.expected_count,
            timeout=args.timeout,
            echo_logs=not args.quiet,
        ) as env:
            runtime = ContainerRuntime(run_id=env.run_id)
            result = run_suite(
                env,
                runtime,
                client,
                generative=args.generative,
                verify=args.verify,
            )
    except ConfigurationError as exc:
        print(f"[ERROR] {exc}")
        return EXIT_CONFIG
    except LaunchError as exc:
        print(f"[ERROR] {exc}")
        return EXIT_LAUNCH
    except (VerificationError, TransportError) as exc:
        print(f"[FAILED] {exc}")
        return EXIT_FAILED

    for advisory in result.advisories:
        print(f"[WARN] {advisory.operation} failed during startup: {advisory.error}")

    summary = result.summary
    print(
        f"Contract tests: run={summary.tests_run} successes={summary.successes} "
        f"failures={summary.failures} errors={summary.errors}"
    )
    if not summary.passed:
        print("[FAILED] Contract tests reported failures (see report above)")
        return EXIT_FAILED
    print("[PASSED] Contract tests passed")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
