import argparse


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="BFF contract E2E harness (Docker)")
    parser.add_argument(
        "--expected-count",
        type=int,
        default=0,
        help="Number of messages the Kafka mock must observe on the expectation topic",
    )
    parser.add_argument("--config", type=str, help="YAML file overlaying the harness config")
    parser.add_argument("--env-file", type=str, help="Dotenv file with BFF_E2E_* settings")
    parser.add_argument("--log-config", type=str, help="YAML logging dictConfig")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall deadline for the run in seconds",
    )
    parser.add_argument(
        "--no-generative",
        dest="generative",
        action="store_false",
        help="Disable generative contract tests",
    )
    parser.add_argument(
        "--skip-verify",
        dest="verify",
        action="store_false",
        help="Do not verify Kafka expectations after the run",
    )
    parser.add_argument(
        "--reuse",
        action="store_true",
        help="Reuse a BFF container left over from a previous run",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not echo container output")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    args = parser.parse_args(argv)
    if args.expected_count < 0:
        parser.error("--expected-count must be >= 0")
    return args
