# Where: bff_e2e/runner/constants.py
# What: Stable names shared by launchers, runner and tests.
# Why: Keep container paths, aliases and env keys in one place.

ALIAS_DOMAIN_SERVICE = "order-api-mock"
ALIAS_BROKER_MOCK = "broker-mock"
ALIAS_BFF = "bff-service"
ALIAS_TEST_RUNNER = "contract-tests"

CONTAINER_APP_DIR = "/usr/src/app"
CONTAINER_SPEC_PATH = f"{CONTAINER_APP_DIR}/specmatic.yaml"
CONTAINER_REPORTS_PATH = f"{CONTAINER_APP_DIR}/build/reports/specmatic"
IMPORT_PATH_ARG = "--import-path=../"

DEFAULT_EXPECTATIONS_PATH = "_specmatic/expectations"
DEFAULT_VERIFICATION_PATH = "_specmatic/expectations/verification_status"
BARE_EXPECTATIONS_PATH = "_expectations"
BARE_VERIFICATION_PATH = "_expectations/verification_status"

# Environment consumed by the BFF container
ENV_DOMAIN_SERVER_HOST = "DOMAIN_SERVER_HOST"
ENV_DOMAIN_SERVER_PORT = "DOMAIN_SERVER_PORT"
ENV_KAFKA_HOST = "KAFKA_HOST"
ENV_KAFKA_PORT = "KAFKA_PORT"

# Environment consumed by the broker mock
ENV_KAFKA_EXTERNAL_HOST = "KAFKA_EXTERNAL_HOST"
ENV_KAFKA_EXTERNAL_PORT = "KAFKA_EXTERNAL_PORT"
ENV_KAFKA_API_PORT = "API_SERVER_PORT"

# Environment consumed by the contract runner
ENV_GENERATIVE_TESTS = "SPECMATIC_GENERATIVE_TESTS"
ENV_PROTOC_VERSION = "PROTOC_VERSION"

LABEL_MANAGED = "com.bff-e2e.managed"
LABEL_RUN_ID = "com.bff-e2e.run-id"
