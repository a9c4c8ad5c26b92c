"""
Shared fixtures for live scenarios.

These run against a real Docker daemon and a checkout of the BFF service.
Point BFF_E2E_WORKDIR at that checkout (or set it in .env.test).
"""

import os
from pathlib import Path

import docker
import docker.errors
import pytest
from dotenv import load_dotenv

from bff_e2e.runner.config import load_config

# Load .env.test (base/defaults only; the caller's environment wins).
env_file = Path(__file__).parent / ".env.test"
if env_file.exists():
    load_dotenv(env_file, override=False)


@pytest.fixture(scope="session")
def docker_available():
    try:
        client = docker.from_env()
        client.ping()
    except docker.errors.DockerException as e:
        pytest.skip(f"Docker daemon not reachable: {e}")
    client.close()


@pytest.fixture(scope="session")
def bff_workdir(docker_available):
    workdir = Path(os.environ.get("BFF_E2E_WORKDIR", Path.cwd()))
    config = load_config()
    dockerfile = workdir / config.build_context / config.dockerfile
    if not dockerfile.exists():
        pytest.skip(f"BFF build context not found: {dockerfile}")
    return workdir


@pytest.fixture
def live_config():
    return load_config(
        os.environ.get("BFF_E2E_CONFIG") or None,
        env_file=os.environ.get("BFF_E2E_ENV_FILE") or None,
    )
