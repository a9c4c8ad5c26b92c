# Where: bff_e2e/runner/network.py
# What: Per-run Docker network provisioning.
# Why: Services address each other by alias instead of dynamic host ports.
from __future__ import annotations

import logging
from typing import Any

from bff_e2e.runner.errors import SequencingError
from bff_e2e.runner.models import TestEnvironment
from bff_e2e.runner.runtime import ContainerRuntime

logger = logging.getLogger("bff_e2e.network")


def network_name_for(env: TestEnvironment) -> str:
    return f"{env.config.network_prefix}-{env.run_id}"


def provision_network(env: TestEnvironment, runtime: ContainerRuntime) -> Any:
    if env.network is not None:
        raise SequencingError(f"network already provisioned: {env.network.name}")
    network = runtime.create_network(network_name_for(env))
    env.network = network
    # registered first so it is removed after every container
    env.teardown.push(f"network:{network.name}", lambda: runtime.remove_network(network))
    return network
