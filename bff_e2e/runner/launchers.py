# Where: bff_e2e/runner/launchers.py
# What: Launchers for the domain stub, the broker mock and the BFF under test.
# Why: Encode start order, aliases and readiness for each service in one place.
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import docker.errors

from bff_e2e.runner import constants
from bff_e2e.runner.cleanup import remove_container
from bff_e2e.runner.errors import LaunchError, SequencingError
from bff_e2e.runner.expectations import ExpectationClient
from bff_e2e.runner.logging import ContainerLogStreamer, make_prefix_printer
from bff_e2e.runner.models import BrokerLaunch, ServiceHandle, TestEnvironment
from bff_e2e.runner.ports import container_port, mapped_port, parse_port
from bff_e2e.runner.readiness import wait_for_log
from bff_e2e.runner.runtime import ContainerRuntime

logger = logging.getLogger("bff_e2e.launchers")

STUB_BASE_NAME = "order-api-mock"
BROKER_BASE_NAME = "broker-mock"


def stream_logs(
    env: TestEnvironment, container: Any, label: str, *, since: float | None = None
) -> ContainerLogStreamer:
    printer = make_prefix_printer(label) if env.echo_logs else None
    streamer = ContainerLogStreamer(
        container, label, sink=env.log_sink, printer=printer, since=since
    ).start()
    env.teardown.push(f"logs:{label}", streamer.close)
    return streamer


def _await_ready(
    env: TestEnvironment,
    container: Any,
    markers: list[str],
    service: str,
    *,
    since: float | None = None,
) -> None:
    config = env.config
    wait_for_log(
        container,
        markers,
        timeout=env.remaining(config.startup_timeout),
        interval=config.poll_interval,
        clock=env.clock,
        service=service,
        since=since,
    )


def _spec_mount(env: TestEnvironment) -> dict[str, tuple[str, str]]:
    spec_path = (env.workdir / env.config.spec_file).resolve()
    if not spec_path.exists():
        logger.warning(f"Behaviour spec {spec_path} not found; starting without a mount")
        return {}
    return {str(spec_path): (constants.CONTAINER_SPEC_PATH, "ro")}


def _start_service(
    env: TestEnvironment,
    runtime: ContainerRuntime,
    *,
    image: str,
    name: str,
    alias: str,
    ports: list[str],
    markers: list[str],
    command: list[str] | None = None,
    environment: dict[str, str] | None = None,
    mounts: dict[str, tuple[str, str]] | None = None,
) -> Any:
    container = runtime.run_container(
        image,
        name=name,
        network=env.network_name,
        alias=alias,
        command=command,
        environment=environment,
        ports=ports,
        mounts=mounts,
    )
    # owned by the run from here on, whatever happens during readiness
    env.teardown.push_container(name, container)
    stream_logs(env, container, alias)
    _await_ready(env, container, markers, alias)
    return container


def start_domain_service(env: TestEnvironment, runtime: ContainerRuntime) -> ServiceHandle:
    """Start the stub that impersonates the BFF's downstream domain API."""
    config = env.config
    port_spec = container_port(config.backend.port, key="backend.port")
    alias = config.backend.host
    name = env.container_name(STUB_BASE_NAME)

    container = _start_service(
        env,
        runtime,
        image=config.contract_image,
        name=name,
        alias=alias,
        ports=[port_spec],
        markers=config.domain_service_markers,
        command=["stub", constants.IMPORT_PATH_ARG],
        mounts=_spec_mount(env),
    )
    handle = ServiceHandle(name, alias, container, mapped_port(container, port_spec))
    env.register_service(handle)
    return handle


def start_broker_mock(
    env: TestEnvironment,
    runtime: ContainerRuntime,
    client: ExpectationClient,
) -> BrokerLaunch:
    """
    Start the Kafka mock and record where its expectation API is reachable.

    The baseline expectation push right after startup is best-effort: a
    failure is logged and returned as ``BrokerLaunch.advisory``.
    """
    config = env.config
    broker = config.kafka_service
    data_spec = container_port(broker.port, key="kafka_service.port")
    api_spec = container_port(broker.api_port, key="kafka_service.api_port")
    alias = broker.host
    name = env.container_name(BROKER_BASE_NAME)

    container = _start_service(
        env,
        runtime,
        image=config.broker_image,
        name=name,
        alias=alias,
        ports=[data_spec, api_spec],
        markers=config.broker_markers,
        environment={
            constants.ENV_KAFKA_EXTERNAL_HOST: alias,
            constants.ENV_KAFKA_EXTERNAL_PORT: str(parse_port(broker.port)),
            constants.ENV_KAFKA_API_PORT: str(parse_port(broker.api_port)),
        },
        mounts=_spec_mount(env),
    )

    # published ports are only known once the runtime reports the container started
    api_port = mapped_port(container, api_spec)
    api_host = runtime.reachable_host()
    data_port = mapped_port(container, data_spec)
    env.record_kafka_api(api_host, api_port)
    logger.info(f"Kafka mock API reachable at {api_host}:{api_port}")

    handle = ServiceHandle(name, alias, container, data_port)
    env.register_service(handle)
    advisory = client.try_set_expectations(api_host, api_port, env.expected_message_count)
    return BrokerLaunch(handle=handle, advisory=advisory)


def _bff_image_tag(env: TestEnvironment) -> str:
    return f"{env.config.bff_repo}:{env.config.bff_tag}"


def _bff_environment(env: TestEnvironment) -> dict[str, str]:
    config = env.config
    return {
        constants.ENV_DOMAIN_SERVER_HOST: config.backend.host,
        constants.ENV_DOMAIN_SERVER_PORT: str(parse_port(config.backend.port)),
        constants.ENV_KAFKA_HOST: config.kafka_service.host,
        constants.ENV_KAFKA_PORT: str(parse_port(config.kafka_service.port)),
    }


def _reuse_bff(
    env: TestEnvironment, runtime: ContainerRuntime, container: Any, alias: str
) -> tuple[bool, float | None]:
    """
    Attach a leftover BFF container to this run.

    Returns ``(reused, restarted_at)``. ``reused`` is False when the container
    had to be removed and must be recreated. ``restarted_at`` is the wall-clock
    time of a restart, so readiness ignores the previous run's output.
    """
    if container.status not in ("running", "exited", "created"):
        logger.info(f"Container {container.name} in state {container.status}, removing...")
        try:
            remove_container(container)
        except docker.errors.DockerException as e:
            raise LaunchError(container.name, e) from e
        return False, None
    network = env.network
    runtime.connect_network(network, container, alias)
    # reused containers outlive the run; only detach them from its network
    env.teardown.push(
        f"network-endpoint:{container.name}",
        lambda: runtime.disconnect_network(network, container),
    )
    if container.status == "running":
        return True, None
    logger.info(f"Reuse: restarting container {container.name}...")
    restarted_at = time.time()
    runtime.start_existing(container)
    return True, restarted_at


def start_bff(env: TestEnvironment, runtime: ContainerRuntime) -> ServiceHandle:
    """
    Build and start the BFF under test, bound to the stub and broker aliases.

    With ``bff_reuse`` enabled the container keeps a fixed name and is reused
    across runs, so its state is not guaranteed to be fresh.
    """
    config = env.config
    port_spec = container_port(config.bff_server.port, key="bff_server.port")
    environment = _bff_environment(env)
    if env.network is None:
        raise SequencingError("BFF cannot start before the run network exists")
    env.require_service(config.backend.host)
    env.require_service(config.kafka_service.host)

    alias = config.bff_server.host
    if config.bff_reuse:
        name = config.bff_container_name
    else:
        name = env.container_name(config.bff_container_name)

    container = runtime.find_container(name) if config.bff_reuse else None
    reused = False
    if container is not None:
        stream_since = time.time()
        reused, restarted_at = _reuse_bff(env, runtime, container, alias)
    if reused:
        logger.info(f"Reusing BFF container {name}")
        stream_logs(env, container, alias, since=restarted_at or stream_since)
        _await_ready(env, container, config.bff_markers, alias, since=restarted_at)
    else:
        build_context = str(Path(env.workdir, config.build_context).resolve())
        runtime.build_image(build_context, dockerfile=config.dockerfile, tag=_bff_image_tag(env))
        container = runtime.run_container(
            _bff_image_tag(env),
            name=name,
            network=env.network_name,
            alias=alias,
            environment=environment,
            ports=[port_spec],
        )
        if not config.bff_reuse:
            env.teardown.push_container(name, container)
        else:
            network = env.network
            env.teardown.push(
                f"network-endpoint:{name}",
                lambda: runtime.disconnect_network(network, container),
            )
        stream_logs(env, container, alias)
        _await_ready(env, container, config.bff_markers, alias)

    handle = ServiceHandle(name, alias, container, mapped_port(container, port_spec))
    env.register_service(handle)
    return handle
