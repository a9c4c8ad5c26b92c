# Where: bff_e2e/runner/tests/conftest.py
# What: In-memory fakes for the Docker SDK, the expectation API and the clock.
# Why: Exercise orchestration order and failure paths without a Docker daemon.
from __future__ import annotations

import itertools
from typing import Any

import docker.errors
import pytest
import requests

from bff_e2e.runner.config import HarnessConfig
from bff_e2e.runner.expectations import ExpectationClient
from bff_e2e.runner.models import TestEnvironment
from bff_e2e.runner.runtime import ContainerRuntime

BFF_IMAGE = "specmatic-bff-service-go-grpc:latest"

DEFAULT_LOGS = {
    "specmatic/enterprise:stub": "Loading spec\nStub server is running on http://0.0.0.0:9000\n",
    "specmatic/enterprise:test": (
        "Running contract tests\n"
        "Tests run: 3, Successes: 3, Failures: 0, Errors: 0\n"
    ),
    "specmatic/specmatic-kafka": "Starting Kafka\nAsyncMock has started\n",
    BFF_IMAGE: "Connecting\nStarting gRPC server on :8080\n",
}


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


class FakeLogStream:
    def __init__(self, data: bytes) -> None:
        self._chunks = iter([data[i : i + 7] for i in range(0, len(data), 7)])
        self.closed = False

    def __iter__(self) -> "FakeLogStream":
        return self

    def __next__(self) -> bytes:
        if self.closed:
            raise StopIteration
        return next(self._chunks)

    def close(self) -> None:
        self.closed = True


class FakeContainer:
    """
    ``logs`` is the output already present; ``start_logs`` is emitted by each
    ``start()``. Reads with ``since`` see only output emitted after a start.
    """

    def __init__(
        self,
        name: str,
        image: str,
        *,
        logs: str = "",
        port_map: dict[str, str] | None = None,
        status: str = "created",
        kwargs: dict[str, Any] | None = None,
        start_logs: str = "",
    ) -> None:
        self.name = name
        self.image = image
        self.log_text = logs
        self.start_logs = start_logs
        self.fresh_text = ""
        self.status = status
        self.kwargs = kwargs or {}
        self.started = False
        self.stopped = False
        self.removed = False
        self.fail_start = False
        self.fail_remove = False
        self.log_calls: list[dict[str, Any]] = []
        self.streams: list[FakeLogStream] = []
        ports = {spec: [{"HostIp": "0.0.0.0", "HostPort": hp}] for spec, hp in (port_map or {}).items()}
        self.attrs: dict[str, Any] = {"NetworkSettings": {"Ports": ports}}

    def start(self) -> None:
        if self.fail_start:
            raise docker.errors.APIError(f"cannot start {self.name}")
        self.started = True
        self.status = "running"
        self.fresh_text += self.start_logs

    def reload(self) -> None:
        return None

    def logs(self, stdout=True, stderr=True, stream=False, follow=False, since=None):
        self.log_calls.append({"stream": stream, "follow": follow, "since": since})
        text = self.fresh_text if since is not None else self.log_text + self.fresh_text
        data = text.encode("utf-8")
        if stream:
            log_stream = FakeLogStream(data)
            self.streams.append(log_stream)
            return log_stream
        return data

    def stop(self, timeout: int = 10) -> None:
        self.stopped = True
        self.status = "exited"

    def remove(self, force: bool = False, v: bool = False) -> None:
        if self.fail_remove:
            raise docker.errors.APIError(f"cannot remove {self.name}")
        self.removed = True


class FakeNetwork:
    def __init__(self, name: str) -> None:
        self.name = name
        self.removed = False
        self.connected: list[tuple[str, list[str]]] = []
        self.disconnected: list[str] = []

    def remove(self) -> None:
        self.removed = True

    def connect(self, container, aliases=None) -> None:
        self.connected.append((container.name, list(aliases or [])))

    def disconnect(self, container, force=False) -> None:
        self.disconnected.append(container.name)


class _Containers:
    def __init__(self, client: "FakeDockerClient") -> None:
        self.client = client
        self.by_name: dict[str, FakeContainer] = {}
        self.created: list[FakeContainer] = []
        self._ports = itertools.count(49153)

    def create(self, image, command=None, **kwargs) -> FakeContainer:
        if image in self.client.fail_create:
            raise docker.errors.APIError(f"cannot create {image}")
        key = image
        if command and image == "specmatic/enterprise":
            key = f"{image}:{command[0]}"
        port_map = {spec: str(next(self._ports)) for spec in kwargs.get("ports") or {}}
        container = FakeContainer(
            kwargs["name"],
            image,
            logs=self.client.logs.get(key, ""),
            port_map=port_map,
            kwargs={"command": command, **kwargs},
        )
        container.fail_start = image in self.client.fail_start
        container.fail_remove = image in self.client.fail_remove
        self.by_name[container.name] = container
        self.created.append(container)
        return container

    def get(self, name: str) -> FakeContainer:
        if name not in self.by_name:
            raise docker.errors.NotFound(f"No such container: {name}")
        return self.by_name[name]

    def named(self, prefix: str) -> FakeContainer:
        matches = [c for c in self.created if c.name.startswith(prefix)]
        assert matches, f"no container created with prefix {prefix}"
        return matches[-1]


class _Networks:
    def __init__(self) -> None:
        self.created: list[FakeNetwork] = []

    def create(self, name, driver="bridge", labels=None) -> FakeNetwork:
        network = FakeNetwork(name)
        self.created.append(network)
        return network


class _Images:
    def __init__(self) -> None:
        self.builds: list[dict[str, Any]] = []
        self.pulls: list[str] = []

    def build(self, **kwargs):
        self.builds.append(kwargs)
        return object(), [{"stream": "Step 1/2 : FROM golang\n"}, {"stream": "Successfully built\n"}]

    def pull(self, image):
        self.pulls.append(image)


class _Api:
    base_url = "http+docker://localhost"

    def create_endpoint_config(self, aliases=None) -> dict[str, Any]:
        return {"Aliases": list(aliases or [])}


class FakeDockerClient:
    def __init__(self) -> None:
        self.logs = dict(DEFAULT_LOGS)
        self.fail_create: set[str] = set()
        self.fail_start: set[str] = set()
        self.fail_remove: set[str] = set()
        self.containers = _Containers(self)
        self.networks = _Networks()
        self.images = _Images()
        self.api = _Api()


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeKafkaMockApi:
    """Behaves like the mock's admin API: counts messages against expectations."""

    def __init__(self) -> None:
        self.expectations: dict[str, int] = {}
        self.observed: dict[str, int] = {}
        self.posts: list[tuple[str, Any]] = []
        self.gets: list[str] = []
        self.sessions: list["FakeSession"] = []
        self.fail = False
        self.post_status = 200

    def consume(self, topic: str, count: int) -> None:
        self.observed[topic] = self.observed.get(topic, 0) + count

    def verification_body(self) -> dict[str, Any]:
        errors = []
        for topic, expected in self.expectations.items():
            actual = self.observed.get(topic, 0)
            if actual != expected:
                errors.append({"topic": topic, "expected": expected, "actual": actual})
        return {"success": not errors, "errors": errors}

    def session(self) -> "FakeSession":
        session = FakeSession(self)
        self.sessions.append(session)
        return session


class FakeSession:
    def __init__(self, api: FakeKafkaMockApi) -> None:
        self.api = api
        self.trust_env = True

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> bool:
        return False

    def post(self, url, json=None, timeout=None) -> FakeResponse:
        if self.api.fail:
            raise requests.ConnectionError("connection refused")
        self.api.posts.append((url, json))
        if self.api.post_status < 400:
            for item in json["expectations"]:
                self.api.expectations[item["topic"]] = item["count"]
        return FakeResponse(self.api.post_status, {})

    def get(self, url, headers=None, timeout=None) -> FakeResponse:
        if self.api.fail:
            raise requests.ConnectionError("connection refused")
        self.api.gets.append(url)
        return FakeResponse(200, self.api.verification_body())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def docker_client() -> FakeDockerClient:
    return FakeDockerClient()


@pytest.fixture
def runtime(docker_client, monkeypatch) -> ContainerRuntime:
    monkeypatch.delenv("BFF_E2E_HOST_OVERRIDE", raising=False)
    monkeypatch.delenv("TESTCONTAINERS_HOST_OVERRIDE", raising=False)
    return ContainerRuntime(client=docker_client, run_id="t1")


@pytest.fixture
def config() -> HarnessConfig:
    return HarnessConfig(poll_interval=1.0, startup_timeout=10.0, test_timeout=30.0)


@pytest.fixture
def kafka_api() -> FakeKafkaMockApi:
    return FakeKafkaMockApi()


@pytest.fixture
def expectation_client(config, kafka_api) -> ExpectationClient:
    return ExpectationClient(
        config.expectation_topic,
        expectations_path=config.expectations_path,
        verification_path=config.verification_path,
        session_factory=kafka_api.session,
    )


@pytest.fixture
def env(config, clock, tmp_path) -> TestEnvironment:
    environment = TestEnvironment(
        config=config,
        expected_message_count=3,
        run_id="t1",
        workdir=tmp_path,
        clock=clock,
        echo_logs=False,
    )
    yield environment
    environment.teardown.close()
