"""
ContainerRuntime - thin boundary over the Docker Engine SDK.

Every create/start/build failure surfaces as LaunchError; callers never see
raw docker.errors exceptions from this module.
"""

import logging
import os
import urllib.parse
from typing import Any, Dict, List, Optional, Tuple

import docker
import docker.errors

from bff_e2e.runner import constants
from bff_e2e.runner.errors import LaunchError

logger = logging.getLogger("bff_e2e.runtime")


class ContainerRuntime:
    """
    Docker operations used by the launchers.

    - create_network() / remove_network()
    - run_container(): create on a network with an alias, then start
    - find_container(): lookup for container reuse
    - build_image(): build from a local context, returning the build log
    """

    def __init__(self, client: Optional[Any] = None, run_id: Optional[str] = None):
        if client is None:
            try:
                client = docker.from_env()
            except docker.errors.DockerException as e:
                raise LaunchError("docker daemon", e) from e
        self.client = client
        self.run_id = run_id
        self._host: Optional[str] = None

    def _labels(self) -> Dict[str, str]:
        labels = {constants.LABEL_MANAGED: "true"}
        if self.run_id:
            labels[constants.LABEL_RUN_ID] = self.run_id
        return labels

    def create_network(self, name: str) -> Any:
        try:
            network = self.client.networks.create(
                name, driver="bridge", labels=self._labels()
            )
        except docker.errors.DockerException as e:
            raise LaunchError(f"network {name}", e) from e
        logger.info(f"Created network {name}")
        return network

    def remove_network(self, network: Any) -> None:
        try:
            network.remove()
        except docker.errors.NotFound:
            return
        logger.info(f"Removed network {network.name}")

    def connect_network(self, network: Any, container: Any, alias: str) -> None:
        try:
            network.connect(container, aliases=[alias])
        except docker.errors.DockerException as e:
            raise LaunchError(container.name, e) from e
        logger.info(f"Connected {container.name} to {network.name} as {alias}")

    def disconnect_network(self, network: Any, container: Any) -> None:
        try:
            network.disconnect(container, force=True)
        except docker.errors.NotFound:
            return

    def find_container(self, name: str) -> Optional[Any]:
        try:
            return self.client.containers.get(name)
        except docker.errors.NotFound:
            return None

    def run_container(
        self,
        image: str,
        *,
        name: str,
        network: str,
        alias: str,
        command: Optional[List[str]] = None,
        environment: Optional[Dict[str, str]] = None,
        ports: Optional[List[str]] = None,
        mounts: Optional[Dict[str, Tuple[str, str]]] = None,
        pull: bool = True,
    ) -> Any:
        """
        Create and start a container joined to ``network`` as ``alias``.

        Args:
            ports: container port specs ("9000/tcp") published on random host ports
            mounts: host path -> (container path, "ro" | "rw")
        """
        volumes = {
            host_path: {"bind": bind, "mode": mode}
            for host_path, (bind, mode) in (mounts or {}).items()
        }
        try:
            container = self.client.containers.create(
                image,
                command=command,
                name=name,
                environment=environment or {},
                ports={spec: None for spec in ports or []},
                volumes=volumes,
                network=network,
                networking_config={
                    network: self.client.api.create_endpoint_config(aliases=[alias])
                },
                labels=self._labels(),
            )
        except docker.errors.ImageNotFound as e:
            if not pull:
                raise LaunchError(name, e) from e
            logger.info(f"Pulling image {image}...")
            try:
                self.client.images.pull(image)
            except docker.errors.DockerException as e:
                raise LaunchError(name, e) from e
            return self.run_container(
                image,
                name=name,
                network=network,
                alias=alias,
                command=command,
                environment=environment,
                ports=ports,
                mounts=mounts,
                pull=False,
            )
        except docker.errors.DockerException as e:
            raise LaunchError(name, e) from e

        try:
            container.start()
        except docker.errors.DockerException as e:
            # created but never started; do not leave it behind
            try:
                container.remove(force=True)
            except docker.errors.DockerException as cleanup_error:
                logger.warning(f"Failed to remove unstarted container {name}: {cleanup_error}")
            raise LaunchError(name, e) from e
        logger.info(f"Started container {name} ({image}) as {alias} on {network}")
        return container

    def start_existing(self, container: Any) -> Any:
        try:
            container.start()
        except docker.errors.DockerException as e:
            raise LaunchError(container.name, e) from e
        return container

    def build_image(self, context: str, *, dockerfile: str, tag: str) -> List[str]:
        """Build ``tag`` from ``context``; returns the build log lines."""
        logger.info(f"Building image {tag} from {context}")
        try:
            _image, chunks = self.client.images.build(
                path=context, dockerfile=dockerfile, tag=tag, rm=True
            )
        except docker.errors.BuildError as e:
            for line in _build_log_lines(e.build_log):
                logger.error(f"[build] {line}")
            raise LaunchError(f"image {tag}", e) from e
        except docker.errors.DockerException as e:
            raise LaunchError(f"image {tag}", e) from e
        lines = _build_log_lines(chunks)
        for line in lines:
            logger.debug(f"[build] {line}")
        return lines

    def reachable_host(self) -> str:
        """Address under which published ports are reachable from this process."""
        if self._host is None:
            self._host = resolve_docker_host(self.client.api.base_url)
        return self._host


def resolve_docker_host(base_url: str) -> str:
    override = os.environ.get("BFF_E2E_HOST_OVERRIDE") or os.environ.get(
        "TESTCONTAINERS_HOST_OVERRIDE"
    )
    if override:
        return override
    parsed = urllib.parse.urlsplit(base_url)
    if parsed.scheme in ("http", "https", "tcp") and parsed.hostname:
        return parsed.hostname
    return "localhost"


def _build_log_lines(chunks: Any) -> List[str]:
    lines: List[str] = []
    for chunk in chunks or []:
        if not isinstance(chunk, dict):
            continue
        text = chunk.get("stream") or chunk.get("error") or ""
        for line in text.splitlines():
            if line.strip():
                lines.append(line.rstrip())
    return lines
