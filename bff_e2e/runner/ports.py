# Where: bff_e2e/runner/ports.py
# What: Port validation and host port lookup for launched containers.
# Why: Reject malformed configuration before any container exists.
from __future__ import annotations

from typing import Any

from bff_e2e.runner.errors import ConfigurationError, LaunchError

MIN_PORT = 1
MAX_PORT = 65535


def parse_port(value: Any, *, key: str = "port") -> int:
    if isinstance(value, bool):
        raise ConfigurationError(key, value, "not a port number")
    if isinstance(value, int):
        port = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise ConfigurationError(key, value, "not a port number")
        port = int(text)
    if not MIN_PORT <= port <= MAX_PORT:
        raise ConfigurationError(key, value, f"must be between {MIN_PORT} and {MAX_PORT}")
    return port


def container_port(value: Any, proto: str = "tcp", *, key: str = "port") -> str:
    return f"{parse_port(value, key=key)}/{proto}"


def mapped_port(container: Any, port_spec: str) -> str:
    """Return the host port Docker bound to ``port_spec`` (e.g. ``"9000/tcp"``)."""
    container.reload()
    ports = container.attrs.get("NetworkSettings", {}).get("Ports") or {}
    bindings = ports.get(port_spec) or []
    for binding in bindings:
        host_port = binding.get("HostPort")
        if host_port:
            return str(host_port)
    raise LaunchError(container.name, f"no host port bound for {port_spec}")
