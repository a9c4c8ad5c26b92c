"""
Harness configuration definition.

Loads configuration from environment variables (prefix ``BFF_E2E_``) and an
optional YAML overlay, and provides a Pydantic model.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bff_e2e.runner import constants


class ServiceEndpoint(BaseModel):
    """Host/port pair. Ports stay strings so the launchers own validation."""

    host: str
    port: str


class BrokerEndpoint(ServiceEndpoint):
    api_port: str = Field(default="8080", description="Administrative expectation API port")


class HarnessConfig(BaseSettings):
    """
    Configuration for a single harness run.
    """

    # ===== Service addressing =====
    backend: ServiceEndpoint = Field(
        default_factory=lambda: ServiceEndpoint(host=constants.ALIAS_DOMAIN_SERVICE, port="9000")
    )
    bff_server: ServiceEndpoint = Field(
        default_factory=lambda: ServiceEndpoint(host=constants.ALIAS_BFF, port="8080")
    )
    kafka_service: BrokerEndpoint = Field(
        default_factory=lambda: BrokerEndpoint(
            host=constants.ALIAS_BROKER_MOCK, port="9092", api_port="8080"
        )
    )

    # ===== Images =====
    contract_image: str = Field(default="specmatic/enterprise", description="Stub/test image")
    broker_image: str = Field(default="specmatic/specmatic-kafka", description="Broker mock image")
    protoc_version: str = Field(default="3.21.12", description="PROTOC_VERSION for the runner")

    # ===== BFF build =====
    build_context: str = Field(default=".", description="Build context of the service under test")
    dockerfile: str = Field(default="Dockerfile")
    bff_repo: str = Field(default="specmatic-bff-service-go-grpc")
    bff_tag: str = Field(default="latest")
    bff_container_name: str = Field(default="specmatic-order-bff-grpc-go")
    bff_reuse: bool = Field(default=False, description="Reuse an existing BFF container")

    # ===== Readiness markers =====
    domain_service_markers: list[str] = Field(default_factory=lambda: ["Stub server is running"])
    broker_markers: list[str] = Field(default_factory=lambda: ["AsyncMock has started"])
    bff_markers: list[str] = Field(default_factory=lambda: ["Starting gRPC server"])
    test_completion_markers: list[str] = Field(default_factory=lambda: ["Tests run:"])

    # ===== Expectation API =====
    expectation_topic: str = Field(default="product-queries")
    expectations_path: str = Field(default=constants.DEFAULT_EXPECTATIONS_PATH)
    verification_path: str = Field(default=constants.DEFAULT_VERIFICATION_PATH)

    # ===== Files =====
    spec_file: str = Field(default="specmatic.yaml", description="Mounted behaviour spec")
    reports_dir: str = Field(default="build/reports/specmatic")
    logs_dir: str = Field(default="build/logs")

    # ===== Timeouts (seconds) =====
    startup_timeout: float = Field(default=120.0)
    test_timeout: float = Field(default=600.0)
    poll_interval: float = Field(default=0.5)
    http_timeout: float = Field(default=5.0)

    network_prefix: str = Field(default="bff-e2e")

    model_config = SettingsConfigDict(
        env_prefix="BFF_E2E_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def read_yaml_overlay(path: str | Path) -> dict[str, Any]:
    overlay_path = Path(path)
    if not overlay_path.exists():
        raise FileNotFoundError(f"Harness config not found: {overlay_path}")
    with open(overlay_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Harness config must be a mapping: {overlay_path}")
    return data


def load_config(
    path: str | Path | None = None,
    *,
    env_file: str | None = None,
    **overrides: Any,
) -> HarnessConfig:
    """Build the config from env vars, then a YAML overlay, then keyword overrides."""
    values: dict[str, Any] = {}
    if path:
        values.update(read_yaml_overlay(path))
    values.update(overrides)
    if env_file:
        return HarnessConfig(_env_file=env_file, **values)
    return HarnessConfig(**values)
