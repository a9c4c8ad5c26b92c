# Where: bff_e2e/runner/expectations.py
# What: Client for the broker mock's expectation administration API.
# Why: Declare message-count expectations before a run and verify them after.
from __future__ import annotations

import logging
from typing import Any, Callable

import requests

from bff_e2e.runner import constants
from bff_e2e.runner.errors import TransportError, VerificationError
from bff_e2e.runner.models import AdvisoryError, TestEnvironment, VerificationResult

logger = logging.getLogger("bff_e2e.expectations")


class ExpectationClient:
    """
    Talks to ``POST /<expectations_path>`` and ``GET /<verification_path>``.

    Verification is poll-once: call it only after the workload that should
    produce the messages has finished. Retrying is left to the caller.
    """

    def __init__(
        self,
        topic: str,
        *,
        expectations_path: str = constants.DEFAULT_EXPECTATIONS_PATH,
        verification_path: str = constants.DEFAULT_VERIFICATION_PATH,
        timeout: float = 5.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.topic = topic
        self.expectations_path = expectations_path.strip("/")
        self.verification_path = verification_path.strip("/")
        self.timeout = timeout
        self.session_factory = session_factory

    @classmethod
    def from_config(cls, config: Any) -> "ExpectationClient":
        return cls(
            config.expectation_topic,
            expectations_path=config.expectations_path,
            verification_path=config.verification_path,
            timeout=config.http_timeout,
        )

    def _url(self, host: str, port: str | int, path: str) -> str:
        return f"http://{host}:{port}/{path}"

    def _session(self) -> requests.Session:
        session = self.session_factory()
        # the mock is always local; never route it via host proxy settings
        session.trust_env = False
        return session

    def build_payload(self, expected_count: int) -> dict[str, Any]:
        return {"expectations": [{"topic": self.topic, "count": int(expected_count)}]}

    def set_expectations(self, host: str, port: str | int, expected_count: int) -> None:
        """
        Declare ``expected_count`` messages on the topic.

        Only a 2xx reply acknowledges the call; the body is never read. A
        non-2xx reply is reported as TransportError, the same as a connection
        failure, since the mock did not accept the expectations.
        """
        url = self._url(host, port, self.expectations_path)
        payload = self.build_payload(expected_count)
        logger.info(f"Setting Kafka expectations at {url}: {payload}")
        try:
            with self._session() as session:
                response = session.post(url, json=payload, timeout=self.timeout)
                response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise TransportError(url, exc) from exc

    def try_set_expectations(
        self, host: str, port: str | int, expected_count: int
    ) -> AdvisoryError | None:
        """Best-effort variant: failures are logged and returned, not raised."""
        try:
            self.set_expectations(host, port, expected_count)
        except TransportError as exc:
            logger.warning(f"Baseline expectation push failed (continuing): {exc}")
            return AdvisoryError("set_expectations", exc)
        return None

    def verify_expectations(self, host: str, port: str | int) -> VerificationResult:
        url = self._url(host, port, self.verification_path)
        try:
            with self._session() as session:
                response = session.get(
                    url, headers={"Content-Type": "application/json"}, timeout=self.timeout
                )
                # a failed verification may come back as 4xx with a JSON body
                body = response.json()
        except requests.exceptions.RequestException as exc:
            raise TransportError(url, exc) from exc
        except ValueError as exc:
            raise TransportError(url, f"response is not JSON: {exc}") from exc

        logger.debug(f"Verification response body: {body}")
        if not isinstance(body, dict):
            raise TransportError(url, f"unexpected verification body: {body!r}")

        if body.get("success") is not True:
            errors = body.get("errors") or []
            if not isinstance(errors, list):
                errors = [errors]
            raise VerificationError(errors)

        logger.info("Kafka mock expectations were met successfully.")
        return VerificationResult(success=True, errors=[], body=body)


def set_kafka_expectations(env: TestEnvironment, client: ExpectationClient) -> None:
    host, port = env.kafka_api_address()
    client.set_expectations(host, port, env.expected_message_count)


def verify_kafka_expectations(env: TestEnvironment, client: ExpectationClient) -> VerificationResult:
    host, port = env.kafka_api_address()
    return client.verify_expectations(host, port)
