"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from tutorial_runner.config.settings import Settings, get_settings
from tutorial_runner.utils.audit_logger import get_audit_logger
from tutorial_runner.workflow.prompts import ConfirmationPrompt

SETTINGS_ENV_VARS = [name.upper() for name in Settings.model_fields]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep tests independent of the caller's environment and .env file."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    get_audit_logger.cache_clear()
    yield
    get_settings.cache_clear()
    get_audit_logger.cache_clear()


@pytest.fixture
def sample_region() -> str:
    """Provide a sample AWS region for testing.

    Returns:
        AWS region name.
    """
    return "us-east-1"


@pytest.fixture
def settings(tmp_path: Path, sample_region: str) -> Settings:
    """Settings with no delays, logging into the test directory."""
    return Settings(
        aws_region=sample_region,
        log_dir=str(tmp_path / "logs"),
        poll_interval=0,
        poll_timeout=5,
        retry_base_delay=0,
        cleanup_retry_attempts=3,
        cleanup_retry_delay=0,
    )


class FakeBackend:
    """Scripted in-memory backend.

    Responses are registered per (service, operation). A list of responses
    is consumed in order and the last one repeats. A response may be a dict,
    an exception instance (raised) or a callable taking the parameters.
    """

    name = "fake"

    def __init__(self, region: str | None = "us-east-1") -> None:
        self.region = region
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.waits: list[tuple[str, str, dict[str, Any]]] = []
        self._responses: dict[tuple[str, str], list[Any]] = {
            ("sts", "get_caller_identity"): [
                {
                    "Account": "123456789012",
                    "Arn": "arn:aws:iam::123456789012:user/tester",
                    "UserId": "AIDATEST",
                }
            ]
        }
        self._wait_errors: dict[tuple[str, str], Exception] = {}

    def on(self, service: str, operation: str, *responses: Any) -> "FakeBackend":
        """Register responses for an operation."""
        self._responses[(service, operation)] = list(responses)
        return self

    def fail_wait(self, service: str, waiter_name: str, error: Exception) -> "FakeBackend":
        """Make a waiter raise an error."""
        self._wait_errors[(service, waiter_name)] = error
        return self

    def operations(self) -> list[tuple[str, str]]:
        """(service, operation) pairs called so far, in order."""
        return [(service, operation) for service, operation, _ in self.calls]

    async def call(self, service: str, operation: str, **params: Any) -> dict[str, Any]:
        self.calls.append((service, operation, params))
        queue = self._responses.get((service, operation))
        if not queue:
            return {}
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(params)
        return response

    async def wait(
        self,
        service: str,
        waiter_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
        **params: Any,
    ) -> None:
        self.waits.append((service, waiter_name, params))
        error = self._wait_errors.get((service, waiter_name))
        if error is not None:
            raise error


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Provide a scripted fake backend."""
    return FakeBackend()


@pytest.fixture
def answer() -> Callable[[bool | None], ConfirmationPrompt]:
    """Factory for prompts with a fixed answer."""

    def factory(value: bool | None) -> ConfirmationPrompt:
        return ConfirmationPrompt(auto_answer=value)

    return factory
