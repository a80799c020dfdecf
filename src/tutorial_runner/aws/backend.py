"""Execution backends for AWS calls.

Tutorials talk to AWS through an ``AWSBackend``: either the AWS CLI (what
the tutorials teach) or boto3 directly. Both take boto3-style service,
operation and parameter names and return parsed responses.
"""

import logging
from typing import Any, Final, Literal, Protocol, runtime_checkable

import boto3

from tutorial_runner.aws.cli import AWSCLIExecutor
from tutorial_runner.aws.client import AWSClientWrapper, create_aws_client, execute_with_retry
from tutorial_runner.config.settings import Settings

logger: Final = logging.getLogger(__name__)


@runtime_checkable
class AWSBackend(Protocol):
    """Interface shared by the CLI and SDK backends."""

    name: str
    region: str | None

    async def call(self, service: str, operation: str, **params: Any) -> dict[str, Any]:
        """Execute an operation and return the parsed response."""
        ...

    async def wait(
        self,
        service: str,
        waiter_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
        **params: Any,
    ) -> None:
        """Run a service waiter until it succeeds."""
        ...


class CLIBackend:
    """Backend that shells out to the AWS CLI."""

    name: Literal["cli"] = "cli"

    def __init__(
        self,
        executor: AWSCLIExecutor,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
    ) -> None:
        self.executor = executor
        self.region = executor.region
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    async def call(self, service: str, operation: str, **params: Any) -> dict[str, Any]:
        return await execute_with_retry(
            lambda: self.executor.call(service, operation, **params),
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )

    async def wait(
        self,
        service: str,
        waiter_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
        **params: Any,
    ) -> None:
        await self.executor.wait(
            service, waiter_name, delay=delay, max_attempts=max_attempts, **params
        )


class SDKBackend:
    """Backend that calls AWS through boto3 clients.

    One ``AWSClientWrapper`` is created per service on first use and reused
    for the rest of the run.
    """

    name: Literal["sdk"] = "sdk"

    def __init__(
        self,
        region: str | None = None,
        profile: str | None = None,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
    ) -> None:
        self.region = region
        self.profile = profile
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._clients: dict[str, AWSClientWrapper] = {}
        self._session: boto3.session.Session | None = None

    def client(self, service: str) -> AWSClientWrapper:
        """Get (or create) the client wrapper for a service.

        Args:
            service: AWS service name.

        Returns:
            Cached AWSClientWrapper for the service.
        """
        if service not in self._clients:
            if self.profile and self._session is None:
                self._session = boto3.session.Session(profile_name=self.profile)
            self._clients[service] = create_aws_client(
                service, region=self.region, session=self._session
            )
        return self._clients[service]

    async def call(self, service: str, operation: str, **params: Any) -> dict[str, Any]:
        client = self.client(service)
        result = await execute_with_retry(
            lambda: client.call(operation, **params),
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )
        return result if isinstance(result, dict) else {"Result": result}

    async def wait(
        self,
        service: str,
        waiter_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
        **params: Any,
    ) -> None:
        await self.client(service).wait(
            waiter_name, delay=delay, max_attempts=max_attempts, **params
        )


def create_backend(settings: Settings, region: str | None = None) -> AWSBackend:
    """Create the backend selected in settings.

    Args:
        settings: Application settings.
        region: Resolved region. Defaults to settings.aws_region.

    Returns:
        CLIBackend or SDKBackend.

    Example:
        >>> backend = create_backend(Settings(backend="sdk"), region="us-west-2")
        >>> backend.name
        'sdk'
    """
    region = region or settings.aws_region

    if settings.backend == "sdk":
        logger.debug(f"Using boto3 backend for region {region or 'default'}")
        return SDKBackend(
            region=region,
            profile=settings.aws_profile,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
        )

    logger.debug(
        f"Using AWS CLI backend ({settings.aws_cli_path}) for region {region or 'default'}"
    )
    executor = AWSCLIExecutor(
        cli_path=settings.aws_cli_path,
        region=region,
        profile=settings.aws_profile,
        strict_error_scan=settings.strict_error_scan,
    )
    return CLIBackend(
        executor,
        max_retries=settings.max_retries,
        retry_base_delay=settings.retry_base_delay,
    )
