"""Boto3 access for the SDK backend.

boto3 is synchronous, so every request and every waiter runs in the event
loop's default executor. Failures surface as the classes from
``tutorial_runner.aws.exceptions``, the same ones the CLI executor raises, so
tutorials never see a botocore exception.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, Final, TypeVar

import boto3
from botocore.client import BaseClient
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    ParamValidationError,
    PartialCredentialsError,
    WaiterError,
)

from tutorial_runner.aws.exceptions import (
    AWSError,
    PermissionError,
    ServiceError,
    ThrottlingError,
    TimeoutError,
    ValidationError,
    build_error,
)

logger: Final = logging.getLogger(__name__)

T = TypeVar("T")

_TIMEOUT_MARKERS: Final = ("timed out", "timeout")


class AWSClientWrapper:
    """One boto3 service client behind an async interface.

    Attributes:
        service_name: boto3 service name, e.g. ``neptune``.
        region: Region the client talks to, or None for the configured default.

    Example:
        >>> neptune = AWSClientWrapper("neptune", region="us-east-1")
        >>> await neptune.call("describe_db_clusters", DBClusterIdentifier="tut-db")
        >>> await neptune.wait("db_instance_available", DBInstanceIdentifier="tut-db-1")
    """

    def __init__(
        self,
        service_name: str,
        region: str | None = None,
        session: boto3.session.Session | None = None,
        **kwargs: Any,
    ) -> None:
        """Create the underlying boto3 client.

        Args:
            service_name: boto3 service name.
            region: Region name. Defaults to None.
            session: Session holding a named profile. The module level
                ``boto3.client`` is used when omitted.
            **kwargs: Extra ``client()`` arguments such as ``endpoint_url``.
        """
        self.service_name = service_name
        self.region = region
        if session is None:
            self._client: BaseClient = boto3.client(service_name, region_name=region, **kwargs)
        else:
            self._client = session.client(service_name, region_name=region, **kwargs)
        logger.debug(f"boto3 {service_name} client ready ({region or 'default region'})")

    async def call(self, operation: str, **kwargs: Any) -> Any:
        """Invoke one API operation.

        Args:
            operation: Snake-case boto3 method name, e.g. ``create_broker``.
            **kwargs: Request parameters.

        Returns:
            The response dictionary without ``ResponseMetadata``.

        Raises:
            AWSError: The subclass matching the AWS error code. Locally
                rejected parameters and unknown methods become ValidationError,
                missing credentials PermissionError, a botocore timeout
                TimeoutError, any other botocore failure ServiceError.
        """
        method = getattr(self._client, operation, None)
        if method is None:
            raise ValidationError(
                f"Unknown operation {operation} for {self.service_name}",
                service=self.service_name,
                operation=operation,
            )

        logger.debug(f"{self.service_name}.{operation}({', '.join(kwargs)})")
        try:
            response = await self._off_loop(partial(method, **kwargs))
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, operation) from e
        except Exception as e:
            logger.error(f"{self.service_name}.{operation} raised {type(e).__name__}: {e}")
            raise ServiceError(
                f"Unexpected error during {operation}: {e}",
                service=self.service_name,
                operation=operation,
            ) from e

        if isinstance(response, dict):
            response.pop("ResponseMetadata", None)
        return response

    async def wait(
        self,
        waiter_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> None:
        """Block until a boto3 waiter reports success.

        ``delay`` and ``max_attempts`` override the waiter's own cadence and
        are sent as ``WaiterConfig``.

        Raises:
            ValidationError: If the service has no waiter by that name.
            TimeoutError: If the waiter runs out of attempts or reaches a
                failure state without an AWS error.
            AWSError: The classified error when the waiter's last response
                carried one.
        """
        config = {
            key: value
            for key, value in (("Delay", delay), ("MaxAttempts", max_attempts))
            if value is not None
        }
        if config:
            kwargs["WaiterConfig"] = config

        try:
            waiter = self._client.get_waiter(waiter_name)
        except ValueError as e:
            raise ValidationError(
                str(e), service=self.service_name, operation=waiter_name
            ) from e

        logger.debug(f"Waiting on {self.service_name}.{waiter_name}")
        try:
            await self._off_loop(partial(waiter.wait, **kwargs))
        except WaiterError as e:
            raise self._waiter_failure(e, waiter_name) from e
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, waiter_name) from e

    def get_client(self) -> BaseClient:
        """Return the raw boto3 client. Its errors are not translated."""
        logger.warning(f"Handing out the raw {self.service_name} client")
        return self._client

    @staticmethod
    async def _off_loop(func: Callable[[], T]) -> T:
        return await asyncio.get_running_loop().run_in_executor(None, func)

    def _translate(self, error: Exception, operation: str) -> AWSError:
        """Map a botocore failure onto the exception hierarchy."""
        where = f"{self.service_name}.{operation}"

        if isinstance(error, ClientError):
            reported = error.response.get("Error", {})
            metadata = error.response.get("ResponseMetadata", {})
            code = reported.get("Code", "Unknown")
            message = reported.get("Message", str(error))
            logger.warning(f"{where} rejected with {code}: {message}")
            return build_error(
                code,
                message,
                service=self.service_name,
                operation=operation,
                details={
                    "error_code": code,
                    "http_status": metadata.get("HTTPStatusCode"),
                    "request_id": metadata.get("RequestId"),
                },
            )

        text = str(error)
        logger.error(f"{where} failed before AWS answered: {text}")
        if isinstance(error, ParamValidationError):
            return ValidationError(text, service=self.service_name, operation=operation)
        if isinstance(error, NoCredentialsError | PartialCredentialsError):
            return PermissionError(text, service=self.service_name, operation=operation)
        if any(marker in text.lower() for marker in _TIMEOUT_MARKERS):
            return TimeoutError(
                f"Operation {operation} timed out",
                service=self.service_name,
                operation=operation,
            )
        return ServiceError(
            f"AWS operation failed: {text}", service=self.service_name, operation=operation
        )

    def _waiter_failure(self, error: WaiterError, waiter_name: str) -> AWSError:
        reported = (error.last_response or {}).get("Error", {})
        if reported.get("Code"):
            return build_error(
                reported["Code"],
                reported.get("Message", str(error)),
                service=self.service_name,
                operation=waiter_name,
            )
        reason = error.kwargs.get("reason", error)
        return TimeoutError(
            f"Waiter {waiter_name} failed: {reason}",
            service=self.service_name,
            operation=waiter_name,
        )


def create_aws_client(
    service_name: str,
    region: str | None = None,
    session: boto3.session.Session | None = None,
    **kwargs: Any,
) -> AWSClientWrapper:
    """Build an ``AWSClientWrapper``; arguments are passed through unchanged."""
    return AWSClientWrapper(service_name, region, session=session, **kwargs)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    exponential_backoff: bool = True,
) -> T:
    """Await ``operation`` again after transient AWS failures.

    Throttling, 5xx responses and service errors without an AWS code are
    transient. Anything else, including a missing resource or a resource
    still in use, propagates on first sight; teardown has its own retry loop
    for the latter.

    Args:
        operation: Zero-argument coroutine function issuing the request.
        max_retries: Retries after the first attempt. Defaults to 3.
        base_delay: Seconds before the first retry. Defaults to 1.0.
        exponential_backoff: Double the pause after every retry. Defaults to True.

    Returns:
        Whatever ``operation`` returns on its first successful attempt.

    Raises:
        AWSError: The first non-transient failure, or the last transient one
            once retries are used up.

    Example:
        >>> await execute_with_retry(lambda: mq.call("describe_broker", BrokerId="b-1"))
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except AWSError as e:
            if attempt >= max_retries or not _is_transient(e):
                if attempt:
                    logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                raise
            pause = base_delay * 2**attempt if exponential_backoff else base_delay
            attempt += 1
            logger.warning(
                f"{type(e).__name__} on attempt {attempt}/{max_retries + 1}, "
                f"retrying in {pause:.1f}s"
            )
            await asyncio.sleep(pause)


def _is_transient(error: AWSError) -> bool:
    if isinstance(error, ThrottlingError):
        return True
    if not isinstance(error, ServiceError):
        return False
    if error.error_code is None:
        return True
    http_status = error.details.get("http_status")
    return isinstance(http_status, int) and http_status >= 500
