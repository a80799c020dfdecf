"""Error types shared by both AWS backends.

The CLI executor and the boto3 wrapper each translate their native failures
into these classes, keyed on the AWS error code. Tutorials and teardown
handlers therefore branch on the class, never on which backend was used.
"""

from typing import Any

from tutorial_runner.constants import (
    IN_USE_ERROR_CODES,
    NOT_FOUND_ERROR_CODES,
    NOT_FOUND_SUFFIXES,
    PERMISSION_ERROR_CODES,
    THROTTLING_ERROR_CODES,
    VALIDATION_ERROR_CODES,
)


class AWSError(Exception):
    """Root of every error raised while talking to AWS.

    Attributes:
        message: Text reported by AWS, or our own description.
        service: Service name such as ``neptune``.
        operation: Snake-case operation such as ``delete_db_cluster``.
        error_code: AWS error code, e.g. ``DBClusterNotFoundFault``. None when
            the failure happened before AWS answered.
        details: Extra context such as the HTTP status and request id.
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        operation: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.service = service
        self.operation = operation
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        labelled = (
            ("Service", self.service),
            ("Operation", self.operation),
            ("Code", self.error_code),
        )
        return " | ".join(
            [self.message, *(f"{label}: {value}" for label, value in labelled if value)]
        )


class ServiceError(AWSError):
    """An AWS failure that fits none of the narrower classes."""


class ThrottlingError(AWSError):
    """AWS asked us to slow down. Safe to retry after a pause."""


class ValidationError(AWSError):
    """Request parameters were rejected, by AWS or before sending."""


class ResourceNotFoundError(AWSError):
    """The addressed resource does not exist.

    During teardown this means the resource is already gone.
    """


class PermissionError(AWSError):
    """Credentials are missing, expired, or not allowed to perform the call."""


class TimeoutError(AWSError):
    """A request or a wait ran out of time."""


class ResourceInUseError(AWSError):
    """The resource cannot be changed yet.

    Typical causes are dependent resources that still exist (a security group
    referenced by an instance that is still terminating) or a resource in a
    transitional state. Teardown retries these.
    """


class CommandError(AWSError):
    """The AWS CLI exited badly without printing an AWS error.

    Attributes:
        exit_code: Process exit code.
        stderr: Captured standard error output.
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        operation: str | None = None,
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            service=service,
            operation=operation,
            details={"exit_code": exit_code, "stderr": stderr},
        )
        self.exit_code = exit_code
        self.stderr = stderr


def classify_error_code(error_code: str) -> type[AWSError]:
    """Map an AWS error code to the matching exception class.

    Args:
        error_code: Error code reported by AWS (e.g., 'DependencyViolation').

    Returns:
        The exception class for the code. ServiceError when nothing matches.

    Example:
        >>> classify_error_code("InvalidVpcID.NotFound")
        <class 'tutorial_runner.aws.exceptions.ResourceNotFoundError'>
        >>> classify_error_code("InvalidParameterValue")
        <class 'tutorial_runner.aws.exceptions.ValidationError'>
    """
    if error_code in THROTTLING_ERROR_CODES:
        return ThrottlingError

    if error_code in PERMISSION_ERROR_CODES:
        return PermissionError

    # Must come before the generic Invalid* check
    if error_code in NOT_FOUND_ERROR_CODES or error_code.endswith(NOT_FOUND_SUFFIXES):
        return ResourceNotFoundError

    if error_code in IN_USE_ERROR_CODES:
        return ResourceInUseError

    if error_code in VALIDATION_ERROR_CODES or error_code.startswith("Invalid"):
        return ValidationError

    return ServiceError


def build_error(
    error_code: str,
    message: str,
    service: str | None = None,
    operation: str | None = None,
    details: dict[str, Any] | None = None,
) -> AWSError:
    """Create an exception instance of the class matching an error code.

    Args:
        error_code: Error code reported by AWS.
        message: Error message reported by AWS.
        service: AWS service name. Defaults to None.
        operation: AWS operation name. Defaults to None.
        details: Additional error context. Defaults to None.

    Returns:
        Exception instance ready to be raised.
    """
    error_class = classify_error_code(error_code)
    return error_class(
        message,
        service=service,
        operation=operation,
        error_code=error_code,
        details=details,
    )
