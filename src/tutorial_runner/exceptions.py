"""Exceptions raised by the tutorial workflow itself.

AWS call failures are reported with the classes in
``tutorial_runner.aws.exceptions``. The classes here cover problems detected by
the runner: missing values in responses, resources that reach a failure state,
and an unusable local environment.
"""

from typing import Any


class TutorialError(Exception):
    """Base exception for tutorial workflow errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error context as dictionary.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize tutorial error.

        Args:
            message: Human-readable error message.
            details: Additional error context. Defaults to None.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ExtractionError(TutorialError):
    """Exception raised when an expected value is missing from a response.

    Example:
        >>> raise ExtractionError("Failed to extract VPC ID from response")
    """

    def __init__(self, message: str, expression: str | None = None) -> None:
        """Initialize extraction error.

        Args:
            message: Human-readable error message.
            expression: JMESPath expression that produced no value. Defaults to None.
        """
        super().__init__(message, details={"expression": expression})
        self.expression = expression


class ResourceFailedError(TutorialError):
    """Exception raised when a polled resource reaches a failure state."""

    def __init__(self, message: str, status: str, description: str | None = None) -> None:
        """Initialize resource failure error.

        Args:
            message: Human-readable error message.
            status: The failure status that was observed.
            description: Description of what was being waited for. Defaults to None.
        """
        super().__init__(message, details={"status": status, "description": description})
        self.status = status
        self.description = description


class PrerequisiteError(TutorialError):
    """Exception raised when the local environment cannot run a tutorial.

    Covers a missing AWS CLI executable, missing credentials and an
    unresolvable region.
    """


class TutorialOptionsError(TutorialError):
    """Exception raised when tutorial options fail validation."""
