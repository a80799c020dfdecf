"""Constants used throughout Tutorial Runner.

This module contains application constants that do not depend on runtime
configuration or environment variables. For environment-based configuration,
see the config module.
"""

from typing import Final

# =============================================================================
# Resource Naming
# =============================================================================

DEFAULT_RESOURCE_PREFIX: Final[str] = "tut"
"""Prefix prepended to every generated resource name."""

DEFAULT_SUFFIX_LENGTH: Final[int] = 8
"""Length of the random suffix that makes resource names unique per run."""

DEFAULT_PASSWORD_LENGTH: Final[int] = 20
"""Length of generated broker and database passwords."""

PASSWORD_SYMBOLS: Final[str] = "!#$%^&*()_+"
"""Symbols allowed in generated passwords.

Excludes characters that AWS services commonly reject in credentials
(``@``, ``/``, ``"`` and spaces).
"""

# =============================================================================
# Polling
# =============================================================================

DEFAULT_POLL_INTERVAL: Final[float] = 10.0
"""Default interval in seconds between status polls."""

DEFAULT_POLL_TIMEOUT: Final[float] = 900.0
"""Default maximum time in seconds to wait for a status to be reached."""

QUERY_POLL_INTERVAL: Final[float] = 2.0
"""Polling interval in seconds for short-lived operations (Athena queries)."""

IAM_PROPAGATION_DELAY: Final[float] = 10.0
"""Seconds to wait for a new IAM role to become usable by other services."""

# =============================================================================
# Cleanup
# =============================================================================

DEFAULT_CLEANUP_RETRY_ATTEMPTS: Final[int] = 3
"""Attempts for deletions that fail because the resource is still in use."""

DEFAULT_CLEANUP_RETRY_DELAY: Final[float] = 10.0
"""Seconds between attempts for in-use deletions."""

CLEANUP_BANNER: Final[str] = "CLEANUP CONFIRMATION"
"""Heading printed before the cleanup question."""

CLEANUP_QUESTION: Final[str] = "Do you want to clean up all created resources? (y/n): "
"""Question asked after a tutorial finishes with resources still in place."""

CLEANUP_ERROR_QUESTION: Final[str] = (
    "An error occurred. Do you want to clean up all created resources? (y/n): "
)
"""Question asked after a tutorial fails with resources still in place."""

AFFIRMATIVE_ANSWERS: Final[tuple[str, ...]] = ("y", "yes")
"""Answers accepted as confirmation (compared case-insensitively)."""

# =============================================================================
# AWS CLI
# =============================================================================

LEGACY_ERROR_TOKEN: Final[str] = "error"
"""Substring the original tutorial scripts searched for to detect failures."""

CLI_SERVICE_NAMES: Final[dict[str, str]] = {
    "s3": "s3api",
    "config": "configservice",
}
"""SDK service names whose AWS CLI command name differs."""

CLI_NOT_FOUND_EXIT_CODE: Final[int] = 127
"""Exit code reported when the AWS CLI executable cannot be started."""

CLI_WAITER_FAILED_EXIT_CODE: Final[int] = 255
"""Exit code the AWS CLI returns when a waiter gives up."""

# =============================================================================
# AWS Error Codes
# =============================================================================

THROTTLING_ERROR_CODES: Final[frozenset[str]] = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "RequestThrottled",
        "SlowDown",
    }
)
"""Error codes indicating the request was rate limited."""

PERMISSION_ERROR_CODES: Final[frozenset[str]] = frozenset(
    {
        "UnauthorizedOperation",
        "AccessDenied",
        "AccessDeniedException",
        "UnrecognizedClientException",
        "InvalidClientTokenId",
        "ExpiredToken",
        "ExpiredTokenException",
        "AuthFailure",
    }
)
"""Error codes indicating missing permissions or invalid credentials."""

NOT_FOUND_ERROR_CODES: Final[frozenset[str]] = frozenset(
    {
        "NoSuchEntity",
        "NoSuchBucket",
        "NoSuchKey",
        "InvalidInstanceID.Malformed",
        "StateMachineDoesNotExist",
        "ExecutionDoesNotExist",
        "NoSuchConfigurationRecorderException",
        "NoSuchDeliveryChannelException",
        "ServiceNotActiveException",
    }
)
"""Error codes for missing resources that do not follow the *NotFound pattern."""

NOT_FOUND_SUFFIXES: Final[tuple[str, ...]] = (
    "NotFound",
    "NotFoundException",
    "NotFoundFault",
)
"""Error code suffixes indicating a missing resource."""

IN_USE_ERROR_CODES: Final[frozenset[str]] = frozenset(
    {
        "DependencyViolation",
        "ResourceInUseException",
        "ResourceInUse",
        "DeleteConflict",
        "DeleteConflictException",
        "BucketNotEmpty",
        "InvalidDBClusterStateFault",
        "InvalidDBInstanceStateFault",
        "InvalidDBSubnetGroupStateFault",
        "VolumeInUse",
        "IncorrectState",
        "ConflictException",
        "ClusterContainsServicesException",
        "ClusterContainsTasksException",
        "InvalidOperationException",
    }
)
"""Error codes indicating a resource cannot be deleted yet.

These usually clear once dependent resources have finished deleting, so
teardown retries them.
"""

VALIDATION_ERROR_CODES: Final[frozenset[str]] = frozenset(
    {
        "ValidationError",
        "ValidationException",
        "InvalidParameterValue",
        "InvalidParameterCombination",
        "InvalidParameterException",
        "InvalidRequestException",
        "MissingParameter",
    }
)
"""Error codes for rejected request parameters."""
