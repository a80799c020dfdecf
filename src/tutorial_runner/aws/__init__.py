"""AWS integration modules for Tutorial Runner.

This package provides the two ways a tutorial reaches AWS:
- The AWS CLI executor (JSON output parsed, errors classified)
- Boto3 client wrappers with async support
plus the shared exception hierarchy, retry logic with exponential backoff,
and environment checks run before a tutorial starts.

Example:
    >>> from tutorial_runner.aws import create_backend
    >>> from tutorial_runner.config import Settings
    >>>
    >>> backend = create_backend(Settings(backend="cli"), region="us-east-1")
    >>> vpc = await backend.call("ec2", "create_vpc", CidrBlock="10.0.0.0/16")
    >>> await backend.wait("ec2", "vpc_available", VpcIds=[vpc["Vpc"]["VpcId"]])
"""

from tutorial_runner.aws.backend import AWSBackend, CLIBackend, SDKBackend, create_backend
from tutorial_runner.aws.cli import AWSCLIExecutor, render_cli_command
from tutorial_runner.aws.client import (
    AWSClientWrapper,
    create_aws_client,
    execute_with_retry,
)
from tutorial_runner.aws.exceptions import (
    AWSError,
    CommandError,
    PermissionError,
    ResourceInUseError,
    ResourceNotFoundError,
    ServiceError,
    ThrottlingError,
    TimeoutError,
    ValidationError,
)

__all__ = [
    "AWSBackend",
    "AWSCLIExecutor",
    "AWSClientWrapper",
    "AWSError",
    "CLIBackend",
    "CommandError",
    "PermissionError",
    "ResourceInUseError",
    "ResourceNotFoundError",
    "SDKBackend",
    "ServiceError",
    "ThrottlingError",
    "TimeoutError",
    "ValidationError",
    "create_aws_client",
    "create_backend",
    "execute_with_retry",
    "render_cli_command",
]
