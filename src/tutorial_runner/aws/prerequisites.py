"""Environment checks performed before a tutorial creates anything.

A tutorial should fail before its first resource exists when the AWS CLI is
missing, no region is configured or the credentials do not work, so there is
nothing to clean up.
"""

import logging
import shutil
from typing import Final

import boto3
from botocore.exceptions import BotoCoreError
from pydantic import BaseModel

from tutorial_runner.aws.backend import AWSBackend
from tutorial_runner.aws.exceptions import AWSError, PermissionError
from tutorial_runner.config.settings import Settings
from tutorial_runner.exceptions import PrerequisiteError

logger: Final = logging.getLogger(__name__)


class CallerIdentity(BaseModel):
    """Identity of the AWS credentials in use.

    Attributes:
        account: AWS account ID.
        arn: ARN of the calling principal.
        user_id: Unique identifier of the calling principal.
    """

    account: str
    arn: str
    user_id: str


def check_aws_cli(cli_path: str = "aws") -> str:
    """Verify that the AWS CLI executable is available.

    Args:
        cli_path: Executable name or path. Defaults to "aws".

    Returns:
        Absolute path of the executable.

    Raises:
        PrerequisiteError: If the executable cannot be found.
    """
    resolved = shutil.which(cli_path)
    if resolved is None:
        raise PrerequisiteError(
            f"AWS CLI '{cli_path}' not found. Install it from "
            "https://aws.amazon.com/cli/ or run with --backend sdk",
            details={"cli_path": cli_path},
        )
    logger.debug(f"Using AWS CLI at {resolved}")
    return resolved


def resolve_region(settings: Settings, default: str | None = None) -> str:
    """Determine the region a tutorial runs in.

    Order of precedence: the ``aws_region`` setting, the tutorial's own
    default (some services exist only in a few regions), then the region
    configured for the AWS profile.

    Args:
        settings: Application settings.
        default: Region preferred by the tutorial. Defaults to None.

    Returns:
        Region code.

    Raises:
        PrerequisiteError: If no region is configured anywhere.
    """
    if settings.aws_region:
        return settings.aws_region
    if default:
        logger.info(f"Using tutorial default region: {default}")
        return default

    try:
        session = boto3.session.Session(profile_name=settings.aws_profile)
    except BotoCoreError as e:
        raise PrerequisiteError(f"Unable to load AWS profile: {e}") from e

    if session.region_name:
        return session.region_name

    raise PrerequisiteError(
        "No AWS region configured. Set AWS_REGION, pass --region, "
        "or run 'aws configure' to set a default region"
    )


async def verify_credentials(backend: AWSBackend) -> CallerIdentity:
    """Check that the configured credentials can call AWS.

    Args:
        backend: Backend to issue the STS call with.

    Returns:
        The caller identity.

    Raises:
        PrerequisiteError: If the credentials are missing or rejected.
    """
    try:
        response = await backend.call("sts", "get_caller_identity")
    except PermissionError as e:
        raise PrerequisiteError(f"AWS credentials were rejected: {e.message}") from e
    except AWSError as e:
        raise PrerequisiteError(f"Unable to verify AWS credentials: {e.message}") from e

    identity = CallerIdentity(
        account=response.get("Account", ""),
        arn=response.get("Arn", ""),
        user_id=response.get("UserId", ""),
    )
    logger.info(f"Using AWS account {identity.account} as {identity.arn}")
    return identity
