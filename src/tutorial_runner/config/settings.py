"""Runner configuration read from the environment and an optional ``.env`` file.

Command-line flags are applied on top by ``__main__``. ``AWS_REGION`` and
``AWS_PROFILE`` map onto the matching fields, the same variables the AWS CLI
reads.
"""

import re
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tutorial_runner.constants import (
    DEFAULT_CLEANUP_RETRY_ATTEMPTS,
    DEFAULT_CLEANUP_RETRY_DELAY,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_SUFFIX_LENGTH,
)


_REGION_PATTERN = re.compile(r"^[a-z]{2}(-[a-z]+)+-\d$")


class Settings(BaseSettings):
    """Everything that changes how a tutorial is run, not what it creates.

    Defaults reproduce the behaviour of the interactive tutorial
    scripts: AWS CLI backend, a cleanup prompt at the end, and a 10 second
    polling interval.

    Example:
        >>> settings = Settings(aws_region="us-west-2", auto_cleanup=True)
        >>> settings.backend
        'cli'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # AWS access
    # =========================================================================

    aws_region: str | None = Field(
        default=None,
        description="AWS region (falls back to the profile's configured region)",
    )

    aws_profile: str | None = Field(
        default=None,
        description="Named AWS profile to use for credentials",
    )

    backend: Literal["cli", "sdk"] = Field(
        default="cli",
        description="Execute calls through the AWS CLI or directly through boto3",
    )

    aws_cli_path: str = Field(
        default="aws",
        description="AWS CLI executable used by the cli backend",
    )

    strict_error_scan: bool = Field(
        default=False,
        description="Treat any CLI output containing 'error' as a failure",
    )

    # =========================================================================
    # Tutorial Flow
    # =========================================================================

    auto_cleanup: bool = Field(
        default=False,
        description="Clean up created resources without asking",
    )

    resource_suffix_length: int = Field(
        default=DEFAULT_SUFFIX_LENGTH,
        ge=4,
        le=32,
        description="Length of the random suffix in resource names",
    )

    # =========================================================================
    # Polling, Retry & Cleanup
    # =========================================================================

    poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        ge=0.0,
        le=600.0,
        description="Seconds between status polls",
    )

    poll_timeout: float = Field(
        default=DEFAULT_POLL_TIMEOUT,
        gt=0.0,
        le=7200.0,
        description="Maximum seconds to wait for a status",
    )

    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retry attempts for throttled AWS calls",
    )

    retry_base_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Base delay in seconds for retry backoff",
    )

    cleanup_retry_attempts: int = Field(
        default=DEFAULT_CLEANUP_RETRY_ATTEMPTS,
        ge=1,
        le=20,
        description="Attempts for deletions blocked by dependent resources",
    )

    cleanup_retry_delay: float = Field(
        default=DEFAULT_CLEANUP_RETRY_DELAY,
        ge=0.0,
        le=300.0,
        description="Seconds between blocked deletion attempts",
    )

    # =========================================================================
    # Logs, audit trail and transcripts
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )

    log_dir: str = Field(
        default=".",
        description="Directory for per-tutorial log files",
    )

    enable_audit_logging: bool = Field(
        default=True,
        description="Emit JSON audit entries for API calls and resource changes",
    )

    audit_log_include_secrets: bool = Field(
        default=False,
        description="Include passwords and secrets in audit logs and transcripts",
    )

    transcript_dir: str | None = Field(
        default=None,
        description="Directory for markdown transcripts of each run",
    )

    @field_validator("aws_region")
    @classmethod
    def validate_region(cls, v: str | None) -> str | None:
        """Accept region codes such as ``eu-west-1``; an empty string means unset."""
        if v is None or v == "":
            return None
        if not _REGION_PATTERN.match(v):
            raise ValueError(f"AWS_REGION '{v}' is not a valid region code (e.g. us-east-1)")
        return v

    @model_validator(mode="after")
    def validate_polling(self) -> "Settings":
        if self.poll_timeout < self.poll_interval:
            raise ValueError("POLL_TIMEOUT must be greater than or equal to POLL_INTERVAL")
        return self


@lru_cache
def get_settings() -> Settings:
    """Settings from the environment, read once per process."""
    return Settings()
