"""AWS CLI executor.

This module runs AWS operations through the ``aws`` command-line client, the
way the getting-started tutorials do, but parses the JSON output instead of
scraping it. Requests are passed with ``--cli-input-json`` using the same
parameter names as boto3, so tutorials work unchanged on either backend.
"""

import asyncio
import json
import logging
import re
import shlex
from typing import Any, Final

from botocore import xform_name

from tutorial_runner.aws.exceptions import (
    AWSError,
    CommandError,
    TimeoutError,
    build_error,
)
from tutorial_runner.constants import (
    CLI_NOT_FOUND_EXIT_CODE,
    CLI_SERVICE_NAMES,
    CLI_WAITER_FAILED_EXIT_CODE,
    LEGACY_ERROR_TOKEN,
)
from tutorial_runner.utils.audit_logger import sanitize_parameters

logger: Final = logging.getLogger(__name__)

_CLI_ERROR_PATTERN: Final = re.compile(
    r"An error occurred \((?P<code>[^)]+)\)(?: when calling the (?P<operation>\w+) operation)?"
    r"(?: \(reached max retries: \d+\))?: (?P<message>.*)",
    re.DOTALL,
)


def cli_service_name(service: str) -> str:
    """Translate an SDK service name to the AWS CLI command name.

    Example:
        >>> cli_service_name("s3")
        's3api'
        >>> cli_service_name("neptune")
        'neptune'
    """
    return CLI_SERVICE_NAMES.get(service, service)


def cli_operation_name(operation: str) -> str:
    """Translate a snake_case operation or waiter name to CLI form.

    Example:
        >>> cli_operation_name("create_db_cluster")
        'create-db-cluster'
    """
    return operation.replace("_", "-")


def cli_flag(parameter: str) -> str:
    """Translate a boto3 parameter name to its CLI flag.

    Uses botocore's own name transformation, which is what the AWS CLI uses.

    Example:
        >>> cli_flag("DBInstanceIdentifier")
        '--db-instance-identifier'
        >>> cli_flag("instanceNames")
        '--instance-names'
    """
    return f"--{xform_name(parameter, '-')}"


def render_cli_args(params: dict[str, Any]) -> list[str]:
    """Render boto3-style parameters as AWS CLI arguments.

    Booleans become ``--flag``/``--no-flag``, lists of scalars become
    space-separated values and structures become compact JSON.

    Args:
        params: Request parameters keyed by boto3 parameter name.

    Returns:
        Argument list (unquoted).

    Example:
        >>> render_cli_args({"VpcId": "vpc-1", "SkipFinalSnapshot": True})
        ['--vpc-id', 'vpc-1', '--skip-final-snapshot']
    """
    args: list[str] = []

    for key, value in params.items():
        if value is None:
            continue

        flag = cli_flag(key)
        if isinstance(value, bool):
            args.append(flag if value else f"--no-{flag[2:]}")
        elif isinstance(value, list) and all(
            not isinstance(item, dict | list) for item in value
        ):
            args.append(flag)
            args.extend(str(item) for item in value)
        elif isinstance(value, dict | list):
            args.extend([flag, json.dumps(value, separators=(",", ":"), default=str)])
        else:
            args.extend([flag, str(value)])

    return args


def render_cli_command(
    service: str,
    operation: str,
    params: dict[str, Any] | None = None,
    redact: bool = True,
    waiter: bool = False,
) -> str:
    """Render an operation as a copy-pasteable AWS CLI command line.

    Args:
        service: SDK service name.
        operation: Operation or waiter name (snake_case).
        params: Request parameters. Defaults to None.
        redact: Redact secrets. Defaults to True.
        waiter: Render as ``aws <service> wait <waiter>``. Defaults to False.

    Returns:
        Shell-quoted command line.

    Example:
        >>> render_cli_command("ec2", "delete_vpc", {"VpcId": "vpc-1"})
        'aws ec2 delete-vpc --vpc-id vpc-1'
    """
    shown = params or {}
    if redact:
        shown = sanitize_parameters(shown)

    parts = ["aws", cli_service_name(service)]
    if waiter:
        parts.append("wait")
    parts.append(cli_operation_name(operation))
    parts.extend(render_cli_args(shown))
    return shlex.join(parts)


def parse_cli_error(stderr: str) -> tuple[str, str | None, str] | None:
    """Parse the error line the AWS CLI prints on a failed request.

    Args:
        stderr: Standard error output of the CLI.

    Returns:
        Tuple of (error code, operation name or None, message), or None if
        the output does not contain an AWS error.

    Example:
        >>> parse_cli_error(
        ...     "An error occurred (DependencyViolation) when calling the "
        ...     "DeleteVpc operation: The vpc has dependencies"
        ... )
        ('DependencyViolation', 'DeleteVpc', 'The vpc has dependencies')
    """
    match = _CLI_ERROR_PATTERN.search(stderr)
    if not match:
        return None
    return match.group("code"), match.group("operation"), match.group("message").strip()


def contains_error_token(text: str) -> bool:
    """Check for the word "error" the way the original tutorial scripts did.

    Example:
        >>> contains_error_token("An ERROR occurred")
        True
    """
    return LEGACY_ERROR_TOKEN in text.lower()


class AWSCLIExecutor:
    """Runs AWS operations through the AWS CLI.

    Each call spawns ``aws <service> <operation> --cli-input-json <json>
    --output json`` without a shell, waits for it to finish and returns the
    parsed JSON output. Failures are converted to the same exception classes
    the boto3 wrapper raises.

    Example:
        >>> executor = AWSCLIExecutor(region="us-east-1")
        >>> result = await executor.call("ec2", "create_vpc", CidrBlock="10.0.0.0/16")
        >>> result["Vpc"]["VpcId"]
        'vpc-0abc...'
    """

    def __init__(
        self,
        cli_path: str = "aws",
        region: str | None = None,
        profile: str | None = None,
        strict_error_scan: bool = False,
    ) -> None:
        """Initialize the executor.

        Args:
            cli_path: AWS CLI executable. Defaults to "aws".
            region: Region passed with ``--region``. Defaults to None.
            profile: Profile passed with ``--profile``. Defaults to None.
            strict_error_scan: Treat any output containing "error" as a
                failure. Defaults to False.
        """
        self.cli_path = cli_path
        self.region = region
        self.profile = profile
        self.strict_error_scan = strict_error_scan
        logger.debug(f"Initialized AWS CLI executor ({cli_path}) for region {region or 'default'}")

    def _global_args(self) -> list[str]:
        args = ["--output", "json"]
        if self.region:
            args.extend(["--region", self.region])
        if self.profile:
            args.extend(["--profile", self.profile])
        return args

    async def _run(self, argv: list[str], service: str, operation: str) -> tuple[int, str, str]:
        logger.debug(f"Executing: {shlex.join(argv[:4])} ...")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CommandError(
                f"AWS CLI executable '{self.cli_path}' not found",
                service=service,
                operation=operation,
                exit_code=CLI_NOT_FOUND_EXIT_CODE,
            ) from e

        stdout, stderr = await process.communicate()
        exit_code = process.returncode if process.returncode is not None else -1
        return exit_code, stdout.decode("utf-8", "replace"), stderr.decode("utf-8", "replace")

    def _error_from_output(
        self, exit_code: int, stderr: str, service: str, operation: str
    ) -> AWSError:
        parsed = parse_cli_error(stderr)
        if parsed is not None:
            code, _, message = parsed
            return build_error(
                code,
                message,
                service=service,
                operation=operation,
                details={"exit_code": exit_code},
            )
        return CommandError(
            stderr.strip() or f"AWS CLI exited with code {exit_code}",
            service=service,
            operation=operation,
            exit_code=exit_code,
            stderr=stderr,
        )

    async def call(self, service: str, operation: str, **params: Any) -> dict[str, Any]:
        """Execute an AWS operation through the CLI.

        Args:
            service: SDK service name (e.g. 'ec2', 's3', 'stepfunctions').
            operation: Operation name in snake_case (e.g. 'create_vpc').
            **params: Request parameters using boto3 names.

        Returns:
            Parsed JSON response; empty dict when the CLI prints nothing.

        Raises:
            CommandError: If the CLI cannot be started, prints invalid JSON,
                or fails without an AWS error message.
            AWSError: Classified AWS error parsed from the CLI output.
        """
        argv = [self.cli_path, cli_service_name(service), cli_operation_name(operation)]
        if params:
            argv.extend(["--cli-input-json", json.dumps(params, default=str)])
        argv.extend(self._global_args())

        exit_code, stdout, stderr = await self._run(argv, service, operation)

        if exit_code != 0:
            error = self._error_from_output(exit_code, stderr, service, operation)
            logger.warning(f"{service}:{operation} failed: {error}")
            raise error

        if self.strict_error_scan and contains_error_token(stdout + stderr):
            raise CommandError(
                f"Output of {service}:{operation} mentions an error",
                service=service,
                operation=operation,
                exit_code=exit_code,
                stderr=stderr or stdout,
            )

        if not stdout.strip():
            return {}

        try:
            result = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise CommandError(
                f"AWS CLI returned invalid JSON for {operation}: {e}",
                service=service,
                operation=operation,
                exit_code=exit_code,
                stderr=stdout,
            ) from e

        return result if isinstance(result, dict) else {"Result": result}

    async def wait(
        self,
        service: str,
        waiter_name: str,
        delay: float | None = None,
        max_attempts: int | None = None,
        **params: Any,
    ) -> None:
        """Run an AWS CLI waiter (``aws <service> wait <waiter>``).

        The CLI uses the waiter's built-in delay and attempt count, so
        ``delay`` and ``max_attempts`` are accepted for interface
        compatibility and only logged.

        Args:
            service: SDK service name.
            waiter_name: Waiter name in snake_case (e.g. 'db_instance_available').
            delay: Ignored by the CLI backend.
            max_attempts: Ignored by the CLI backend.
            **params: Waiter parameters using boto3 names.

        Raises:
            TimeoutError: If the waiter gives up.
            AWSError: Classified AWS error parsed from the CLI output.
        """
        if delay is not None or max_attempts is not None:
            logger.debug(f"CLI waiter {waiter_name} uses built-in delay and attempts")

        argv = [
            self.cli_path,
            cli_service_name(service),
            "wait",
            cli_operation_name(waiter_name),
            *render_cli_args(params),
            *self._global_args(),
        ]

        exit_code, _, stderr = await self._run(argv, service, waiter_name)
        if exit_code == 0:
            return

        parsed = parse_cli_error(stderr)
        if parsed is None and (
            exit_code == CLI_WAITER_FAILED_EXIT_CODE or "Waiter" in stderr
        ):
            raise TimeoutError(
                stderr.strip() or f"Waiter {waiter_name} failed",
                service=service,
                operation=waiter_name,
                details={"exit_code": exit_code},
            )
        raise self._error_from_output(exit_code, stderr, service, waiter_name)
