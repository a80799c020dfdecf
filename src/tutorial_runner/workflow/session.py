"""Sequential provisioning session.

A ``TutorialSession`` is what a tutorial uses to talk to AWS. Every call goes
through it so that:

- each command is narrated as its ``aws ...`` equivalent and recorded,
- created resources land in the ledger once their identifier is known,
- on failure (or at the end of a successful run) the user is offered a
  cleanup of everything created so far, newest first.

Example:
    >>> async with TutorialSession("vpc-gs", backend, settings, prompt) as session:
    ...     vpc = await session.create(
    ...         "ec2",
    ...         "create_vpc",
    ...         resource_type="ec2:vpc",
    ...         id_query="Vpc.VpcId",
    ...         params={"CidrBlock": "10.0.0.0/16"},
    ...     )
    ...     await session.wait("ec2", "vpc_available", VpcIds=[vpc.identifier])
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from types import TracebackType
from typing import Any, Final, Self

from tutorial_runner.aws.backend import AWSBackend
from tutorial_runner.aws.cli import render_cli_command
from tutorial_runner.config.settings import Settings
from tutorial_runner.constants import CLEANUP_ERROR_QUESTION, CLEANUP_QUESTION
from tutorial_runner.models.resources import (
    StepKind,
    StepRecord,
    TeardownOutcome,
    TeardownReport,
    TeardownResult,
    TrackedResource,
)
from tutorial_runner.utils.audit_logger import AuditLogger, sanitize_parameters
from tutorial_runner.utils.extract import query, require
from tutorial_runner.utils.naming import ResourceNamer
from tutorial_runner.workflow.cleanup import CleanupRegistry, Teardown, default_registry
from tutorial_runner.workflow.ledger import ResourceLedger
from tutorial_runner.workflow.poller import wait_for_propagation, wait_for_status
from tutorial_runner.workflow.prompts import ConfirmationPrompt, cleanup_banner

logger: Final = logging.getLogger(__name__)


class TutorialSession:
    """Runs the AWS steps of one tutorial and owns its resource ledger.

    Attributes:
        slug: Tutorial identifier, used in logs and audit entries.
        backend: Backend that executes AWS calls.
        settings: Application settings.
        prompt: Confirmation prompt used before cleanup.
        registry: Cleanup handlers by resource type.
        ledger: Resources created so far.
        namer: Generates resource names with a shared random suffix.
        steps: Every AWS interaction performed, in order.
        outputs: Named values the tutorial reports at the end.
    """

    def __init__(
        self,
        slug: str,
        backend: AWSBackend,
        settings: Settings,
        prompt: ConfirmationPrompt,
        registry: CleanupRegistry | None = None,
        ledger: ResourceLedger | None = None,
        namer: ResourceNamer | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.slug = slug
        self.backend = backend
        self.settings = settings
        self.prompt = prompt
        self.registry = registry if registry is not None else default_registry()
        self.ledger = ledger if ledger is not None else ResourceLedger()
        self.namer = namer or ResourceNamer(suffix_length=settings.resource_suffix_length)
        self.audit_logger = audit_logger or AuditLogger(settings)
        self.steps: list[StepRecord] = []
        self.outputs: dict[str, Any] = {}
        self.cleanup_report: TeardownReport | None = None

    @property
    def region(self) -> str | None:
        """Region the backend runs in."""
        return self.backend.region

    async def __aenter__(self) -> Self:
        logger.debug(f"Session {self.slug} started (backend: {self.backend.name})")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is not None:
            if isinstance(exc, KeyboardInterrupt | asyncio.CancelledError):
                logger.error("ERROR: Interrupted")
            else:
                logger.error(f"ERROR: {exc}")
            await self.offer_cleanup(error=True)
        elif self.ledger:
            await self.offer_cleanup(error=False)
        # Never suppress the original exception
        return False

    def name(self, kind: str, **kwargs: Any) -> str:
        """Generate a resource name (see ``ResourceNamer.name``)."""
        return self.namer.name(kind, **kwargs)

    def output(self, key: str, value: Any) -> None:
        """Record a named value produced by the tutorial and show it."""
        self.outputs[key] = value
        logger.info(f"{key}: {value}")

    async def call(
        self,
        service: str,
        operation: str,
        description: str | None = None,
        **params: Any,
    ) -> dict[str, Any]:
        """Execute one AWS operation.

        Args:
            service: AWS service name (SDK naming).
            operation: Operation name (snake_case).
            description: Narration shown before the command. Defaults to None.
            **params: Operation parameters (boto3 names).

        Returns:
            Parsed response.

        Raises:
            AWSError: If the operation fails.
        """
        return await self._execute(
            StepKind.CALL,
            service,
            operation,
            params,
            description,
            lambda: self.backend.call(service, operation, **params),
        )

    async def create(
        self,
        service: str,
        operation: str,
        *,
        resource_type: str,
        id_query: str,
        params: dict[str, Any] | None = None,
        label: str | None = None,
        capture: Mapping[str, str] | None = None,
        attributes: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> TrackedResource:
        """Create a resource and record it in the ledger.

        The resource is recorded only after the call succeeded and its
        identifier was found in the response.

        Args:
            service: AWS service name.
            operation: Create operation.
            resource_type: Ledger type in ``service:kind`` form.
            id_query: JMESPath expression selecting the identifier.
            params: Operation parameters. Defaults to None.
            label: Human-readable name. Defaults to the identifier.
            capture: Attribute name to JMESPath expression, evaluated on the
                response and stored on the resource. Defaults to None.
            attributes: Fixed attributes stored on the resource. Defaults to None.
            description: Narration shown before the command. Defaults to None.

        Returns:
            The recorded resource.

        Raises:
            AWSError: If the create call fails.
            ExtractionError: If the identifier is missing from the response.
        """
        response = await self.call(service, operation, description=description, **(params or {}))
        identifier = require(response, id_query, f"{resource_type} identifier")

        values = dict(attributes or {})
        for key, expression in (capture or {}).items():
            values[key] = query(response, expression)

        return self.track(resource_type, str(identifier), label=label, attributes=values)

    def track(
        self,
        resource_type: str,
        identifier: str,
        label: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> TrackedResource:
        """Record a resource that was created outside ``create``."""
        resource = self.ledger.record(resource_type, identifier, label=label, attributes=attributes)
        logger.info(f"Created {resource_type}: {resource.label}")
        self.audit_logger.log_resource_created(resource)
        return resource

    async def wait(
        self,
        service: str,
        waiter_name: str,
        description: str | None = None,
        **params: Any,
    ) -> None:
        """Block on a service waiter (e.g. ``db_instance_available``).

        Raises:
            TimeoutError: If the waiter gives up.
            AWSError: If the waiter reports a failure.
        """
        await self._execute(
            StepKind.WAIT,
            service,
            waiter_name,
            params,
            description,
            lambda: self.backend.wait(service, waiter_name, **params),
        )

    async def wait_for(
        self,
        service: str,
        operation: str,
        *,
        status_query: str,
        targets: str | Iterable[str],
        failure_states: str | Iterable[str] = (),
        params: dict[str, Any] | None = None,
        interval: float | None = None,
        timeout: float | None = None,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Poll a describe operation until a status reaches a target value.

        Args:
            service: AWS service name.
            operation: Describe operation.
            status_query: JMESPath expression selecting the status.
            targets: Status value(s) that end the wait.
            failure_states: Status value(s) that abort the wait.
            params: Describe parameters. Defaults to None.
            interval: Seconds between polls. Defaults to the poll_interval setting.
            timeout: Maximum seconds to wait. Defaults to the poll_timeout setting.
            description: What is being waited for. Defaults to the operation.

        Returns:
            The response in which the target status was observed.

        Raises:
            ResourceFailedError: If a failure status is observed.
            TimeoutError: If the timeout elapses.
        """
        request = params or {}
        return await self._execute(
            StepKind.POLL,
            service,
            operation,
            request,
            description,
            lambda: wait_for_status(
                lambda: self.backend.call(service, operation, **request),
                status_query=status_query,
                targets=targets,
                failure_states=failure_states,
                interval=self.settings.poll_interval if interval is None else interval,
                timeout=self.settings.poll_timeout if timeout is None else timeout,
                description=description or operation,
            ),
        )

    async def pause(self, seconds: float, reason: str) -> None:
        """Wait a fixed time for a change to propagate."""
        await wait_for_propagation(seconds, reason)

    async def delete(self, resource: TrackedResource) -> TeardownResult:
        """Tear down a single resource now, before the end of the tutorial.

        Returns:
            The teardown result. The resource is marked deleted when gone.
        """
        result = await self._teardown().delete(resource)
        if result.outcome in (TeardownOutcome.DELETED, TeardownOutcome.ALREADY_GONE):
            self.ledger.mark_deleted(resource)
        return result

    async def cleanup(self) -> TeardownReport:
        """Delete every resource in the ledger, newest first.

        Runs at most once; later calls return the first report.

        Returns:
            The teardown report.
        """
        if self.cleanup_report is not None:
            logger.debug("Cleanup already ran for this session")
            return self.cleanup_report

        report = await self._teardown().run(self.ledger)
        self.cleanup_report = report
        self.audit_logger.log_teardown(self.slug, report)

        if not report.success:
            logger.warning("Some resources could not be deleted. To delete them manually:")
            for line in self.manual_cleanup_commands():
                logger.warning(line)
        return report

    async def offer_cleanup(self, error: bool = False) -> TeardownReport | None:
        """List created resources and ask whether to delete them.

        Args:
            error: Whether the run failed; changes the question wording.

        Returns:
            The teardown report, or None when nothing was cleaned up.
        """
        if self.cleanup_report is not None or not self.ledger:
            return self.cleanup_report

        self.report_resources()
        for line in cleanup_banner():
            logger.info(line)

        question = CLEANUP_ERROR_QUESTION if error else CLEANUP_QUESTION
        if self.settings.auto_cleanup or self.prompt.confirm(question):
            return await self.cleanup()

        logger.info("Skipping cleanup. To delete the resources manually, run:")
        for line in self.manual_cleanup_commands():
            logger.info(line)
        return None

    def report_resources(self) -> None:
        """Log the resources created so far."""
        logger.info("")
        logger.info("Resources created:")
        for line in self.ledger.summary_lines():
            logger.info(line)

    def manual_cleanup_commands(self) -> list[str]:
        """Commands that delete the remaining resources, newest first."""
        commands: list[str] = []
        for resource in self.ledger.reversed_active():
            commands.extend(self.registry.manual_commands(resource))
        return commands

    def _teardown(self) -> Teardown:
        return Teardown(
            self.backend,
            self.registry,
            retry_attempts=self.settings.cleanup_retry_attempts,
            retry_delay=self.settings.cleanup_retry_delay,
            audit_logger=self.audit_logger,
        )

    async def _execute(
        self,
        kind: StepKind,
        service: str,
        operation: str,
        params: dict[str, Any],
        description: str | None,
        action: Callable[[], Awaitable[Any]],
    ) -> Any:
        command = render_cli_command(service, operation, params, waiter=kind == StepKind.WAIT)
        if description:
            logger.info(description)
        logger.info(f"Running: {command}")

        record = StepRecord(
            service=service,
            operation=operation,
            kind=kind,
            params=sanitize_parameters(params),
            command=command,
            description=description,
        )
        self.steps.append(record)

        start_time = time.perf_counter()
        try:
            result = await action()
        except BaseException as e:
            record.success = False
            record.error = str(e)
            raise
        finally:
            record.duration_ms = (time.perf_counter() - start_time) * 1000
            self.audit_logger.log_api_call(
                service,
                operation,
                params,
                success=record.success,
                execution_time_ms=record.duration_ms,
                error=record.error,
            )
        return result
