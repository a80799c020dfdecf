"""Resource ledger, cleanup and step-record models.

This module defines the Pydantic models shared by the tutorial workflow:
resources recorded in the ledger, declarative cleanup steps, teardown results,
and the record of every AWS call made during a run.
"""

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

_PLACEHOLDER = re.compile(r"^\{(\w+)\}$")


class TrackedResource(BaseModel):
    """A cloud resource created during a tutorial run.

    Attributes:
        resource_type: Resource type in ``service:kind`` form (e.g. ``ec2:vpc``).
        identifier: Identifier used to delete the resource (ID, name or ARN).
        label: Human-readable name shown in summaries.
        attributes: Extra values captured at creation time and used by
            cleanup steps (e.g. ``vpc_id`` for an internet gateway).
        sequence: Position in creation order.
        created_at: When the resource was recorded.
        deleted: Whether the resource has been torn down.

    Example:
        >>> resource = TrackedResource(
        ...     resource_type="ec2:vpc",
        ...     identifier="vpc-0abc123",
        ...     sequence=0,
        ... )
        >>> resource.label
        'vpc-0abc123'
    """

    resource_type: str = Field(..., pattern=r"^[a-z0-9-]+:[a-z0-9-]+$")
    identifier: str = Field(..., min_length=1)
    label: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)
    sequence: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    deleted: bool = False

    @model_validator(mode="after")
    def default_label(self) -> "TrackedResource":
        """Use the identifier as label when none is given."""
        if not self.label:
            self.label = self.identifier
        return self

    @property
    def service(self) -> str:
        """AWS service part of the resource type."""
        return self.resource_type.split(":", 1)[0]

    def template_values(self) -> dict[str, Any]:
        """Values available to cleanup step placeholders."""
        return {**self.attributes, "identifier": self.identifier, "label": self.label}


class CleanupStep(BaseModel):
    """One AWS call or waiter executed to delete a resource.

    Parameter values may contain ``{identifier}``, ``{label}`` or
    ``{attribute}`` placeholders. A value that is exactly one placeholder is
    replaced by the raw value, so list attributes stay lists.

    Attributes:
        service: AWS service name (SDK naming, e.g. ``ec2``).
        operation: Operation to call (snake_case), or None for a waiter step.
        waiter: Waiter name (snake_case), or None for a call step.
        params: Parameter template.
        ignore_error_codes: Error codes that count as success for this step.
        description: Short text logged when the step runs.

    Example:
        >>> step = CleanupStep(
        ...     service="ec2",
        ...     operation="delete_vpc",
        ...     params={"VpcId": "{identifier}"},
        ... )
    """

    service: str
    operation: str | None = None
    waiter: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    ignore_error_codes: tuple[str, ...] = ()
    description: str | None = None

    @model_validator(mode="after")
    def validate_action(self) -> "CleanupStep":
        """Ensure exactly one of operation and waiter is set.

        Raises:
            ValueError: If both or neither are set.
        """
        if (self.operation is None) == (self.waiter is None):
            raise ValueError("CleanupStep needs exactly one of 'operation' or 'waiter'")
        return self

    @property
    def is_waiter(self) -> bool:
        """Whether this step waits instead of calling an operation."""
        return self.waiter is not None

    def render(self, resource: TrackedResource) -> dict[str, Any]:
        """Fill the parameter template for a resource.

        Args:
            resource: The resource being deleted.

        Returns:
            Concrete parameters for the call.

        Raises:
            KeyError: If a placeholder has no matching value.
        """
        return _render_value(self.params, resource.template_values())


def _render_value(value: Any, values: dict[str, Any]) -> Any:
    if isinstance(value, str):
        match = _PLACEHOLDER.match(value)
        if match:
            return values[match.group(1)]
        return value.format_map(values)
    if isinstance(value, dict):
        return {key: _render_value(item, values) for key, item in value.items()}
    if isinstance(value, list):
        return [_render_value(item, values) for item in value]
    return value


class TeardownOutcome(str, Enum):
    """Result of tearing down one resource."""

    DELETED = "deleted"
    ALREADY_GONE = "already_gone"
    FAILED = "failed"
    SKIPPED = "skipped"


class TeardownResult(BaseModel):
    """Outcome of tearing down a single resource."""

    resource: TrackedResource
    outcome: TeardownOutcome
    error: str | None = None
    attempts: int = Field(1, ge=0)


class TeardownReport(BaseModel):
    """Results of a teardown pass, in the order resources were processed.

    Example:
        >>> report = TeardownReport()
        >>> report.success
        True
    """

    results: list[TeardownResult] = Field(default_factory=list)

    @property
    def deleted(self) -> list[TrackedResource]:
        """Resources that are gone (deleted now or already missing)."""
        return [
            r.resource
            for r in self.results
            if r.outcome in (TeardownOutcome.DELETED, TeardownOutcome.ALREADY_GONE)
        ]

    @property
    def failed(self) -> list[TeardownResult]:
        """Results for resources whose deletion failed."""
        return [r for r in self.results if r.outcome == TeardownOutcome.FAILED]

    @property
    def skipped(self) -> list[TrackedResource]:
        """Resources without a cleanup handler."""
        return [r.resource for r in self.results if r.outcome == TeardownOutcome.SKIPPED]

    @property
    def success(self) -> bool:
        """Whether every resource was deleted."""
        return not self.failed and not self.skipped

    def summary(self) -> str:
        """One-line summary of the teardown."""
        return (
            f"{len(self.deleted)} deleted, {len(self.failed)} failed, "
            f"{len(self.skipped)} skipped"
        )


class StepKind(str, Enum):
    """Kind of recorded tutorial step."""

    CALL = "call"
    WAIT = "wait"
    POLL = "poll"


class StepRecord(BaseModel):
    """A single AWS interaction performed during a run.

    Attributes:
        service: AWS service name.
        operation: Operation or waiter name.
        kind: Whether this was a call, a waiter or a status poll.
        params: Parameters with secrets redacted.
        command: Equivalent AWS CLI command line.
        description: What the step does, as narrated to the user.
        success: Whether the step succeeded.
        duration_ms: Elapsed time in milliseconds.
        error: Error message when the step failed.
        timestamp: When the step started.
    """

    service: str
    operation: str
    kind: StepKind = StepKind.CALL
    params: dict[str, Any] = Field(default_factory=dict)
    command: str = ""
    description: str | None = None
    success: bool = True
    duration_ms: float = Field(0.0, ge=0.0)
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
