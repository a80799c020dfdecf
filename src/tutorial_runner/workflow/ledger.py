"""Resource ledger for a single tutorial run.

The ledger is the list of resources a run has created, in creation order.
Resources are appended only after creation succeeded and their identifier was
captured; teardown walks the list backwards so nothing is deleted before the
resources that depend on it.
"""

import logging
from collections.abc import Iterator
from typing import Any, Final

from tutorial_runner.models.resources import TrackedResource

logger: Final = logging.getLogger(__name__)


class ResourceLedger:
    """Append-only record of the resources created during a run.

    Example:
        >>> ledger = ResourceLedger()
        >>> vpc = ledger.record("ec2:vpc", "vpc-123", label="neptune-vpc")
        >>> sg = ledger.record("ec2:security-group", "sg-456")
        >>> [r.identifier for r in ledger.reversed_active()]
        ['sg-456', 'vpc-123']
    """

    def __init__(self) -> None:
        self._resources: list[TrackedResource] = []

    def record(
        self,
        resource_type: str,
        identifier: str,
        label: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> TrackedResource:
        """Append a newly created resource.

        Args:
            resource_type: Resource type in ``service:kind`` form.
            identifier: Identifier used to delete the resource.
            label: Human-readable name. Defaults to the identifier.
            attributes: Extra values needed for cleanup. Defaults to None.

        Returns:
            The recorded resource.

        Raises:
            ValueError: If the identifier is empty.
        """
        if not identifier:
            raise ValueError(f"Cannot record {resource_type} without an identifier")

        resource = TrackedResource(
            resource_type=resource_type,
            identifier=identifier,
            label=label or identifier,
            attributes=dict(attributes or {}),
            sequence=len(self._resources),
        )
        self._resources.append(resource)
        logger.debug(f"Recorded {resource_type} {identifier} (#{resource.sequence})")
        return resource

    def active(self) -> list[TrackedResource]:
        """Resources not yet deleted, in creation order."""
        return [r for r in self._resources if not r.deleted]

    def reversed_active(self) -> list[TrackedResource]:
        """Resources not yet deleted, newest first (teardown order)."""
        return [r for r in reversed(self._resources) if not r.deleted]

    def mark_deleted(self, resource: TrackedResource) -> None:
        """Flag a resource as deleted.

        Args:
            resource: Resource previously returned by ``record``.

        Raises:
            KeyError: If the resource does not belong to this ledger.
        """
        if resource.sequence >= len(self._resources) or (
            self._resources[resource.sequence] is not resource
        ):
            raise KeyError(f"{resource.resource_type} {resource.identifier} is not in the ledger")
        resource.deleted = True
        logger.debug(f"Marked {resource.resource_type} {resource.identifier} as deleted")

    def find(
        self, resource_type: str | None = None, identifier: str | None = None
    ) -> list[TrackedResource]:
        """Find active resources by type and/or identifier.

        Args:
            resource_type: Resource type to match. Defaults to None (any).
            identifier: Identifier to match. Defaults to None (any).

        Returns:
            Matching active resources in creation order.
        """
        return [
            r
            for r in self.active()
            if (resource_type is None or r.resource_type == resource_type)
            and (identifier is None or r.identifier == identifier)
        ]

    def summary_lines(self) -> list[str]:
        """Describe active resources, one line each, in creation order."""
        return [f"- {r.resource_type}: {r.label}" for r in self.active()]

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[TrackedResource]:
        return iter(list(self._resources))

    def __bool__(self) -> bool:
        return any(not r.deleted for r in self._resources)
