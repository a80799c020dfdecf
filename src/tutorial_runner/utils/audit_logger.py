"""JSON audit trail for a tutorial run.

Every AWS request, every resource added to the ledger and every teardown
result is written as one ``AUDIT_*`` line carrying a JSON payload. The lines
land in the per-run log file, which is enough to rebuild what a run did and
to find anything it left behind.

Example:
    >>> audit = get_audit_logger()
    >>> audit.log_api_call("ec2", "create_vpc", {"CidrBlock": "10.0.0.0/16"}, True, 412.3)
"""

import json
import logging
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any, Final

from tutorial_runner.config.settings import Settings, get_settings
from tutorial_runner.models.resources import TeardownReport, TrackedResource

logger: Final = logging.getLogger(__name__)

# Matched case-insensitively against parameter names
SENSITIVE_KEYS: Final[tuple[str, ...]] = (
    "password",
    "secret",
    "token",
    "credential",
    "privatekey",
    "private_key",
)

REDACTED: Final[str] = "[REDACTED]"

# Keys naming a secret rather than holding one, e.g. SecretId or SecretArn
IDENTIFIER_SUFFIXES: Final[tuple[str, ...]] = ("id", "ids", "arn", "arns", "name", "names")


def is_sensitive_key(key: str) -> bool:
    """Whether the value under ``key`` must not be logged.

    Example:
        >>> is_sensitive_key("MasterUserPassword"), is_sensitive_key("SecretId")
        (True, False)
    """
    lowered = key.lower()
    if lowered.endswith(IDENTIFIER_SUFFIXES):
        return False
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def sanitize_parameters(parameters: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``parameters`` with secret values masked.

    A value is masked when its key contains one of ``SENSITIVE_KEYS`` and
    does not end in one of ``IDENTIFIER_SUFFIXES``, so ``SecretString`` is
    masked while ``SecretId`` stays usable in a delete command.
    Nested dictionaries and lists of dictionaries are walked as well, so
    ``Users[].Password`` in an Amazon MQ request is caught.

    Example:
        >>> sanitize_parameters({"Name": "creds", "SecretString": "hunter2"})
        {'Name': 'creds', 'SecretString': '[REDACTED]'}
    """
    masked: dict[str, Any] = {}
    for key, value in parameters.items():
        if is_sensitive_key(key):
            masked[key] = REDACTED
        elif isinstance(value, dict):
            masked[key] = sanitize_parameters(value)
        elif isinstance(value, list) and any(isinstance(item, dict) for item in value):
            masked[key] = [
                sanitize_parameters(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            masked[key] = value
    return masked


class AuditLogger:
    """Writes audit entries for one run.

    Attributes:
        settings: Settings the logger was built from.
        enabled: False turns every ``log_*`` method into a no-op.
        include_secrets: Skip masking. Meant for debugging throwaway accounts.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.enabled = self.settings.enable_audit_logging
        self.include_secrets = self.settings.audit_log_include_secrets

    def log_api_call(
        self,
        service: str,
        operation: str,
        parameters: dict[str, Any],
        success: bool,
        execution_time_ms: float,
        error: str | None = None,
    ) -> None:
        """Record one request or waiter.

        Args:
            service: Service name.
            operation: Operation or waiter name.
            parameters: Request parameters, masked unless secrets are included.
            success: Whether AWS accepted the request.
            execution_time_ms: Wall time of the request.
            error: Failure text. Defaults to None.
        """
        self._record(
            "AUDIT_API",
            "api_call",
            success,
            service=service,
            operation=operation,
            parameters=self._mask(parameters),
            result={
                "success": success,
                "execution_time_ms": round(execution_time_ms, 1),
                "error": error,
            },
        )

    def log_resource_created(self, resource: TrackedResource) -> None:
        """Record a ledger entry."""
        self._record(
            "AUDIT_RESOURCE", "resource_created", True, resource=self._resource_fields(resource)
        )

    def log_resource_deleted(
        self,
        resource: TrackedResource,
        success: bool,
        outcome: str,
        error: str | None = None,
    ) -> None:
        """Record what teardown did with one resource.

        ``outcome`` is a ``TeardownOutcome`` value; ``success`` is False only
        when the resource may still exist.
        """
        self._record(
            "AUDIT_CLEANUP",
            "resource_deleted",
            success,
            resource=self._resource_fields(resource),
            outcome=outcome,
            error=error,
        )

    def log_teardown(self, tutorial: str, report: TeardownReport) -> None:
        self._record(
            "AUDIT_TEARDOWN",
            "teardown",
            report.success,
            tutorial=tutorial,
            deleted=len(report.deleted),
            failed=[
                {"type": r.resource.resource_type, "id": r.resource.identifier, "error": r.error}
                for r in report.failed
            ],
            skipped=[{"type": r.resource_type, "id": r.identifier} for r in report.skipped],
        )

    def _resource_fields(self, resource: TrackedResource) -> dict[str, Any]:
        return {
            "type": resource.resource_type,
            "id": resource.identifier,
            "label": resource.label,
            "sequence": resource.sequence,
            "attributes": self._mask(resource.attributes),
        }

    def _mask(self, values: dict[str, Any]) -> dict[str, Any]:
        return values if self.include_secrets else sanitize_parameters(values)

    def _record(self, prefix: str, event_type: str, success: bool, **fields: Any) -> None:
        """Serialize one entry; failures go out as ``<prefix>_FAILED`` warnings."""
        if not self.enabled:
            return
        entry = {"timestamp": datetime.now(UTC).isoformat(), "event_type": event_type, **fields}
        payload = json.dumps(entry, default=str)
        if success:
            logger.info(f"{prefix}: {payload}")
        else:
            logger.warning(f"{prefix}_FAILED: {payload}")


@lru_cache
def get_audit_logger() -> AuditLogger:
    """Process-wide audit logger built from ``get_settings()``."""
    return AuditLogger(settings=get_settings())
