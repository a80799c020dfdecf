"""Tutorial workflow: sequential provisioning, resource tracking and teardown.

This package provides the session tutorials run in, the ledger of created
resources, cleanup handlers with best-effort teardown, status polling and the
cleanup confirmation prompt.
"""

from tutorial_runner.workflow.cleanup import (
    CleanupHandler,
    CleanupRegistry,
    StepCleanup,
    Teardown,
    default_registry,
)
from tutorial_runner.workflow.ledger import ResourceLedger
from tutorial_runner.workflow.poller import wait_for_propagation, wait_for_status
from tutorial_runner.workflow.prompts import ConfirmationPrompt
from tutorial_runner.workflow.session import TutorialSession

__all__ = [
    "CleanupHandler",
    "CleanupRegistry",
    "ConfirmationPrompt",
    "ResourceLedger",
    "StepCleanup",
    "Teardown",
    "TutorialSession",
    "default_registry",
    "wait_for_propagation",
    "wait_for_status",
]
