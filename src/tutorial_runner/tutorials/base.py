"""Base class for all tutorials.

A tutorial is a scripted walkthrough of one AWS service: it creates a few
resources through a ``TutorialSession``, shows the values a reader would look
at, and leaves teardown to the session.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Final

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from tutorial_runner.exceptions import TutorialOptionsError
from tutorial_runner.workflow.cleanup import CleanupRegistry
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)


class TutorialOptions(BaseModel):
    """Options accepted by a tutorial (``--option key=value``).

    Tutorials with options subclass this model; unknown keys are rejected.
    """

    model_config = ConfigDict(extra="forbid")


class BaseTutorial(ABC):
    """Base class for tutorial definitions.

    Example:
        >>> class LogGroupTutorial(BaseTutorial):
        ...     slug = "logs-gs"
        ...     title = "CloudWatch Logs"
        ...     description = "Create a log group"
        ...
        ...     async def run(self, session, options):
        ...         name = session.name("logs")
        ...         await session.call("logs", "create_log_group", logGroupName=name)
        ...         session.track("logs:log-group", name)
    """

    slug: ClassVar[str]
    title: ClassVar[str]
    description: ClassVar[str]

    #: Region used when settings name none; it takes precedence over the profile region.
    default_region: ClassVar[str | None] = None

    #: Pydantic model validating the tutorial's options.
    options_model: ClassVar[type[TutorialOptions]] = TutorialOptions

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def run(self, session: TutorialSession, options: Any) -> None:
        """Execute the tutorial steps.

        Args:
            session: Session to issue AWS calls through.
            options: Validated instance of ``options_model``.

        Raises:
            AWSError: If an AWS call fails.
            TutorialError: If a response is missing data or a resource fails.
        """
        ...

    def register_cleanup(self, registry: CleanupRegistry) -> None:
        """Add cleanup handlers for resource types specific to this tutorial.

        The default registry already covers the built-in resource types.
        """
        return None

    def parse_options(self, raw: dict[str, str] | None = None) -> TutorialOptions:
        """Validate ``key=value`` options against ``options_model``.

        Raises:
            TutorialOptionsError: If an option is unknown or invalid.
        """
        try:
            return self.options_model(**(raw or {}))
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise TutorialOptionsError(
                f"Invalid options for {self.slug}: {problems}", details={"options": raw}
            ) from e
