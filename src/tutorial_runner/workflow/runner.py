"""Tutorial execution.

``run_tutorial`` is the single entry point used by the command line: it sets
up logging, checks the environment, runs the tutorial inside a session and
turns the outcome into a process exit code.
"""

import asyncio
import logging
from pathlib import Path
from typing import Final

from tutorial_runner.aws.backend import AWSBackend, create_backend
from tutorial_runner.aws.exceptions import AWSError
from tutorial_runner.aws.prerequisites import check_aws_cli, resolve_region, verify_credentials
from tutorial_runner.config.settings import Settings
from tutorial_runner.exceptions import TutorialError
from tutorial_runner.tutorials.base import BaseTutorial
from tutorial_runner.utils.logging_setup import configure_logging
from tutorial_runner.utils.transcript import write_transcript
from tutorial_runner.workflow.cleanup import default_registry
from tutorial_runner.workflow.prompts import ConfirmationPrompt
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

EXIT_SUCCESS: Final = 0
"""The tutorial completed."""

EXIT_FAILURE: Final = 1
"""An AWS call or a tutorial step failed."""

EXIT_INTERRUPTED: Final = 130
"""The run was interrupted (Ctrl+C)."""


async def run_tutorial(
    tutorial: BaseTutorial,
    settings: Settings,
    prompt: ConfirmationPrompt | None = None,
    backend: AWSBackend | None = None,
    options: dict[str, str] | None = None,
) -> int:
    """Run a tutorial from start to cleanup.

    Args:
        tutorial: Tutorial to run.
        settings: Application settings.
        prompt: Cleanup confirmation prompt. Defaults to an interactive
            prompt, or automatic "yes" when ``auto_cleanup`` is set.
        backend: Backend to use. Defaults to the one selected in settings.
        options: Raw ``key=value`` tutorial options. Defaults to None.

    Returns:
        Process exit code: 0 on success, 1 on failure, 130 when interrupted.
    """
    log_file = Path(settings.log_dir) / f"{tutorial.slug}.log"
    configure_logging(settings.log_level, log_file)
    logger.info(f"Starting {tutorial.title}")
    logger.info(f"Log file: {log_file}")

    if prompt is None:
        prompt = ConfirmationPrompt(auto_answer=True if settings.auto_cleanup else None)

    session: TutorialSession | None = None
    try:
        parsed_options = tutorial.parse_options(options)

        if backend is None:
            if settings.backend == "cli":
                check_aws_cli(settings.aws_cli_path)
            region = resolve_region(settings, tutorial.default_region)
            backend = create_backend(settings, region)
        logger.info(f"Using region: {backend.region or 'default'}")

        await verify_credentials(backend)

        registry = default_registry()
        tutorial.register_cleanup(registry)
        session = TutorialSession(tutorial.slug, backend, settings, prompt, registry=registry)

        async with session:
            await tutorial.run(session, parsed_options)

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.error("Tutorial interrupted")
        return EXIT_INTERRUPTED
    except (AWSError, TutorialError) as e:
        logger.error(f"Tutorial failed: {e}")
        logger.debug("Failure details", exc_info=True)
        return EXIT_FAILURE
    finally:
        if session is not None and settings.transcript_dir:
            write_transcript(
                Path(settings.transcript_dir) / f"{tutorial.slug}.md",
                tutorial.title,
                tutorial.description,
                session.steps,
                list(session.ledger),
                session.outputs,
            )

    logger.info("Tutorial completed successfully")
    return EXIT_SUCCESS
