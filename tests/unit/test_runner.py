"""Tests for run_tutorial."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from pydantic import Field

from tutorial_runner.aws.exceptions import PermissionError, ValidationError
from tutorial_runner.config.settings import Settings
from tutorial_runner.exceptions import PrerequisiteError
from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.workflow.prompts import ConfirmationPrompt
from tutorial_runner.workflow.runner import (
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_SUCCESS,
    run_tutorial,
)
from tutorial_runner.workflow.session import TutorialSession


class LogGroupOptions(TutorialOptions):
    retention_days: int = Field(7, ge=1)


class LogGroupTutorial(BaseTutorial):
    """Creates one log group, optionally failing afterwards."""

    slug = "logs-gs"
    title = "CloudWatch Logs"
    description = "Create a log group."
    options_model = LogGroupOptions

    def __init__(self, fail_with: BaseException | None = None) -> None:
        super().__init__()
        self.fail_with = fail_with
        self.options: Any = None

    async def run(self, session: TutorialSession, options: Any) -> None:
        self.options = options
        name = session.name("logs")
        await session.call("logs", "create_log_group", logGroupName=name)
        session.track("logs:log-group", name)
        session.output("log_group", name)
        if self.fail_with is not None:
            raise self.fail_with


@pytest.fixture(autouse=True)
def mock_configure_logging() -> Iterator[MagicMock]:
    """Keep the root logger untouched."""
    with patch("tutorial_runner.workflow.runner.configure_logging") as mock:
        yield mock


class TestRunTutorial:
    """Tests for run_tutorial."""

    @pytest.mark.asyncio
    async def test_success_with_cleanup(
        self, settings: Settings, fake_backend: Any, mock_configure_logging: MagicMock
    ) -> None:
        """Test a full run that ends with cleanup."""
        tutorial = LogGroupTutorial()

        code = await run_tutorial(
            tutorial,
            settings,
            prompt=ConfirmationPrompt(auto_answer=True),
            backend=fake_backend,
            options={"retention_days": "14"},
        )

        assert code == EXIT_SUCCESS
        assert tutorial.options.retention_days == 14
        assert fake_backend.operations() == [
            ("sts", "get_caller_identity"),
            ("logs", "create_log_group"),
            ("logs", "delete_log_group"),
        ]
        level, log_file = mock_configure_logging.call_args.args
        assert level == settings.log_level
        assert log_file == Path(settings.log_dir) / "logs-gs.log"

    @pytest.mark.asyncio
    async def test_aws_failure_exit_code(self, settings: Settings, fake_backend: Any) -> None:
        """Test that an AWS error gives exit code 1 after cleanup."""
        tutorial = LogGroupTutorial(fail_with=ValidationError("bad retention"))

        code = await run_tutorial(
            tutorial, settings, prompt=ConfirmationPrompt(auto_answer=True), backend=fake_backend
        )

        assert code == EXIT_FAILURE
        assert fake_backend.operations()[-1] == ("logs", "delete_log_group")

    @pytest.mark.asyncio
    async def test_interrupt_exit_code(self, settings: Settings, fake_backend: Any) -> None:
        """Test that Ctrl-C gives exit code 130 after cleanup."""
        tutorial = LogGroupTutorial(fail_with=KeyboardInterrupt())

        code = await run_tutorial(
            tutorial, settings, prompt=ConfirmationPrompt(auto_answer=True), backend=fake_backend
        )

        assert code == EXIT_INTERRUPTED
        assert fake_backend.operations()[-1] == ("logs", "delete_log_group")

    @pytest.mark.asyncio
    async def test_invalid_options(self, settings: Settings, fake_backend: Any) -> None:
        """Test that bad options fail before any AWS call."""
        code = await run_tutorial(
            LogGroupTutorial(), settings, backend=fake_backend, options={"retention_days": "0"}
        )

        assert code == EXIT_FAILURE
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, settings: Settings, fake_backend: Any) -> None:
        """Test that credential problems stop the run before creating anything."""
        fake_backend.on("sts", "get_caller_identity", PermissionError("expired"))

        code = await run_tutorial(LogGroupTutorial(), settings, backend=fake_backend)

        assert code == EXIT_FAILURE
        assert fake_backend.operations() == [("sts", "get_caller_identity")]

    @pytest.mark.asyncio
    async def test_missing_cli(self, settings: Settings) -> None:
        """Test that a missing AWS CLI is reported as a failure."""
        with patch(
            "tutorial_runner.workflow.runner.check_aws_cli",
            side_effect=PrerequisiteError("AWS CLI 'aws' not found"),
        ):
            code = await run_tutorial(LogGroupTutorial(), settings)

        assert code == EXIT_FAILURE

    @pytest.mark.asyncio
    async def test_backend_created_from_settings(
        self, settings: Settings, fake_backend: Any
    ) -> None:
        """Test backend selection when none is passed in."""
        with (
            patch("tutorial_runner.workflow.runner.check_aws_cli") as check,
            patch(
                "tutorial_runner.workflow.runner.create_backend", return_value=fake_backend
            ) as create,
        ):
            code = await run_tutorial(
                LogGroupTutorial(), settings, prompt=ConfirmationPrompt(auto_answer=True)
            )

        assert code == EXIT_SUCCESS
        check.assert_called_once_with("aws")
        create.assert_called_once_with(settings, "us-east-1")

    @pytest.mark.asyncio
    async def test_transcript_written(
        self, settings: Settings, fake_backend: Any, tmp_path: Path
    ) -> None:
        """Test that a transcript is written when a directory is configured."""
        settings = settings.model_copy(update={"transcript_dir": str(tmp_path / "out")})

        await run_tutorial(
            LogGroupTutorial(),
            settings,
            prompt=ConfirmationPrompt(auto_answer=True),
            backend=fake_backend,
        )

        text = (tmp_path / "out" / "logs-gs.md").read_text(encoding="utf-8")
        assert text.startswith("# CloudWatch Logs")
        assert "aws logs create-log-group --log-group-name tut-logs-" in text
        assert "| logs:log-group |" in text
