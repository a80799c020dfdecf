"""Tests for the tutorial session."""

import logging
from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import pytest

from tutorial_runner.aws.exceptions import PermissionError, ValidationError
from tutorial_runner.config.settings import Settings
from tutorial_runner.exceptions import ExtractionError, ResourceFailedError
from tutorial_runner.models.resources import StepKind, TeardownOutcome
from tutorial_runner.utils.naming import ResourceNamer
from tutorial_runner.workflow.prompts import ConfirmationPrompt
from tutorial_runner.workflow.session import TutorialSession

Answer = Callable[[bool | None], ConfirmationPrompt]


@pytest.fixture
def make_session(
    fake_backend: Any, settings: Settings, answer: Answer
) -> Callable[..., TutorialSession]:
    """Factory for sessions on the fake backend."""

    def factory(reply: bool | None = False, **kwargs: Any) -> TutorialSession:
        return TutorialSession(
            "vpc-gs",
            fake_backend,
            kwargs.pop("settings", settings),
            answer(reply),
            namer=ResourceNamer(prefix="tut", suffix="abc123"),
            **kwargs,
        )

    return factory


class TestCalls:
    """Tests for call, create and wait."""

    @pytest.mark.asyncio
    async def test_call_records_step(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that each call is recorded with its CLI command."""
        fake_backend.on("ec2", "describe_vpcs", {"Vpcs": []})
        session = make_session()

        result = await session.call(
            "ec2", "describe_vpcs", description="Listing VPCs", VpcIds=["vpc-1"]
        )

        assert result == {"Vpcs": []}
        step = session.steps[0]
        assert step.kind == StepKind.CALL
        assert step.command == "aws ec2 describe-vpcs --vpc-ids vpc-1"
        assert step.description == "Listing VPCs"
        assert step.success

    @pytest.mark.asyncio
    async def test_call_failure_recorded(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that a failed call is recorded and re-raised."""
        fake_backend.on("ec2", "create_vpc", PermissionError("denied"))
        session = make_session()

        with pytest.raises(PermissionError):
            await session.call("ec2", "create_vpc", CidrBlock="10.0.0.0/16")

        assert session.steps[0].success is False
        assert "denied" in (session.steps[0].error or "")

    @pytest.mark.asyncio
    async def test_step_params_redacted(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that recorded steps never keep secrets."""
        session = make_session()

        await session.call("secretsmanager", "create_secret", Name="s", SecretString="hunter2")

        assert session.steps[0].params["SecretString"] == "[REDACTED]"
        assert "hunter2" not in session.steps[0].command
        assert fake_backend.calls[0][2]["SecretString"] == "hunter2"

    @pytest.mark.asyncio
    async def test_create_tracks_resource(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that a created resource lands in the ledger with captured values."""
        fake_backend.on(
            "iam",
            "create_role",
            {"Role": {"RoleName": "tut-role-abc123", "Arn": "arn:aws:iam::1:role/r"}},
        )
        session = make_session()

        role = await session.create(
            "iam",
            "create_role",
            resource_type="iam:role",
            id_query="Role.RoleName",
            params={"RoleName": "tut-role-abc123"},
            capture={"arn": "Role.Arn"},
            attributes={"purpose": "states"},
        )

        assert role.identifier == "tut-role-abc123"
        assert role.attributes == {"purpose": "states", "arn": "arn:aws:iam::1:role/r"}
        assert session.ledger.find("iam:role") == [role]

    @pytest.mark.asyncio
    async def test_create_without_identifier(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that nothing is recorded when the identifier is missing."""
        fake_backend.on("ec2", "create_vpc", {"Vpc": {}})
        session = make_session()

        with pytest.raises(ExtractionError):
            await session.create(
                "ec2", "create_vpc", resource_type="ec2:vpc", id_query="Vpc.VpcId"
            )

        assert len(session.ledger) == 0

    @pytest.mark.asyncio
    async def test_failed_create_not_tracked(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that a failed create call records nothing."""
        fake_backend.on("ec2", "create_vpc", ValidationError("bad cidr"))
        session = make_session()

        with pytest.raises(ValidationError):
            await session.create("ec2", "create_vpc", resource_type="ec2:vpc", id_query="Vpc.VpcId")

        assert len(session.ledger) == 0

    @pytest.mark.asyncio
    async def test_wait_records_waiter(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test waiter steps."""
        session = make_session()

        await session.wait("ec2", "volume_available", VolumeIds=["vol-1"])

        assert fake_backend.waits == [("ec2", "volume_available", {"VolumeIds": ["vol-1"]})]
        assert session.steps[0].kind == StepKind.WAIT
        assert session.steps[0].command == "aws ec2 wait volume-available --volume-ids vol-1"

    @pytest.mark.asyncio
    async def test_wait_for_status(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test polling through the session."""
        fake_backend.on(
            "mq",
            "describe_broker",
            {"BrokerState": "CREATION_IN_PROGRESS"},
            {"BrokerState": "RUNNING"},
        )
        session = make_session()

        response = await session.wait_for(
            "mq",
            "describe_broker",
            status_query="BrokerState",
            targets="RUNNING",
            params={"BrokerId": "b-1"},
        )

        assert response["BrokerState"] == "RUNNING"
        assert len(session.steps) == 1
        assert session.steps[0].kind == StepKind.POLL
        assert fake_backend.operations().count(("mq", "describe_broker")) == 2

    @pytest.mark.asyncio
    async def test_wait_for_failure(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that a failure state fails the step."""
        fake_backend.on("mq", "describe_broker", {"BrokerState": "CREATION_FAILED"})
        session = make_session()

        with pytest.raises(ResourceFailedError):
            await session.wait_for(
                "mq",
                "describe_broker",
                status_query="BrokerState",
                targets="RUNNING",
                failure_states="CREATION_FAILED",
                params={"BrokerId": "b-1"},
            )

        assert session.steps[0].success is False

    def test_name_and_output(self, make_session: Callable[..., TutorialSession]) -> None:
        """Test naming and outputs."""
        session = make_session()

        assert session.name("vpc") == "tut-vpc-abc123"
        session.output("vpc_id", "vpc-1")
        assert session.outputs == {"vpc_id": "vpc-1"}
        assert session.region == "us-east-1"


class TestCleanupFlow:
    """Tests for the cleanup offered when the session ends."""

    @pytest.mark.asyncio
    async def test_success_confirmed_cleanup(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test cleanup after a successful run when the user agrees."""
        session = make_session(reply=True)

        async with session:
            session.track("ec2:vpc", "vpc-1")
            session.track("ec2:subnet", "subnet-1")

        assert fake_backend.operations()[-2:] == [
            ("ec2", "delete_subnet"),
            ("ec2", "delete_vpc"),
        ]
        assert session.cleanup_report is not None
        assert session.cleanup_report.success
        assert not session.ledger

    @pytest.mark.asyncio
    async def test_declined_cleanup_lists_commands(
        self,
        make_session: Callable[..., TutorialSession],
        fake_backend: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that declining leaves resources and prints manual commands."""
        session = make_session(reply=False)

        with caplog.at_level(logging.INFO):
            async with session:
                session.track("ec2:vpc", "vpc-1", label="tut-vpc")

        assert fake_backend.calls == []
        assert session.cleanup_report is None
        assert "Resources created:" in caplog.text
        assert "- ec2:vpc: tut-vpc" in caplog.text
        assert "aws ec2 delete-vpc --vpc-id vpc-1" in caplog.text

    @pytest.mark.asyncio
    async def test_error_offers_cleanup_and_reraises(
        self,
        make_session: Callable[..., TutorialSession],
        fake_backend: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that a failure triggers cleanup and the error still propagates."""
        questions: list[str] = []
        session = make_session()
        session.prompt = ConfirmationPrompt(input_func=lambda q: questions.append(q) or "y")

        with caplog.at_level(logging.INFO), pytest.raises(ValidationError):
            async with session:
                session.track("ec2:vpc", "vpc-1")
                raise ValidationError("bad parameter")

        assert questions and questions[0].startswith("An error occurred.")
        assert "ERROR: bad parameter" in caplog.text
        assert fake_backend.operations() == [("ec2", "delete_vpc")]

    @pytest.mark.asyncio
    async def test_interrupt_offers_cleanup(
        self,
        make_session: Callable[..., TutorialSession],
        fake_backend: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that Ctrl-C still offers cleanup."""
        session = make_session(reply=True)

        with caplog.at_level(logging.INFO), pytest.raises(KeyboardInterrupt):
            async with session:
                session.track("ec2:vpc", "vpc-1")
                raise KeyboardInterrupt

        assert "ERROR: Interrupted" in caplog.text
        assert fake_backend.operations() == [("ec2", "delete_vpc")]

    @pytest.mark.asyncio
    async def test_no_resources_no_prompt(
        self, make_session: Callable[..., TutorialSession]
    ) -> None:
        """Test that nothing is asked when nothing was created."""
        session = make_session()
        session.prompt = Mock()

        async with session:
            pass

        session.prompt.confirm.assert_not_called()

    @pytest.mark.asyncio
    async def test_auto_cleanup_setting(
        self, make_session: Callable[..., TutorialSession], settings: Settings, fake_backend: Any
    ) -> None:
        """Test that auto_cleanup skips the question."""
        session = make_session(settings=settings.model_copy(update={"auto_cleanup": True}))
        session.prompt = Mock()

        async with session:
            session.track("ec2:vpc", "vpc-1")

        session.prompt.confirm.assert_not_called()
        assert fake_backend.operations() == [("ec2", "delete_vpc")]

    @pytest.mark.asyncio
    async def test_cleanup_runs_once(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test that a second cleanup returns the first report."""
        session = make_session(reply=True)
        session.track("ec2:vpc", "vpc-1")

        first = await session.cleanup()
        second = await session.cleanup()
        assert await session.offer_cleanup() is first

        assert first is second
        assert fake_backend.operations() == [("ec2", "delete_vpc")]

    @pytest.mark.asyncio
    async def test_failed_cleanup_lists_leftovers(
        self,
        make_session: Callable[..., TutorialSession],
        fake_backend: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that resources left behind are listed with commands."""
        fake_backend.on("ec2", "delete_vpc", PermissionError("denied"))
        session = make_session(reply=True)
        session.track("ec2:vpc", "vpc-1")

        with caplog.at_level(logging.WARNING):
            report = await session.cleanup()

        assert not report.success
        assert "aws ec2 delete-vpc --vpc-id vpc-1" in caplog.text

    @pytest.mark.asyncio
    async def test_delete_single_resource(
        self, make_session: Callable[..., TutorialSession], fake_backend: Any
    ) -> None:
        """Test deleting one resource before the end of the run."""
        session = make_session()
        vpc = session.track("ec2:vpc", "vpc-1")
        session.track("ec2:subnet", "subnet-1")

        result = await session.delete(vpc)

        assert result.outcome == TeardownOutcome.DELETED
        assert [r.identifier for r in session.ledger.active()] == ["subnet-1"]
