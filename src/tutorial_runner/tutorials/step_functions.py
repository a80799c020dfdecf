"""Getting started with AWS Step Functions.

Creates an execution role (unless one is supplied), a Hello World state
machine built from Pass, Choice, Wait and Parallel states, and runs it.
"""

import json
import logging
from typing import Any, Final

from pydantic import Field

from tutorial_runner.constants import IAM_PROPAGATION_DELAY
from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

TRUST_POLICY: Final[dict[str, Any]] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "states.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}

EXECUTION_POLICY: Final[dict[str, Any]] = {
    "Version": "2012-10-17",
    "Statement": [{"Effect": "Allow", "Action": ["states:*"], "Resource": "*"}],
}


def hello_world_definition(wait_seconds: int = 3) -> dict[str, Any]:
    """Amazon States Language definition of the Hello World state machine."""
    return {
        "Comment": "A Hello World example of the Amazon States Language using a Pass state",
        "StartAt": "SetVariables",
        "States": {
            "SetVariables": {
                "Type": "Pass",
                "Result": {"IsHelloWorldExample": True, "ExecutionWaitTimeInSeconds": wait_seconds},
                "Next": "IsHelloWorldExample",
            },
            "IsHelloWorldExample": {
                "Type": "Choice",
                "Choices": [
                    {
                        "Variable": "$.IsHelloWorldExample",
                        "BooleanEquals": True,
                        "Next": "WaitState",
                    }
                ],
                "Default": "FailState",
            },
            "WaitState": {
                "Type": "Wait",
                "SecondsPath": "$.ExecutionWaitTimeInSeconds",
                "Next": "ParallelProcessing",
            },
            "ParallelProcessing": {
                "Type": "Parallel",
                "Branches": [
                    {
                        "StartAt": f"Process{n}",
                        "States": {
                            f"Process{n}": {
                                "Type": "Pass",
                                "Result": {"message": f"Processing task {n}"},
                                "End": True,
                            }
                        },
                    }
                    for n in (1, 2)
                ],
                "Next": "CheckpointState",
            },
            "CheckpointState": {
                "Type": "Pass",
                "Result": {"CheckpointMessage": "Workflow completed successfully!"},
                "Next": "SuccessState",
            },
            "SuccessState": {"Type": "Succeed"},
            "FailState": {
                "Type": "Fail",
                "Error": "NotHelloWorldExample",
                "Cause": "The IsHelloWorldExample value was false",
            },
        },
    }


class StepFunctionsOptions(TutorialOptions):
    """Options for the Step Functions tutorial."""

    role_arn: str | None = Field(
        None,
        description="Existing execution role; no IAM resources are created when set",
        pattern=r"^arn:aws[a-z-]*:iam::\d{12}:role/.+$",
    )
    wait_seconds: int = Field(3, ge=0, le=60)


class StepFunctionsTutorial(BaseTutorial):
    """Hello World state machine walkthrough."""

    slug = "step-functions-gs"
    title = "Getting started with AWS Step Functions"
    description = (
        "Create an IAM role for Step Functions, a Hello World state machine, "
        "start an execution and read its output."
    )
    default_region = "us-west-2"
    options_model = StepFunctionsOptions

    async def run(self, session: TutorialSession, options: StepFunctionsOptions) -> None:
        role_arn = options.role_arn or await self._create_role(session)

        machine = await session.create(
            "stepfunctions",
            "create_state_machine",
            resource_type="stepfunctions:state-machine",
            id_query="stateMachineArn",
            label=session.name("state-machine"),
            description="Step 3: Creating the state machine",
            params={
                "name": session.name("state-machine"),
                "definition": json.dumps(hello_world_definition(options.wait_seconds)),
                "roleArn": role_arn,
                "type": "STANDARD",
            },
        )

        execution = await session.call(
            "stepfunctions",
            "start_execution",
            description="Step 4: Starting an execution",
            stateMachineArn=machine.identifier,
            name=session.name("hello"),
        )
        execution_arn = execution["executionArn"]

        result = await session.wait_for(
            "stepfunctions",
            "describe_execution",
            params={"executionArn": execution_arn},
            status_query="status",
            targets="SUCCEEDED",
            failure_states=("FAILED", "TIMED_OUT", "ABORTED"),
            interval=min(session.settings.poll_interval, 5.0),
            description="execution",
        )

        session.output("state_machine_arn", machine.identifier)
        session.output("execution_arn", execution_arn)
        output = query(result, "output")
        if output:
            session.output("execution_output", json.loads(output))

    async def _create_role(self, session: TutorialSession) -> str:
        role_name = session.name("sfn-role")
        role = await session.create(
            "iam",
            "create_role",
            resource_type="iam:role",
            id_query="Role.RoleName",
            capture={"arn": "Role.Arn"},
            description="Step 1: Creating the execution role",
            params={
                "RoleName": role_name,
                "AssumeRolePolicyDocument": json.dumps(TRUST_POLICY),
            },
        )

        policy = await session.create(
            "iam",
            "create_policy",
            resource_type="iam:policy",
            id_query="Policy.Arn",
            label=session.name("sfn-policy"),
            description="Step 2: Creating and attaching the execution policy",
            params={
                "PolicyName": session.name("sfn-policy"),
                "PolicyDocument": json.dumps(EXECUTION_POLICY),
            },
        )
        await session.call(
            "iam", "attach_role_policy", RoleName=role.identifier, PolicyArn=policy.identifier
        )
        session.track(
            "iam:role-policy-attachment",
            policy.identifier,
            label=f"{policy.label} on {role.identifier}",
            attributes={"role_name": role.identifier},
        )

        await session.pause(IAM_PROPAGATION_DELAY, "the IAM role")
        return role.attributes["arn"]
