"""Getting started with AWS Fault Injection Service.

Launches an instance managed by Systems Manager, guards it with a CPU alarm
and runs a CPU stress experiment against it.
"""

import json
import logging
from typing import Any, Final

from pydantic import Field

from tutorial_runner.aws.exceptions import TimeoutError
from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query, require
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

SSM_CORE_POLICY_ARN: Final = "arn:aws:iam::aws:policy/AmazonSSMManagedInstanceCore"
FIS_INLINE_POLICY_NAME: Final = "fis-ssm-send-command"
INSTANCE_PROFILE_DELAY: Final = 10.0
EXPERIMENT_FINAL_STATES: Final = ("completed", "stopped", "failed")

FIS_SSM_POLICY: Final[dict[str, Any]] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Action": ["ssm:SendCommand", "ssm:ListCommands", "ssm:ListCommandInvocations"],
            "Resource": "*",
        }
    ],
}


def trust_policy(service: str) -> dict[str, Any]:
    """Trust policy letting ``service`` assume a role."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": f"{service}.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ],
    }


def experiment_template(
    instance_arn: str,
    alarm_arn: str,
    role_arn: str,
    region: str,
    stress_seconds: int,
) -> dict[str, Any]:
    """Parameters for an experiment running the CPU stress SSM document."""
    return {
        "description": "Test CPU stress predefined SSM document",
        "targets": {
            "testInstance": {
                "resourceType": "aws:ec2:instance",
                "resourceArns": [instance_arn],
                "selectionMode": "ALL",
            }
        },
        "actions": {
            "runCpuStress": {
                "actionId": "aws:ssm:send-command",
                "parameters": {
                    "documentArn": f"arn:aws:ssm:{region}::document/AWSFIS-Run-CPU-Stress",
                    "documentParameters": json.dumps({"DurationSeconds": str(stress_seconds)}),
                    "duration": "PT5M",
                },
                "targets": {"Instances": "testInstance"},
            }
        },
        "stopConditions": [{"source": "aws:cloudwatch:alarm", "value": alarm_arn}],
        "roleArn": role_arn,
        "tags": {"Name": "FIS-CPU-Stress-Experiment"},
    }


class FISOptions(TutorialOptions):
    """Options for the Fault Injection Service tutorial."""

    instance_type: str = "t3.micro"
    stress_seconds: int = Field(120, ge=30, le=300)
    cpu_threshold: float = Field(50.0, gt=0, le=100)


class FISTutorial(BaseTutorial):
    """CPU stress experiment walkthrough."""

    slug = "fis-gs"
    title = "Getting started with AWS Fault Injection Service"
    description = (
        "Create IAM roles for FIS and for an SSM-managed instance, launch the "
        "instance, add a CPU alarm as stop condition and run a CPU stress "
        "experiment template against the instance."
    )
    options_model = FISOptions

    async def run(self, session: TutorialSession, options: FISOptions) -> None:
        region = session.region or "us-east-1"
        identity = await session.call("sts", "get_caller_identity")
        account_id = require(identity, "Account", "account ID")

        fis_role = await session.create(
            "iam",
            "create_role",
            resource_type="iam:role",
            id_query="Role.RoleName",
            capture={"arn": "Role.Arn"},
            description="Step 1: Creating IAM role for AWS FIS",
            params={
                "RoleName": session.name("fis-role"),
                "AssumeRolePolicyDocument": json.dumps(trust_policy("fis")),
            },
        )
        await session.call(
            "iam",
            "put_role_policy",
            RoleName=fis_role.identifier,
            PolicyName=FIS_INLINE_POLICY_NAME,
            PolicyDocument=json.dumps(FIS_SSM_POLICY),
        )
        session.track(
            "iam:role-policy",
            FIS_INLINE_POLICY_NAME,
            label=f"{FIS_INLINE_POLICY_NAME} on {fis_role.identifier}",
            attributes={"role_name": fis_role.identifier},
        )

        profile_name = await self._create_instance_profile(session)
        instance_id = await self._launch_instance(session, options, profile_name)

        alarm_name = session.name("cpu-alarm")
        await session.call(
            "cloudwatch",
            "put_metric_alarm",
            description=f"Step 4: Creating CloudWatch alarm {alarm_name}",
            AlarmName=alarm_name,
            AlarmDescription=f"Alarm when CPU exceeds {options.cpu_threshold:.0f}%",
            MetricName="CPUUtilization",
            Namespace="AWS/EC2",
            Statistic="Maximum",
            Period=60,
            Threshold=options.cpu_threshold,
            ComparisonOperator="GreaterThanOrEqualToThreshold",
            Dimensions=[{"Name": "InstanceId", "Value": instance_id}],
            EvaluationPeriods=1,
        )
        session.track("cloudwatch:alarm", alarm_name)
        alarms = await session.call("cloudwatch", "describe_alarms", AlarmNames=[alarm_name])
        alarm_arn = require(alarms, "MetricAlarms[0].AlarmArn", "alarm ARN")

        # A stop condition alarm must not be in ALARM when the experiment starts
        try:
            await session.wait_for(
                "cloudwatch",
                "describe_alarms",
                params={"AlarmNames": [alarm_name]},
                status_query="MetricAlarms[0].StateValue",
                targets="OK",
                interval=max(session.settings.poll_interval, 30.0),
                description="alarm",
            )
        except TimeoutError:
            logger.warning("Alarm is still not OK; the experiment may fail to start")

        template = await session.create(
            "fis",
            "create_experiment_template",
            resource_type="fis:experiment-template",
            id_query="experimentTemplate.id",
            description="Step 5: Creating the experiment template",
            params=experiment_template(
                instance_arn=f"arn:aws:ec2:{region}:{account_id}:instance/{instance_id}",
                alarm_arn=alarm_arn,
                role_arn=fis_role.attributes["arn"],
                region=region,
                stress_seconds=options.stress_seconds,
            ),
        )

        experiment = await session.create(
            "fis",
            "start_experiment",
            resource_type="fis:experiment",
            id_query="experiment.id",
            description="Step 6: Starting the experiment",
            params={
                "experimentTemplateId": template.identifier,
                "tags": {"Name": "FIS-CPU-Stress-Run"},
            },
        )

        result = await session.wait_for(
            "fis",
            "get_experiment",
            params={"id": experiment.identifier},
            status_query="experiment.state.status",
            targets=EXPERIMENT_FINAL_STATES,
            description="experiment",
        )
        state = query(result, "experiment.state.status")
        reason = query(result, "experiment.state.reason")
        if state != "completed":
            logger.warning(f"Experiment ended {state}: {reason}")

        session.output("experiment_template_id", template.identifier)
        session.output("experiment_id", experiment.identifier)
        session.output("experiment_state", state)

    async def _create_instance_profile(self, session: TutorialSession) -> str:
        role = await session.create(
            "iam",
            "create_role",
            resource_type="iam:role",
            id_query="Role.RoleName",
            description="Step 2: Creating IAM role for the EC2 instance",
            params={
                "RoleName": session.name("fis-ec2-role"),
                "AssumeRolePolicyDocument": json.dumps(trust_policy("ec2")),
            },
        )
        await session.call(
            "iam", "attach_role_policy", RoleName=role.identifier, PolicyArn=SSM_CORE_POLICY_ARN
        )
        session.track(
            "iam:role-policy-attachment",
            SSM_CORE_POLICY_ARN,
            label=f"AmazonSSMManagedInstanceCore on {role.identifier}",
            attributes={"role_name": role.identifier},
        )

        profile = await session.create(
            "iam",
            "create_instance_profile",
            resource_type="iam:instance-profile",
            id_query="InstanceProfile.InstanceProfileName",
            attributes={"role_name": role.identifier},
            params={"InstanceProfileName": session.name("fis-profile")},
        )
        await session.call(
            "iam",
            "add_role_to_instance_profile",
            InstanceProfileName=profile.identifier,
            RoleName=role.identifier,
        )
        await session.pause(INSTANCE_PROFILE_DELAY, "the instance profile")
        return profile.identifier

    async def _launch_instance(
        self, session: TutorialSession, options: FISOptions, profile_name: str
    ) -> str:
        images = await session.call(
            "ec2",
            "describe_images",
            description="Step 3: Finding the latest Amazon Linux 2023 AMI",
            Owners=["amazon"],
            Filters=[
                {"Name": "name", "Values": ["al2023-ami-2023*-x86_64"]},
                {"Name": "state", "Values": ["available"]},
            ],
        )
        image_id = require(images, "sort_by(Images, &CreationDate)[-1].ImageId", "AMI ID")

        instance = await session.create(
            "ec2",
            "run_instances",
            resource_type="ec2:instance",
            id_query="Instances[0].InstanceId",
            label=session.name("fis-instance"),
            description="Launching the experiment target",
            params={
                "ImageId": image_id,
                "InstanceType": options.instance_type,
                "IamInstanceProfile": {"Name": profile_name},
                "MinCount": 1,
                "MaxCount": 1,
                "TagSpecifications": [
                    {
                        "ResourceType": "instance",
                        "Tags": [{"Key": "Name", "Value": session.name("fis-instance")}],
                    }
                ],
            },
        )
        await session.call("ec2", "monitor_instances", InstanceIds=[instance.identifier])

        await session.wait(
            "ec2",
            "instance_running",
            description="Waiting for the instance to start",
            InstanceIds=[instance.identifier],
        )
        await session.wait(
            "ec2",
            "instance_status_ok",
            description="Waiting for the instance status checks",
            InstanceIds=[instance.identifier],
        )
        session.output("instance_id", instance.identifier)
        return instance.identifier
