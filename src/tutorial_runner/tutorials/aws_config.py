"""Getting started with AWS Config.

Creates a delivery bucket, an SNS topic and a service role, then sets up a
configuration recorder and delivery channel and starts recording.
"""

import json
import logging
from typing import Any, Final

from pydantic import Field

from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query, require
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

CONFIG_ROLE_POLICY_ARN: Final = "arn:aws:iam::aws:policy/service-role/AWS_ConfigRole"
DELIVERY_POLICY_NAME: Final = "config-delivery-permissions"
DEFAULT_RECORDER_NAME: Final = "default"
DEFAULT_CHANNEL_NAME: Final = "default"
ROLE_PROPAGATION_DELAY: Final = 15.0

TRUST_POLICY: Final[dict[str, Any]] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "config.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


def delivery_policy(bucket: str, account_id: str, topic_arn: str) -> dict[str, Any]:
    """Inline policy letting AWS Config write to the bucket and publish to the topic."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": ["s3:PutObject"],
                "Resource": f"arn:aws:s3:::{bucket}/AWSLogs/{account_id}/*",
                "Condition": {"StringLike": {"s3:x-amz-acl": "bucket-owner-full-control"}},
            },
            {
                "Effect": "Allow",
                "Action": ["s3:GetBucketAcl"],
                "Resource": f"arn:aws:s3:::{bucket}",
            },
            {"Effect": "Allow", "Action": "sns:Publish", "Resource": topic_arn},
        ],
    }


class ConfigOptions(TutorialOptions):
    """Options for the AWS Config tutorial."""

    delivery_frequency: str = Field(
        "Six_Hours",
        pattern=r"^(One_Hour|Three_Hours|Six_Hours|Twelve_Hours|TwentyFour_Hours)$",
    )
    include_global_resources: bool = True


class ConfigTutorial(BaseTutorial):
    """AWS Config recorder and delivery channel walkthrough."""

    slug = "config-gs"
    title = "Getting started with AWS Config"
    description = (
        "Create an S3 bucket, an SNS topic and an IAM role for AWS Config, set up "
        "a configuration recorder and delivery channel, and start recording."
    )
    options_model = ConfigOptions

    async def run(self, session: TutorialSession, options: ConfigOptions) -> None:
        region = session.region or "us-east-1"
        identity = await session.call("sts", "get_caller_identity")
        account_id = require(identity, "Account", "account ID")

        bucket_name = session.name("config", max_length=63)
        bucket_params: dict[str, Any] = {"Bucket": bucket_name}
        if region != "us-east-1":
            bucket_params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        await session.call(
            "s3",
            "create_bucket",
            description=f"Step 1: Creating S3 bucket {bucket_name}",
            **bucket_params,
        )
        session.track("s3:bucket", bucket_name)
        await session.call(
            "s3",
            "put_public_access_block",
            Bucket=bucket_name,
            PublicAccessBlockConfiguration={
                "BlockPublicAcls": True,
                "IgnorePublicAcls": True,
                "BlockPublicPolicy": True,
                "RestrictPublicBuckets": True,
            },
        )

        topic = await session.create(
            "sns",
            "create_topic",
            resource_type="sns:topic",
            id_query="TopicArn",
            label=session.name("config-topic"),
            description="Step 2: Creating SNS topic for configuration notifications",
            params={"Name": session.name("config-topic")},
        )

        role_arn = await self._create_role(session, bucket_name, account_id, topic.identifier)

        recorder_name = await self._start_recorder(session, role_arn, options)

        channels = await session.call(
            "config",
            "describe_delivery_channels",
            description="Step 5: Setting up the delivery channel",
        )
        channel_name = query(channels, "DeliveryChannels[0].name") or DEFAULT_CHANNEL_NAME
        await session.call(
            "config",
            "put_delivery_channel",
            DeliveryChannel={
                "name": channel_name,
                "s3BucketName": bucket_name,
                "snsTopicARN": topic.identifier,
                "configSnapshotDeliveryProperties": {
                    "deliveryFrequency": options.delivery_frequency
                },
            },
        )
        if not query(channels, "DeliveryChannels"):
            session.track(
                "config:delivery-channel",
                channel_name,
                attributes={"recorder_name": recorder_name},
            )
        else:
            logger.info(f"Pointed existing delivery channel {channel_name} at {bucket_name}")

        await session.call(
            "config",
            "start_configuration_recorder",
            description="Step 6: Starting the configuration recorder",
            ConfigurationRecorderName=recorder_name,
        )

        status = await session.call(
            "config",
            "describe_configuration_recorder_status",
            ConfigurationRecorderNames=[recorder_name],
        )
        session.output("recorder_name", recorder_name)
        session.output("recording", query(status, "ConfigurationRecordersStatus[0].recording"))
        session.output("delivery_bucket", bucket_name)

    async def _create_role(
        self, session: TutorialSession, bucket: str, account_id: str, topic_arn: str
    ) -> str:
        role = await session.create(
            "iam",
            "create_role",
            resource_type="iam:role",
            id_query="Role.RoleName",
            capture={"arn": "Role.Arn"},
            description="Step 3: Creating the AWS Config service role",
            params={
                "RoleName": session.name("config-role"),
                "AssumeRolePolicyDocument": json.dumps(TRUST_POLICY),
            },
        )
        await session.call(
            "iam", "attach_role_policy", RoleName=role.identifier, PolicyArn=CONFIG_ROLE_POLICY_ARN
        )
        session.track(
            "iam:role-policy-attachment",
            CONFIG_ROLE_POLICY_ARN,
            label=f"AWS_ConfigRole on {role.identifier}",
            attributes={"role_name": role.identifier},
        )

        await session.call(
            "iam",
            "put_role_policy",
            RoleName=role.identifier,
            PolicyName=DELIVERY_POLICY_NAME,
            PolicyDocument=json.dumps(delivery_policy(bucket, account_id, topic_arn)),
        )
        session.track(
            "iam:role-policy",
            DELIVERY_POLICY_NAME,
            label=f"{DELIVERY_POLICY_NAME} on {role.identifier}",
            attributes={"role_name": role.identifier},
        )

        await session.pause(ROLE_PROPAGATION_DELAY, "the AWS Config role")
        return role.attributes["arn"]

    async def _start_recorder(
        self, session: TutorialSession, role_arn: str, options: ConfigOptions
    ) -> str:
        """Create the recorder, or reuse the one the region already has.

        A region holds at most one recorder. An existing recorder keeps its
        own role and is never tracked, so teardown leaves it in place.
        """
        existing = await session.call(
            "config",
            "describe_configuration_recorders",
            description="Step 4: Setting up the configuration recorder",
        )
        name = query(existing, "ConfigurationRecorders[0].name")
        if name:
            logger.info(f"Reusing existing configuration recorder {name}")
            return name

        await session.call(
            "config",
            "put_configuration_recorder",
            ConfigurationRecorder={
                "name": DEFAULT_RECORDER_NAME,
                "roleARN": role_arn,
                "recordingGroup": {
                    "allSupported": True,
                    "includeGlobalResourceTypes": options.include_global_resources,
                },
            },
        )
        session.track("config:configuration-recorder", DEFAULT_RECORDER_NAME)
        return DEFAULT_RECORDER_NAME
