"""Getting started with Amazon MQ.

Stores generated broker credentials in Secrets Manager, creates a
single-instance ActiveMQ broker and reports its endpoints.
"""

import json
import logging
from typing import Final

from pydantic import Field

from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query
from tutorial_runner.utils.naming import generate_password
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

CONSOLE_PORT: Final = 8162
OPENWIRE_PORT: Final = 61617


class AmazonMQOptions(TutorialOptions):
    """Options for the Amazon MQ tutorial."""

    username: str = Field("admin", min_length=2, max_length=100)
    engine_version: str = "5.18"
    host_instance_type: str = "mq.t3.micro"
    allowed_cidr: str | None = Field(
        None,
        description="CIDR allowed to reach the web console and OpenWire port",
        pattern=r"^\d{1,3}(\.\d{1,3}){3}/\d{1,2}$",
    )


class AmazonMQTutorial(BaseTutorial):
    """ActiveMQ broker walkthrough."""

    slug = "amazon-mq-gs"
    title = "Getting started with Amazon MQ"
    description = (
        "Create an ActiveMQ broker whose credentials are kept in AWS Secrets "
        "Manager, wait until it is running and show how to connect to it."
    )
    options_model = AmazonMQOptions

    async def run(self, session: TutorialSession, options: AmazonMQOptions) -> None:
        broker_name = session.name("broker")
        password = generate_password()

        await session.create(
            "secretsmanager",
            "create_secret",
            resource_type="secretsmanager:secret",
            id_query="ARN",
            label=session.name("mq-credentials"),
            description="Step 1: Storing broker credentials in Secrets Manager",
            params={
                "Name": session.name("mq-credentials"),
                "Description": f"Amazon MQ broker credentials for {broker_name}",
                "SecretString": json.dumps({"username": options.username, "password": password}),
            },
        )

        broker = await session.create(
            "mq",
            "create_broker",
            resource_type="mq:broker",
            id_query="BrokerId",
            label=broker_name,
            capture={"arn": "BrokerArn"},
            description=f"Step 2: Creating ActiveMQ broker {broker_name}",
            params={
                "BrokerName": broker_name,
                "EngineType": "ACTIVEMQ",
                "EngineVersion": options.engine_version,
                "HostInstanceType": options.host_instance_type,
                "DeploymentMode": "SINGLE_INSTANCE",
                "AuthenticationStrategy": "SIMPLE",
                "Users": [
                    {"Username": options.username, "Password": password, "ConsoleAccess": True}
                ],
                "PubliclyAccessible": True,
                "AutoMinorVersionUpgrade": True,
            },
        )

        logger.info("Broker creation takes about 15 minutes")
        details = await session.wait_for(
            "mq",
            "describe_broker",
            params={"BrokerId": broker.identifier},
            status_query="BrokerState",
            targets="RUNNING",
            failure_states="CREATION_FAILED",
            interval=max(session.settings.poll_interval, 30.0),
            timeout=max(session.settings.poll_timeout, 1800.0),
            description="broker",
        )

        session.output("broker_id", broker.identifier)
        session.output("console_url", query(details, "BrokerInstances[0].ConsoleURL"))
        session.output("openwire_endpoint", query(details, "BrokerInstances[0].Endpoints[0]"))

        group_id = query(details, "SecurityGroups[0]")
        if options.allowed_cidr and group_id:
            for port in (CONSOLE_PORT, OPENWIRE_PORT):
                await session.call(
                    "ec2",
                    "authorize_security_group_ingress",
                    description=f"Step 3: Allowing {options.allowed_cidr} on port {port}",
                    GroupId=group_id,
                    IpPermissions=[
                        {
                            "IpProtocol": "tcp",
                            "FromPort": port,
                            "ToPort": port,
                            "IpRanges": [{"CidrIp": options.allowed_cidr}],
                        }
                    ],
                )
                session.track(
                    "ec2:security-group-ingress",
                    group_id,
                    label=f"{group_id} tcp/{port} from {options.allowed_cidr}",
                    attributes={"port": port, "cidr": options.allowed_cidr},
                )
        elif not options.allowed_cidr:
            logger.info("Pass --option allowed_cidr=<your-ip>/32 to open the console to your IP")
