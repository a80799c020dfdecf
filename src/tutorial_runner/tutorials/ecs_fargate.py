"""Getting started with Amazon ECS on Fargate.

Runs a small web server as a Fargate service in the default VPC and reports
the public address of its task.
"""

import json
import logging
from typing import Any, Final

from pydantic import Field

from tutorial_runner.constants import IAM_PROPAGATION_DELAY
from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query, require
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

EXECUTION_POLICY_ARN: Final = (
    "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"
)
CONTAINER_NAME: Final = "fargate-app"
HTTP_PORT: Final = 80

SAMPLE_PAGE: Final = (
    "<html> <head> <title>Amazon ECS Sample App</title> <style>body {margin-top: 40px; "
    "background-color: #333;} </style> </head><body> <div style=color:white;text-align:center> "
    "<h1>Amazon ECS Sample App</h1> <h2>Congratulations!</h2> <p>Your application is now "
    "running on a container in Amazon ECS.</p> </div></body></html>"
)

TRUST_POLICY: Final[dict[str, Any]] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "ecs-tasks.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


def task_definition(family: str, execution_role_arn: str, image: str) -> dict[str, Any]:
    """Fargate task definition serving ``SAMPLE_PAGE`` with httpd."""
    return {
        "family": family,
        "networkMode": "awsvpc",
        "requiresCompatibilities": ["FARGATE"],
        "cpu": "256",
        "memory": "512",
        "executionRoleArn": execution_role_arn,
        "containerDefinitions": [
            {
                "name": CONTAINER_NAME,
                "image": image,
                "portMappings": [
                    {"containerPort": HTTP_PORT, "hostPort": HTTP_PORT, "protocol": "tcp"}
                ],
                "essential": True,
                "entryPoint": ["sh", "-c"],
                "command": [
                    f"/bin/sh -c \"echo '{SAMPLE_PAGE}' > /usr/local/apache2/htdocs/index.html "
                    '&& httpd-foreground"'
                ],
            }
        ],
    }


class ECSFargateOptions(TutorialOptions):
    """Options for the ECS Fargate tutorial."""

    image: str = "public.ecr.aws/docker/library/httpd:latest"
    desired_count: int = Field(1, ge=1, le=3)
    allowed_cidr: str = Field("0.0.0.0/0", pattern=r"^\d{1,3}(\.\d{1,3}){3}/\d{1,2}$")


class ECSFargateTutorial(BaseTutorial):
    """Fargate service walkthrough."""

    slug = "ecs-fargate-gs"
    title = "Getting started with Amazon ECS using Fargate"
    description = (
        "Create a task execution role, an ECS cluster, a Fargate task definition "
        "running httpd and a service in the default VPC, then show the public "
        "address of the running task."
    )
    options_model = ECSFargateOptions

    async def run(self, session: TutorialSession, options: ECSFargateOptions) -> None:
        role_arn = await self._create_execution_role(session)

        cluster = await session.create(
            "ecs",
            "create_cluster",
            resource_type="ecs:cluster",
            id_query="cluster.clusterName",
            capture={"arn": "cluster.clusterArn"},
            description="Step 2: Creating the ECS cluster",
            params={"clusterName": session.name("cluster")},
        )

        family = session.name("task")
        task = await session.create(
            "ecs",
            "register_task_definition",
            resource_type="ecs:task-definition",
            id_query="taskDefinition.taskDefinitionArn",
            label=family,
            description="Step 3: Registering the task definition",
            params=task_definition(family, role_arn, options.image),
        )

        vpcs = await session.call(
            "ec2",
            "describe_vpcs",
            description="Step 4: Setting up networking in the default VPC",
            Filters=[{"Name": "is-default", "Values": ["true"]}],
        )
        vpc_id = require(vpcs, "Vpcs[0].VpcId", "default VPC ID")
        subnets = await session.call(
            "ec2", "describe_subnets", Filters=[{"Name": "vpc-id", "Values": [vpc_id]}]
        )
        subnet_ids = require(subnets, "Subnets[].SubnetId", "default VPC subnets")

        group = await session.create(
            "ec2",
            "create_security_group",
            resource_type="ec2:security-group",
            id_query="GroupId",
            label=session.name("sg"),
            params={
                "GroupName": session.name("sg"),
                "Description": "Security group for ECS Fargate tutorial - HTTP access",
                "VpcId": vpc_id,
            },
        )
        await session.call(
            "ec2",
            "authorize_security_group_ingress",
            GroupId=group.identifier,
            IpPermissions=[
                {
                    "IpProtocol": "tcp",
                    "FromPort": HTTP_PORT,
                    "ToPort": HTTP_PORT,
                    "IpRanges": [{"CidrIp": options.allowed_cidr}],
                }
            ],
        )

        service = await session.create(
            "ecs",
            "create_service",
            resource_type="ecs:service",
            id_query="service.serviceName",
            attributes={"cluster": cluster.identifier},
            description="Step 5: Creating the Fargate service",
            params={
                "cluster": cluster.identifier,
                "serviceName": session.name("service"),
                "taskDefinition": task.identifier,
                "desiredCount": options.desired_count,
                "launchType": "FARGATE",
                "networkConfiguration": {
                    "awsvpcConfiguration": {
                        "subnets": subnet_ids,
                        "securityGroups": [group.identifier],
                        "assignPublicIp": "ENABLED",
                    }
                },
            },
        )

        await session.wait(
            "ecs",
            "services_stable",
            description="Waiting for the service to become stable",
            cluster=cluster.identifier,
            services=[service.identifier],
        )

        await self._show_public_address(session, cluster.identifier, service.identifier)
        session.output("cluster", cluster.identifier)
        session.output("service", service.identifier)

    async def _create_execution_role(self, session: TutorialSession) -> str:
        role = await session.create(
            "iam",
            "create_role",
            resource_type="iam:role",
            id_query="Role.RoleName",
            capture={"arn": "Role.Arn"},
            description="Step 1: Creating the task execution role",
            params={
                "RoleName": session.name("ecs-exec-role"),
                "AssumeRolePolicyDocument": json.dumps(TRUST_POLICY),
            },
        )
        await session.call(
            "iam", "attach_role_policy", RoleName=role.identifier, PolicyArn=EXECUTION_POLICY_ARN
        )
        session.track(
            "iam:role-policy-attachment",
            EXECUTION_POLICY_ARN,
            label=f"AmazonECSTaskExecutionRolePolicy on {role.identifier}",
            attributes={"role_name": role.identifier},
        )
        await session.pause(IAM_PROPAGATION_DELAY, "the task execution role")
        return role.attributes["arn"]

    async def _show_public_address(
        self, session: TutorialSession, cluster: str, service: str
    ) -> None:
        tasks = await session.call("ecs", "list_tasks", cluster=cluster, serviceName=service)
        task_arn = query(tasks, "taskArns[0]")
        if not task_arn:
            logger.warning("The service has no running task yet")
            return

        described = await session.call("ecs", "describe_tasks", cluster=cluster, tasks=[task_arn])
        eni_id = query(
            described,
            "tasks[0].attachments[0].details[?name=='networkInterfaceId'].value | [0]",
        )
        if not eni_id:
            logger.warning(f"Task {task_arn} has no network interface yet")
            return

        interfaces = await session.call(
            "ec2", "describe_network_interfaces", NetworkInterfaceIds=[eni_id]
        )
        public_ip = query(interfaces, "NetworkInterfaces[0].Association.PublicIp")
        session.output("task_arn", task_arn)
        if public_ip:
            session.output("url", f"http://{public_ip}")
        else:
            logger.warning("The task has no public IP address")
