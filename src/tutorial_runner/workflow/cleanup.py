"""Typed cleanup handlers and best-effort teardown.

Every resource type a tutorial creates has a cleanup handler registered under
its ``service:kind`` type. Most handlers are a list of declarative
``CleanupStep`` objects (one AWS call or waiter each); a few resources need
custom logic, such as emptying an S3 bucket before deleting it.

``Teardown`` walks a ledger newest-first and deletes what it can. A failure
on one resource is reported and the walk continues; AWS errors never escape.

Example:
    >>> registry = default_registry()
    >>> report = await Teardown(backend, registry).run(ledger)
    >>> report.summary()
    '5 deleted, 0 failed, 0 skipped'
"""

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Any, Final, Protocol, runtime_checkable

from tutorial_runner.aws.backend import AWSBackend
from tutorial_runner.aws.cli import render_cli_command
from tutorial_runner.aws.exceptions import (
    AWSError,
    ResourceInUseError,
    ResourceNotFoundError,
    TimeoutError,
)
from tutorial_runner.constants import (
    DEFAULT_CLEANUP_RETRY_ATTEMPTS,
    DEFAULT_CLEANUP_RETRY_DELAY,
    QUERY_POLL_INTERVAL,
)
from tutorial_runner.exceptions import TutorialError
from tutorial_runner.models.resources import (
    CleanupStep,
    TeardownOutcome,
    TeardownReport,
    TeardownResult,
    TrackedResource,
)
from tutorial_runner.utils.audit_logger import AuditLogger
from tutorial_runner.workflow.ledger import ResourceLedger
from tutorial_runner.workflow.poller import wait_for_status

logger: Final = logging.getLogger(__name__)

# Deleting a Neptune cluster or an MQ broker takes minutes
GONE_POLL_INTERVAL: Final = 15.0
GONE_POLL_TIMEOUT: Final = 1200.0


@runtime_checkable
class CleanupHandler(Protocol):
    """Deletes one resource."""

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        """Delete the resource.

        Raises:
            ResourceNotFoundError: If the resource no longer exists.
            AWSError: If deletion fails.
        """
        ...


class StepCleanup:
    """Cleanup handler that runs declarative steps in order.

    Args:
        steps: Steps to run. Error codes listed on a step count as success
            for that step.

    Example:
        >>> handler = StepCleanup([
        ...     CleanupStep(service="ec2", operation="delete_subnet",
        ...                 params={"SubnetId": "{identifier}"}),
        ... ])
    """

    def __init__(self, steps: Iterable[CleanupStep]) -> None:
        self.steps = list(steps)
        if not self.steps:
            raise ValueError("StepCleanup needs at least one step")

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        for step in self.steps:
            await run_step(backend, step, resource)

    def describe(self, resource: TrackedResource) -> list[str]:
        """AWS CLI commands equivalent to this handler."""
        return [
            render_cli_command(
                step.service,
                step.waiter if step.is_waiter else step.operation,  # type: ignore[arg-type]
                step.render(resource),
                waiter=step.is_waiter,
            )
            for step in self.steps
        ]


async def run_step(backend: AWSBackend, step: CleanupStep, resource: TrackedResource) -> None:
    """Run one cleanup step against a resource.

    Args:
        backend: Backend to execute with.
        step: Step to run.
        resource: Resource the step applies to.

    Raises:
        AWSError: If the step fails with an error code it does not ignore.
    """
    params = step.render(resource)
    if step.description:
        logger.info(step.description.format_map(resource.template_values()))

    try:
        if step.is_waiter:
            await backend.wait(step.service, step.waiter, **params)  # type: ignore[arg-type]
        else:
            await backend.call(step.service, step.operation, **params)  # type: ignore[arg-type]
    except AWSError as e:
        if e.error_code and e.error_code in step.ignore_error_codes:
            logger.debug(f"Ignoring {e.error_code} from {step.operation or step.waiter}")
            return
        raise


async def wait_until_gone(
    backend: AWSBackend,
    service: str,
    operation: str,
    params: dict[str, Any],
    description: str,
    interval: float = GONE_POLL_INTERVAL,
    timeout: float = GONE_POLL_TIMEOUT,
) -> None:
    """Poll a describe call until the resource is reported as not found.

    Args:
        backend: Backend to execute with.
        service: AWS service name.
        operation: Describe operation.
        params: Describe parameters.
        description: What is being deleted, used in messages.
        interval: Seconds between polls.
        timeout: Maximum seconds to wait.

    Raises:
        TimeoutError: If the resource still exists after the timeout.
    """
    deadline = time.monotonic() + timeout
    logger.info(f"Waiting for {description} to be deleted...")
    while True:
        try:
            await backend.call(service, operation, **params)
        except ResourceNotFoundError:
            logger.info(f"{description} deleted")
            return

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(
                f"{description} still exists after {timeout:.0f}s",
                service=service,
                operation=operation,
            )
        await asyncio.sleep(min(interval, remaining))


class S3BucketCleanup(StepCleanup):
    """Empties a bucket (all object versions) and deletes it."""

    def __init__(self) -> None:
        super().__init__(
            [
                CleanupStep(
                    service="s3",
                    operation="delete_bucket",
                    params={"Bucket": "{identifier}"},
                )
            ]
        )

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        await self.empty_bucket(backend, resource.identifier)
        await super().__call__(backend, resource)

    @staticmethod
    async def empty_bucket(backend: AWSBackend, bucket: str) -> int:
        """Delete every object version and delete marker in a bucket.

        Returns:
            Number of deleted entries.
        """
        deleted = 0
        params: dict[str, Any] = {"Bucket": bucket}
        while True:
            page = await backend.call("s3", "list_object_versions", **params)
            objects = [
                {"Key": item["Key"], "VersionId": item["VersionId"]}
                for item in page.get("Versions", []) + page.get("DeleteMarkers", [])
            ]
            if objects:
                await backend.call(
                    "s3",
                    "delete_objects",
                    Bucket=bucket,
                    Delete={"Objects": objects, "Quiet": True},
                )
                deleted += len(objects)

            if not page.get("IsTruncated"):
                break
            params = {
                "Bucket": bucket,
                "KeyMarker": page.get("NextKeyMarker"),
                "VersionIdMarker": page.get("NextVersionIdMarker"),
            }

        if deleted:
            logger.info(f"Removed {deleted} objects from s3://{bucket}")
        return deleted

    def describe(self, resource: TrackedResource) -> list[str]:
        return [
            f"aws s3 rm s3://{resource.identifier} --recursive",
            *super().describe(resource),
        ]


class AthenaQueryCleanup:
    """Drops an Athena database or table by running a DDL query.

    The resource must carry an ``output_location`` attribute (the S3 query
    results location); tables also need ``database``.

    Args:
        statement: DDL template filled from the resource's template values.
    """

    def __init__(self, statement: str) -> None:
        self.statement = statement

    def request(self, resource: TrackedResource) -> dict[str, Any]:
        """Build the start_query_execution parameters for a resource."""
        values = resource.template_values()
        return {
            "QueryString": self.statement.format_map(values),
            "ResultConfiguration": {"OutputLocation": values["output_location"]},
        }

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        response = await backend.call("athena", "start_query_execution", **self.request(resource))
        query_id = response["QueryExecutionId"]
        await wait_for_status(
            lambda: backend.call("athena", "get_query_execution", QueryExecutionId=query_id),
            status_query="QueryExecution.Status.State",
            targets="SUCCEEDED",
            failure_states=("FAILED", "CANCELLED"),
            interval=QUERY_POLL_INTERVAL,
            description=f"query '{self.request(resource)['QueryString']}'",
        )

    def describe(self, resource: TrackedResource) -> list[str]:
        return [render_cli_command("athena", "start_query_execution", self.request(resource))]


class NeptuneClusterCleanup(StepCleanup):
    """Deletes a Neptune cluster and waits until it is gone.

    Neptune has no cluster waiter, and the subnet group cannot be deleted
    while the cluster still exists.
    """

    def __init__(self) -> None:
        super().__init__(
            [
                CleanupStep(
                    service="neptune",
                    operation="delete_db_cluster",
                    params={"DBClusterIdentifier": "{identifier}", "SkipFinalSnapshot": True},
                )
            ]
        )

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        await super().__call__(backend, resource)
        await wait_until_gone(
            backend,
            "neptune",
            "describe_db_clusters",
            {"DBClusterIdentifier": resource.identifier},
            description=f"Neptune cluster {resource.identifier}",
        )


class MQBrokerCleanup(StepCleanup):
    """Deletes an Amazon MQ broker and waits until it is gone."""

    def __init__(self) -> None:
        super().__init__(
            [
                CleanupStep(
                    service="mq", operation="delete_broker", params={"BrokerId": "{identifier}"}
                )
            ]
        )

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        await super().__call__(backend, resource)
        await wait_until_gone(
            backend,
            "mq",
            "describe_broker",
            {"BrokerId": resource.identifier},
            description=f"broker {resource.label}",
        )


class LightsailDiskCleanup(StepCleanup):
    """Detaches a Lightsail disk, waits for the detach to finish and deletes it.

    ``detach_disk`` returns while the disk is still attached; deleting it
    before ``isAttached`` turns false fails.

    Args:
        interval: Seconds between ``get_disk`` polls.
        timeout: Maximum seconds to wait for the detach.
    """

    def __init__(self, interval: float = 5.0, timeout: float = 300.0) -> None:
        super().__init__(
            [
                _step(
                    "lightsail",
                    "detach_disk",
                    ignore=("InvalidInputException", "OperationFailureException"),
                    diskName="{identifier}",
                ),
                _step("lightsail", "delete_disk", diskName="{identifier}"),
            ]
        )
        self.interval = interval
        self.timeout = timeout

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        detach, delete = self.steps
        await run_step(backend, detach, resource)
        await wait_for_status(
            lambda: backend.call("lightsail", "get_disk", diskName=resource.identifier),
            status_query="to_string(disk.isAttached)",
            targets="false",
            interval=self.interval,
            timeout=self.timeout,
            description=f"disk {resource.label} detach",
        )
        await run_step(backend, delete, resource)


class NetworkFirewallCleanup(StepCleanup):
    """Deletes a Network Firewall and waits until it is gone.

    The firewall policy and the subnets hosting the firewall endpoints stay
    in use until deletion completes.
    """

    def __init__(self) -> None:
        super().__init__([_step("network-firewall", "delete_firewall", FirewallArn="{identifier}")])

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        await super().__call__(backend, resource)
        await wait_until_gone(
            backend,
            "network-firewall",
            "describe_firewall",
            {"FirewallArn": resource.identifier},
            description=f"firewall {resource.label}",
        )


class FeatureGroupCleanup(StepCleanup):
    """Deletes a SageMaker feature group and waits until it is gone."""

    def __init__(self) -> None:
        super().__init__(
            [_step("sagemaker", "delete_feature_group", FeatureGroupName="{identifier}")]
        )

    async def __call__(self, backend: AWSBackend, resource: TrackedResource) -> None:
        await super().__call__(backend, resource)
        await wait_until_gone(
            backend,
            "sagemaker",
            "describe_feature_group",
            {"FeatureGroupName": resource.identifier},
            description=f"feature group {resource.identifier}",
            interval=5.0,
        )


class CleanupRegistry:
    """Maps resource types to cleanup handlers.

    Example:
        >>> registry = CleanupRegistry()
        >>> registry.register("logs:log-group", [
        ...     CleanupStep(service="logs", operation="delete_log_group",
        ...                 params={"logGroupName": "{identifier}"}),
        ... ])
        >>> "logs:log-group" in registry
        True
    """

    def __init__(self) -> None:
        self._handlers: dict[str, CleanupHandler] = {}

    def register(
        self,
        resource_type: str,
        handler: CleanupHandler | Iterable[CleanupStep],
    ) -> None:
        """Register (or replace) the handler for a resource type.

        Args:
            resource_type: Resource type in ``service:kind`` form.
            handler: A handler, or a list of steps wrapped in StepCleanup.
        """
        if not callable(handler):
            handler = StepCleanup(handler)
        if resource_type in self._handlers:
            logger.debug(f"Replacing cleanup handler for {resource_type}")
        self._handlers[resource_type] = handler

    def get(self, resource_type: str) -> CleanupHandler | None:
        """Get the handler for a resource type, or None."""
        return self._handlers.get(resource_type)

    def types(self) -> list[str]:
        """Registered resource types, sorted."""
        return sorted(self._handlers)

    def manual_commands(self, resource: TrackedResource) -> list[str]:
        """AWS CLI commands a user can run to delete a resource by hand.

        Returns:
            Command lines, or a comment line when no handler is known.
        """
        handler = self.get(resource.resource_type)
        describe = getattr(handler, "describe", None)
        if describe is None:
            return [f"# delete {resource.resource_type} {resource.identifier} manually"]
        try:
            return list(describe(resource))
        except KeyError as e:
            problem = f"missing {e}"
        except ValueError as e:
            problem = f"bad placeholder: {e}"
        return [f"# delete {resource.resource_type} {resource.identifier} manually ({problem})"]

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def _step(service: str, operation: str, /, ignore: tuple[str, ...] = (), **params: Any) -> CleanupStep:
    return CleanupStep(
        service=service, operation=operation, params=params, ignore_error_codes=ignore
    )


def _wait(service: str, waiter: str, /, **params: Any) -> CleanupStep:
    return CleanupStep(service=service, waiter=waiter, params=params)


def default_registry() -> CleanupRegistry:
    """Create a registry with handlers for every built-in resource type.

    Returns:
        A new CleanupRegistry. Tutorials may add or replace handlers on it.
    """
    registry = CleanupRegistry()
    ident = "{identifier}"

    # EC2 and VPC networking
    registry.register("ec2:vpc", [_step("ec2", "delete_vpc", VpcId=ident)])
    registry.register("ec2:subnet", [_step("ec2", "delete_subnet", SubnetId=ident)])
    registry.register(
        "ec2:internet-gateway",
        [
            _step(
                "ec2",
                "detach_internet_gateway",
                ignore=("Gateway.NotAttached",),
                InternetGatewayId=ident,
                VpcId="{vpc_id}",
            ),
            _step("ec2", "delete_internet_gateway", InternetGatewayId=ident),
        ],
    )
    registry.register("ec2:route-table", [_step("ec2", "delete_route_table", RouteTableId=ident)])
    registry.register(
        "ec2:route-table-association",
        [_step("ec2", "disassociate_route_table", AssociationId=ident)],
    )
    registry.register(
        "ec2:security-group", [_step("ec2", "delete_security_group", GroupId=ident)]
    )
    registry.register(
        "ec2:security-group-ingress",
        [
            _step(
                "ec2",
                "revoke_security_group_ingress",
                ignore=("InvalidPermission.NotFound",),
                GroupId=ident,
                IpPermissions=[
                    {
                        "IpProtocol": "tcp",
                        "FromPort": "{port}",
                        "ToPort": "{port}",
                        "IpRanges": [{"CidrIp": "{cidr}"}],
                    }
                ],
            )
        ],
    )
    registry.register(
        "ec2:instance",
        [
            _step("ec2", "terminate_instances", InstanceIds=[ident]),
            _wait("ec2", "instance_terminated", InstanceIds=[ident]),
        ],
    )
    registry.register(
        "ec2:volume-attachment",
        [
            _step(
                "ec2",
                "detach_volume",
                ignore=("IncorrectState",),
                VolumeId=ident,
                InstanceId="{instance_id}",
            ),
            _wait("ec2", "volume_available", VolumeIds=[ident]),
        ],
    )
    registry.register("ec2:volume", [_step("ec2", "delete_volume", VolumeId=ident)])
    registry.register("ec2:key-pair", [_step("ec2", "delete_key_pair", KeyName=ident)])

    # IAM
    registry.register(
        "iam:role-policy-attachment",
        [_step("iam", "detach_role_policy", RoleName="{role_name}", PolicyArn=ident)],
    )
    registry.register(
        "iam:role-policy",
        [_step("iam", "delete_role_policy", RoleName="{role_name}", PolicyName=ident)],
    )
    registry.register("iam:role", [_step("iam", "delete_role", RoleName=ident)])
    registry.register("iam:policy", [_step("iam", "delete_policy", PolicyArn=ident)])
    registry.register(
        "iam:instance-profile",
        [
            _step(
                "iam",
                "remove_role_from_instance_profile",
                ignore=("NoSuchEntity",),
                InstanceProfileName=ident,
                RoleName="{role_name}",
            ),
            _step("iam", "delete_instance_profile", InstanceProfileName=ident),
        ],
    )

    # Storage, secrets and messaging
    registry.register("s3:bucket", S3BucketCleanup())
    registry.register(
        "secretsmanager:secret",
        [
            _step(
                "secretsmanager",
                "delete_secret",
                SecretId=ident,
                ForceDeleteWithoutRecovery=True,
            )
        ],
    )
    registry.register("mq:broker", MQBrokerCleanup())
    registry.register("logs:log-group", [_step("logs", "delete_log_group", logGroupName=ident)])

    # Neptune
    registry.register(
        "neptune:db-instance",
        [
            _step(
                "neptune",
                "delete_db_instance",
                DBInstanceIdentifier=ident,
                SkipFinalSnapshot=True,
            ),
            _wait("neptune", "db_instance_deleted", DBInstanceIdentifier=ident),
        ],
    )
    registry.register("neptune:db-cluster", NeptuneClusterCleanup())
    registry.register(
        "neptune:db-subnet-group",
        [_step("neptune", "delete_db_subnet_group", DBSubnetGroupName=ident)],
    )

    # Step Functions
    registry.register(
        "stepfunctions:state-machine",
        [_step("stepfunctions", "delete_state_machine", stateMachineArn=ident)],
    )

    # Athena
    registry.register(
        "athena:named-query", [_step("athena", "delete_named_query", NamedQueryId=ident)]
    )
    registry.register(
        "athena:table", AthenaQueryCleanup("DROP TABLE IF EXISTS `{database}`.`{identifier}`")
    )
    registry.register(
        "athena:database", AthenaQueryCleanup("DROP DATABASE IF EXISTS `{identifier}`")
    )

    # Lightsail
    registry.register(
        "lightsail:instance", [_step("lightsail", "delete_instance", instanceName=ident)]
    )
    registry.register("lightsail:disk", LightsailDiskCleanup())
    registry.register(
        "lightsail:instance-snapshot",
        [_step("lightsail", "delete_instance_snapshot", instanceSnapshotName=ident)],
    )

    # AWS Config
    registry.register(
        "config:delivery-channel",
        [
            _step(
                "config",
                "stop_configuration_recorder",
                ignore=("NoSuchConfigurationRecorderException",),
                ConfigurationRecorderName="{recorder_name}",
            ),
            _step("config", "delete_delivery_channel", DeliveryChannelName=ident),
        ],
    )
    registry.register(
        "config:configuration-recorder",
        [
            _step("config", "stop_configuration_recorder", ConfigurationRecorderName=ident),
            _step("config", "delete_configuration_recorder", ConfigurationRecorderName=ident),
        ],
    )
    registry.register("sns:topic", [_step("sns", "delete_topic", TopicArn=ident)])

    # Fault Injection Service and CloudWatch
    registry.register(
        "fis:experiment",
        [
            _step(
                "fis",
                "stop_experiment",
                ignore=("ValidationException", "ConflictException"),
                id=ident,
            )
        ],
    )
    registry.register(
        "fis:experiment-template", [_step("fis", "delete_experiment_template", id=ident)]
    )
    registry.register(
        "cloudwatch:alarm", [_step("cloudwatch", "delete_alarms", AlarmNames=[ident])]
    )

    # Network Firewall
    registry.register("network-firewall:firewall", NetworkFirewallCleanup())
    registry.register(
        "network-firewall:firewall-policy",
        [_step("network-firewall", "delete_firewall_policy", FirewallPolicyArn=ident)],
    )
    registry.register(
        "network-firewall:rule-group",
        [_step("network-firewall", "delete_rule_group", RuleGroupArn=ident)],
    )

    # ECS
    registry.register(
        "ecs:service",
        [
            _step("ecs", "update_service", cluster="{cluster}", service=ident, desiredCount=0),
            _step("ecs", "delete_service", cluster="{cluster}", service=ident, force=True),
            _wait("ecs", "services_inactive", cluster="{cluster}", services=[ident]),
        ],
    )
    registry.register(
        "ecs:task-definition", [_step("ecs", "deregister_task_definition", taskDefinition=ident)]
    )
    registry.register("ecs:cluster", [_step("ecs", "delete_cluster", cluster=ident)])

    # SageMaker Feature Store
    registry.register("sagemaker:feature-group", FeatureGroupCleanup())

    return registry


class Teardown:
    """Best-effort deletion of ledger resources in reverse creation order.

    Attributes:
        backend: Backend to execute with.
        registry: Cleanup handlers by resource type.
        retry_attempts: Attempts per resource while it is still in use.
        retry_delay: Seconds between attempts.
    """

    def __init__(
        self,
        backend: AWSBackend,
        registry: CleanupRegistry,
        retry_attempts: int = DEFAULT_CLEANUP_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_CLEANUP_RETRY_DELAY,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.backend = backend
        self.registry = registry
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.audit_logger = audit_logger

    async def run(self, ledger: ResourceLedger) -> TeardownReport:
        """Delete every active resource in the ledger, newest first.

        Args:
            ledger: Ledger of created resources. Deleted resources are marked.

        Returns:
            Report of what was deleted, failed or skipped.
        """
        report = TeardownReport()
        resources = ledger.reversed_active()
        if not resources:
            logger.info("No resources to clean up")
            return report

        logger.info("Cleaning up resources...")
        for resource in resources:
            result = await self.delete(resource)
            if result.outcome in (TeardownOutcome.DELETED, TeardownOutcome.ALREADY_GONE):
                ledger.mark_deleted(resource)
            report.results.append(result)

        if report.success:
            logger.info(f"Cleanup completed: {report.summary()}")
        else:
            logger.warning(f"Cleanup finished with problems: {report.summary()}")
        return report

    async def delete(self, resource: TrackedResource) -> TeardownResult:
        """Delete a single resource, retrying while it is still in use.

        Returns:
            Result for the resource. Never raises for AWS errors.
        """
        handler = self.registry.get(resource.resource_type)
        if handler is None:
            logger.warning(
                f"No cleanup handler for {resource.resource_type}; "
                f"{resource.label} must be deleted manually"
            )
            return self._finish(
                TeardownResult(resource=resource, outcome=TeardownOutcome.SKIPPED, attempts=0)
            )

        logger.info(f"Deleting {resource.resource_type}: {resource.label}")
        attempt = 0
        while True:
            attempt += 1
            try:
                await handler(self.backend, resource)
            except ResourceNotFoundError:
                logger.info(f"{resource.label} no longer exists")
                result = TeardownResult(
                    resource=resource, outcome=TeardownOutcome.ALREADY_GONE, attempts=attempt
                )
            except ResourceInUseError as e:
                if attempt < self.retry_attempts:
                    logger.info(
                        f"{resource.label} is still in use, retrying in "
                        f"{self.retry_delay:.0f} seconds ({attempt}/{self.retry_attempts})"
                    )
                    await asyncio.sleep(self.retry_delay)
                    continue
                result = self._failed(resource, e, attempt)
            except (AWSError, TutorialError, KeyError, ValueError) as e:
                result = self._failed(resource, e, attempt)
            else:
                result = TeardownResult(
                    resource=resource, outcome=TeardownOutcome.DELETED, attempts=attempt
                )
            return self._finish(result)

    def _failed(self, resource: TrackedResource, error: Exception, attempts: int) -> TeardownResult:
        logger.warning(
            f"Warning: Failed to delete {resource.resource_type} {resource.label}: {error}"
        )
        return TeardownResult(
            resource=resource,
            outcome=TeardownOutcome.FAILED,
            error=str(error),
            attempts=attempts,
        )

    def _finish(self, result: TeardownResult) -> TeardownResult:
        if self.audit_logger is not None:
            self.audit_logger.log_resource_deleted(
                result.resource,
                success=result.outcome
                in (TeardownOutcome.DELETED, TeardownOutcome.ALREADY_GONE),
                outcome=result.outcome.value,
                error=result.error,
            )
        return result
