"""Tests for cleanup handlers, the cleanup registry and teardown."""

from typing import Any
from unittest.mock import Mock

import pytest

from tutorial_runner.aws.exceptions import (
    PermissionError,
    ResourceInUseError,
    ResourceNotFoundError,
    TimeoutError,
    ValidationError,
)
from tutorial_runner.models.resources import CleanupStep, TeardownOutcome, TrackedResource
from tutorial_runner.workflow.cleanup import (
    AthenaQueryCleanup,
    CleanupHandler,
    CleanupRegistry,
    FeatureGroupCleanup,
    LightsailDiskCleanup,
    MQBrokerCleanup,
    NeptuneClusterCleanup,
    NetworkFirewallCleanup,
    S3BucketCleanup,
    StepCleanup,
    Teardown,
    default_registry,
    run_step,
    wait_until_gone,
)
from tutorial_runner.workflow.ledger import ResourceLedger


def resource(resource_type: str, identifier: str, **attributes: Any) -> TrackedResource:
    return TrackedResource(
        resource_type=resource_type, identifier=identifier, attributes=attributes
    )


class TestRunStep:
    """Tests for run_step."""

    @pytest.mark.asyncio
    async def test_call_step(self, fake_backend: Any) -> None:
        """Test that a call step renders and sends its parameters."""
        step = CleanupStep(
            service="ec2", operation="delete_subnet", params={"SubnetId": "{identifier}"}
        )

        await run_step(fake_backend, step, resource("ec2:subnet", "subnet-1"))

        assert fake_backend.calls == [("ec2", "delete_subnet", {"SubnetId": "subnet-1"})]

    @pytest.mark.asyncio
    async def test_waiter_step(self, fake_backend: Any) -> None:
        """Test that a waiter step runs the waiter."""
        step = CleanupStep(
            service="ec2", waiter="instance_terminated", params={"InstanceIds": ["{identifier}"]}
        )

        await run_step(fake_backend, step, resource("ec2:instance", "i-1"))

        assert fake_backend.waits == [("ec2", "instance_terminated", {"InstanceIds": ["i-1"]})]
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_ignored_error_code(self, fake_backend: Any) -> None:
        """Test that listed error codes count as success."""
        fake_backend.on(
            "ec2",
            "detach_internet_gateway",
            ResourceInUseError("not attached", error_code="Gateway.NotAttached"),
        )
        step = CleanupStep(
            service="ec2",
            operation="detach_internet_gateway",
            params={"InternetGatewayId": "{identifier}"},
            ignore_error_codes=("Gateway.NotAttached",),
        )

        await run_step(fake_backend, step, resource("ec2:internet-gateway", "igw-1"))

    @pytest.mark.asyncio
    async def test_other_error_propagates(self, fake_backend: Any) -> None:
        """Test that unlisted errors are raised."""
        fake_backend.on(
            "ec2", "delete_vpc", ResourceInUseError("deps", error_code="DependencyViolation")
        )
        step = CleanupStep(
            service="ec2",
            operation="delete_vpc",
            params={"VpcId": "{identifier}"},
            ignore_error_codes=("Gateway.NotAttached",),
        )

        with pytest.raises(ResourceInUseError):
            await run_step(fake_backend, step, resource("ec2:vpc", "vpc-1"))


class TestWaitUntilGone:
    """Tests for wait_until_gone."""

    @pytest.mark.asyncio
    async def test_returns_on_not_found(self, fake_backend: Any) -> None:
        """Test that polling stops once the resource is missing."""
        fake_backend.on(
            "mq",
            "describe_broker",
            {"BrokerState": "DELETION_IN_PROGRESS"},
            ResourceNotFoundError("gone", error_code="NotFoundException"),
        )

        await wait_until_gone(
            fake_backend, "mq", "describe_broker", {"BrokerId": "b-1"}, "broker", interval=0
        )

        assert fake_backend.operations() == [("mq", "describe_broker"), ("mq", "describe_broker")]

    @pytest.mark.asyncio
    async def test_timeout(self, fake_backend: Any) -> None:
        """Test that a resource that never disappears times out."""
        fake_backend.on("mq", "describe_broker", {"BrokerState": "DELETION_IN_PROGRESS"})

        with pytest.raises(TimeoutError, match="still exists"):
            await wait_until_gone(
                fake_backend, "mq", "describe_broker", {"BrokerId": "b-1"}, "broker", timeout=0
            )


class TestSpecialHandlers:
    """Tests for handlers with custom logic."""

    @pytest.mark.asyncio
    async def test_s3_bucket_emptied_before_delete(self, fake_backend: Any) -> None:
        """Test paging through object versions and deleting the bucket."""
        fake_backend.on(
            "s3",
            "list_object_versions",
            {
                "Versions": [{"Key": "a", "VersionId": "1"}],
                "DeleteMarkers": [{"Key": "b", "VersionId": "2"}],
                "IsTruncated": True,
                "NextKeyMarker": "b",
                "NextVersionIdMarker": "2",
            },
            {"Versions": [{"Key": "c", "VersionId": "3"}], "IsTruncated": False},
        )

        await S3BucketCleanup()(fake_backend, resource("s3:bucket", "results-bucket"))

        assert fake_backend.operations() == [
            ("s3", "list_object_versions"),
            ("s3", "delete_objects"),
            ("s3", "list_object_versions"),
            ("s3", "delete_objects"),
            ("s3", "delete_bucket"),
        ]
        second_page = fake_backend.calls[2][2]
        assert second_page == {"Bucket": "results-bucket", "KeyMarker": "b", "VersionIdMarker": "2"}
        first_delete = fake_backend.calls[1][2]["Delete"]
        assert first_delete["Quiet"] is True
        assert len(first_delete["Objects"]) == 2

    @pytest.mark.asyncio
    async def test_empty_bucket_skips_delete_objects(self, fake_backend: Any) -> None:
        """Test that an empty bucket only needs the listing."""
        fake_backend.on("s3", "list_object_versions", {"IsTruncated": False})

        assert await S3BucketCleanup.empty_bucket(fake_backend, "empty") == 0
        assert fake_backend.operations() == [("s3", "list_object_versions")]

    def test_s3_describe(self) -> None:
        """Test manual commands for a bucket."""
        commands = S3BucketCleanup().describe(resource("s3:bucket", "my-bucket"))

        assert commands == [
            "aws s3 rm s3://my-bucket --recursive",
            "aws s3api delete-bucket --bucket my-bucket",
        ]

    @pytest.mark.asyncio
    async def test_athena_drop_table(self, fake_backend: Any) -> None:
        """Test the DDL query and waiting for it to succeed."""
        fake_backend.on("athena", "start_query_execution", {"QueryExecutionId": "q-1"})
        fake_backend.on(
            "athena",
            "get_query_execution",
            {"QueryExecution": {"Status": {"State": "SUCCEEDED"}}},
        )
        handler = AthenaQueryCleanup("DROP TABLE IF EXISTS `{database}`.`{identifier}`")
        table = resource(
            "athena:table", "cloudfront_logs", database="db1", output_location="s3://b/results/"
        )

        await handler(fake_backend, table)

        params = fake_backend.calls[0][2]
        assert params["QueryString"] == "DROP TABLE IF EXISTS `db1`.`cloudfront_logs`"
        assert params["ResultConfiguration"] == {"OutputLocation": "s3://b/results/"}
        assert fake_backend.calls[1][2] == {"QueryExecutionId": "q-1"}

    @pytest.mark.asyncio
    async def test_neptune_cluster_waits_until_gone(self, fake_backend: Any) -> None:
        """Test cluster deletion followed by polling."""
        fake_backend.on(
            "neptune",
            "describe_db_clusters",
            ResourceNotFoundError("gone", error_code="DBClusterNotFoundFault"),
        )

        await NeptuneClusterCleanup()(fake_backend, resource("neptune:db-cluster", "c1"))

        assert fake_backend.calls[0] == (
            "neptune",
            "delete_db_cluster",
            {"DBClusterIdentifier": "c1", "SkipFinalSnapshot": True},
        )
        assert fake_backend.operations()[1] == ("neptune", "describe_db_clusters")

    @pytest.mark.asyncio
    async def test_mq_broker_waits_until_gone(self, fake_backend: Any) -> None:
        """Test broker deletion followed by polling."""
        fake_backend.on("mq", "describe_broker", ResourceNotFoundError("gone"))

        await MQBrokerCleanup()(fake_backend, resource("mq:broker", "b-1"))

        assert fake_backend.operations() == [("mq", "delete_broker"), ("mq", "describe_broker")]


    @pytest.mark.asyncio
    async def test_lightsail_disk_deleted_after_detach_completes(self, fake_backend: Any) -> None:
        """Test that delete_disk waits until get_disk reports the disk detached."""
        fake_backend.on(
            "lightsail",
            "get_disk",
            {"disk": {"isAttached": True, "state": "in-use"}},
            {"disk": {"isAttached": False, "state": "available"}},
        )

        await LightsailDiskCleanup(interval=0)(fake_backend, resource("lightsail:disk", "d-1"))

        assert fake_backend.operations() == [
            ("lightsail", "detach_disk"),
            ("lightsail", "get_disk"),
            ("lightsail", "get_disk"),
            ("lightsail", "delete_disk"),
        ]
        assert fake_backend.calls[-1][2] == {"diskName": "d-1"}

    @pytest.mark.asyncio
    async def test_lightsail_disk_never_detached(self, fake_backend: Any) -> None:
        """Test that a disk stuck attached is not deleted."""
        fake_backend.on("lightsail", "get_disk", {"disk": {"isAttached": True}})

        with pytest.raises(TimeoutError):
            await LightsailDiskCleanup(interval=0, timeout=0)(
                fake_backend, resource("lightsail:disk", "d-1")
            )

        assert ("lightsail", "delete_disk") not in fake_backend.operations()

    @pytest.mark.asyncio
    async def test_lightsail_disk_already_detached(self, fake_backend: Any) -> None:
        """Test that a detach rejected for an unattached disk still deletes it."""
        fake_backend.on(
            "lightsail",
            "detach_disk",
            ValidationError("not attached", error_code="InvalidInputException"),
        )
        fake_backend.on("lightsail", "get_disk", {"disk": {"isAttached": False}})

        await LightsailDiskCleanup(interval=0)(fake_backend, resource("lightsail:disk", "d-1"))

        assert fake_backend.operations()[-1] == ("lightsail", "delete_disk")

    def test_lightsail_disk_describe(self) -> None:
        """Test manual commands for a disk."""
        commands = LightsailDiskCleanup().describe(resource("lightsail:disk", "d-1"))

        assert commands == [
            "aws lightsail detach-disk --disk-name d-1",
            "aws lightsail delete-disk --disk-name d-1",
        ]

    @pytest.mark.asyncio
    async def test_network_firewall_waits_until_gone(self, fake_backend: Any) -> None:
        """Test firewall deletion followed by polling."""
        arn = "arn:aws:network-firewall:us-east-1:123456789012:firewall/fw"
        fake_backend.on(
            "network-firewall",
            "describe_firewall",
            ResourceNotFoundError("gone", error_code="ResourceNotFoundException"),
        )

        await NetworkFirewallCleanup()(fake_backend, resource("network-firewall:firewall", arn))

        assert fake_backend.calls[0] == (
            "network-firewall",
            "delete_firewall",
            {"FirewallArn": arn},
        )
        assert fake_backend.operations()[1] == ("network-firewall", "describe_firewall")

    @pytest.mark.asyncio
    async def test_feature_group_waits_until_gone(self, fake_backend: Any) -> None:
        """Test feature group deletion followed by polling."""
        fake_backend.on(
            "sagemaker",
            "describe_feature_group",
            ResourceNotFoundError("gone", error_code="ResourceNotFound"),
        )

        await FeatureGroupCleanup()(fake_backend, resource("sagemaker:feature-group", "fg-1"))

        assert fake_backend.operations() == [
            ("sagemaker", "delete_feature_group"),
            ("sagemaker", "describe_feature_group"),
        ]


class TestCleanupRegistry:
    """Tests for CleanupRegistry and the default handlers."""

    def test_register_steps_wraps_in_step_cleanup(self) -> None:
        """Test that a list of steps becomes a StepCleanup."""
        registry = CleanupRegistry()
        registry.register(
            "logs:log-group",
            [
                CleanupStep(
                    service="logs",
                    operation="delete_log_group",
                    params={"logGroupName": "{identifier}"},
                )
            ],
        )

        assert "logs:log-group" in registry
        assert isinstance(registry.get("logs:log-group"), StepCleanup)
        assert isinstance(registry.get("logs:log-group"), CleanupHandler)
        assert registry.get("ec2:vpc") is None

    def test_step_cleanup_requires_steps(self) -> None:
        """Test that an empty step list is rejected."""
        with pytest.raises(ValueError):
            StepCleanup([])

    def test_register_replaces(self) -> None:
        """Test replacing a handler."""
        registry = default_registry()
        custom = Mock()

        registry.register("ec2:vpc", custom)

        assert registry.get("ec2:vpc") is custom

    @pytest.mark.parametrize(
        "resource_type",
        [
            "ec2:vpc",
            "ec2:subnet",
            "ec2:internet-gateway",
            "ec2:route-table",
            "ec2:route-table-association",
            "ec2:security-group",
            "ec2:security-group-ingress",
            "ec2:instance",
            "ec2:volume",
            "ec2:volume-attachment",
            "iam:role",
            "iam:policy",
            "iam:role-policy-attachment",
            "s3:bucket",
            "secretsmanager:secret",
            "mq:broker",
            "neptune:db-cluster",
            "neptune:db-instance",
            "neptune:db-subnet-group",
            "stepfunctions:state-machine",
            "athena:database",
            "athena:table",
            "athena:named-query",
            "lightsail:instance",
            "lightsail:disk",
            "lightsail:instance-snapshot",
            "iam:role-policy",
            "iam:instance-profile",
            "sns:topic",
            "config:configuration-recorder",
            "config:delivery-channel",
            "cloudwatch:alarm",
            "fis:experiment-template",
            "fis:experiment",
            "network-firewall:rule-group",
            "network-firewall:firewall-policy",
            "network-firewall:firewall",
            "ecs:cluster",
            "ecs:task-definition",
            "ecs:service",
            "sagemaker:feature-group",
        ],
    )
    def test_default_types(self, resource_type: str) -> None:
        """Test that every resource type created by a tutorial has a handler."""
        assert resource_type in default_registry()

    def test_types_sorted(self) -> None:
        """Test that types are listed in order."""
        types = default_registry().types()

        assert types == sorted(types)
        assert len(types) == len(default_registry())

    @pytest.mark.parametrize("resource_type", ["lightsail:key-pair", "lightsail:disk-snapshot"])
    def test_lightsail_types_without_tutorial_unregistered(self, resource_type: str) -> None:
        """Test that no handler exists for Lightsail types no tutorial records."""
        assert resource_type not in default_registry()

    def test_manual_commands(self) -> None:
        """Test manual cleanup commands for an internet gateway."""
        registry = default_registry()

        gateway = resource("ec2:internet-gateway", "igw-1", vpc_id="vpc-1")
        commands = registry.manual_commands(gateway)

        assert commands == [
            "aws ec2 detach-internet-gateway --internet-gateway-id igw-1 --vpc-id vpc-1",
            "aws ec2 delete-internet-gateway --internet-gateway-id igw-1",
        ]

    def test_manual_commands_unknown_type(self) -> None:
        """Test the fallback comment for unknown types."""
        commands = CleanupRegistry().manual_commands(resource("ec2:nat-gateway", "nat-1"))

        assert commands == ["# delete ec2:nat-gateway nat-1 manually"]

    def test_manual_commands_missing_attribute(self) -> None:
        """Test the fallback comment when a placeholder cannot be filled."""
        commands = default_registry().manual_commands(
            resource("iam:role-policy-attachment", "arn:aws:iam::1:policy/p")
        )

        assert len(commands) == 1
        assert commands[0].startswith("# delete iam:role-policy-attachment")
        assert "role_name" in commands[0]

    def test_ingress_revoke_keeps_port_type(self) -> None:
        """Test that the port placeholder renders as an integer."""
        handler = default_registry().get("ec2:security-group-ingress")
        rule = resource("ec2:security-group-ingress", "sg-1", port=8162, cidr="203.0.113.0/24")

        params = handler.steps[0].render(rule)  # type: ignore[union-attr]

        assert params["IpPermissions"][0]["FromPort"] == 8162
        assert params["IpPermissions"][0]["IpRanges"] == [{"CidrIp": "203.0.113.0/24"}]


    def test_manual_commands_keep_secret_arn(self) -> None:
        """Test that a secret's ARN is printed in its delete command."""
        arn = "arn:aws:secretsmanager:us-east-1:123456789012:secret:tut-mq-credentials"

        commands = default_registry().manual_commands(resource("secretsmanager:secret", arn))

        assert commands == [
            f"aws secretsmanager delete-secret --secret-id {arn} --force-delete-without-recovery"
        ]

    def test_manual_commands_literal_brace(self) -> None:
        """Test the fallback comment when a parameter has an unmatched brace."""
        registry = CleanupRegistry()
        registry.register(
            "ec2:security-group",
            [
                CleanupStep(
                    service="ec2",
                    operation="delete_security_group",
                    params={"GroupId": "{identifier}", "Description": "left { open"},
                )
            ],
        )

        commands = registry.manual_commands(resource("ec2:security-group", "sg-1"))

        assert len(commands) == 1
        assert commands[0].startswith("# delete ec2:security-group sg-1 manually")
        assert "bad placeholder" in commands[0]

    def test_delivery_channel_stops_recorder_first(self) -> None:
        """Test that the recorder is stopped before its delivery channel is deleted."""
        channel = resource("config:delivery-channel", "default", recorder_name="default")

        commands = default_registry().manual_commands(channel)

        assert commands == [
            "aws configservice stop-configuration-recorder --configuration-recorder-name default",
            "aws configservice delete-delivery-channel --delivery-channel-name default",
        ]

    def test_ecs_service_scaled_down_first(self) -> None:
        """Test the ECS service steps and their cluster placeholder."""
        handler = default_registry().get("ecs:service")
        service = resource("ecs:service", "tut-service-abc123", cluster="tut-cluster-abc123")

        steps = handler.steps  # type: ignore[union-attr]

        assert [s.operation for s in steps[:2]] == ["update_service", "delete_service"]
        assert steps[0].render(service) == {
            "cluster": "tut-cluster-abc123",
            "service": "tut-service-abc123",
            "desiredCount": 0,
        }
        assert steps[-1].waiter == "services_inactive"


class TestTeardown:
    """Tests for Teardown."""

    @pytest.fixture
    def ledger(self) -> ResourceLedger:
        """A ledger with a VPC, a subnet and a security group."""
        ledger = ResourceLedger()
        ledger.record("ec2:vpc", "vpc-1")
        ledger.record("ec2:subnet", "subnet-1")
        ledger.record("ec2:security-group", "sg-1")
        return ledger

    @pytest.mark.asyncio
    async def test_deletes_in_reverse_order(
        self, fake_backend: Any, ledger: ResourceLedger
    ) -> None:
        """Test that the newest resource is deleted first."""
        report = await Teardown(fake_backend, default_registry(), retry_delay=0).run(ledger)

        assert fake_backend.operations() == [
            ("ec2", "delete_security_group"),
            ("ec2", "delete_subnet"),
            ("ec2", "delete_vpc"),
        ]
        assert report.success
        assert report.summary() == "3 deleted, 0 failed, 0 skipped"
        assert not ledger

    @pytest.mark.asyncio
    async def test_empty_ledger(self, fake_backend: Any) -> None:
        """Test that an empty ledger makes no calls."""
        report = await Teardown(fake_backend, default_registry()).run(ResourceLedger())

        assert report.results == []
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_already_gone(self, fake_backend: Any, ledger: ResourceLedger) -> None:
        """Test that a missing resource counts as deleted."""
        fake_backend.on(
            "ec2",
            "delete_subnet",
            ResourceNotFoundError("gone", error_code="InvalidSubnetID.NotFound"),
        )

        report = await Teardown(fake_backend, default_registry(), retry_delay=0).run(ledger)

        outcomes = {r.resource.identifier: r.outcome for r in report.results}
        assert outcomes["subnet-1"] == TeardownOutcome.ALREADY_GONE
        assert report.success

    @pytest.mark.asyncio
    async def test_in_use_retried(self, fake_backend: Any, ledger: ResourceLedger) -> None:
        """Test that in-use errors are retried until the resource is free."""
        fake_backend.on(
            "ec2",
            "delete_vpc",
            ResourceInUseError("deps", error_code="DependencyViolation"),
            {},
        )

        report = await Teardown(
            fake_backend, default_registry(), retry_attempts=3, retry_delay=0
        ).run(ledger)

        vpc_result = report.results[-1]
        assert vpc_result.outcome == TeardownOutcome.DELETED
        assert vpc_result.attempts == 2

    @pytest.mark.asyncio
    async def test_in_use_exhausts_attempts(
        self, fake_backend: Any, ledger: ResourceLedger
    ) -> None:
        """Test that a resource still in use after all attempts is reported as failed."""
        fake_backend.on(
            "ec2", "delete_vpc", ResourceInUseError("deps", error_code="DependencyViolation")
        )

        report = await Teardown(
            fake_backend, default_registry(), retry_attempts=2, retry_delay=0
        ).run(ledger)

        assert [r.resource.identifier for r in report.failed] == ["vpc-1"]
        assert report.failed[0].attempts == 2
        assert "deps" in (report.failed[0].error or "")
        assert fake_backend.operations().count(("ec2", "delete_vpc")) == 2
        assert [r.identifier for r in ledger.active()] == ["vpc-1"]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_teardown(
        self, fake_backend: Any, ledger: ResourceLedger
    ) -> None:
        """Test that later resources are still deleted after a failure."""
        fake_backend.on("ec2", "delete_security_group", PermissionError("denied"))

        report = await Teardown(fake_backend, default_registry(), retry_delay=0).run(ledger)

        assert [r.outcome for r in report.results] == [
            TeardownOutcome.FAILED,
            TeardownOutcome.DELETED,
            TeardownOutcome.DELETED,
        ]
        assert not report.success

    @pytest.mark.asyncio
    async def test_unknown_type_skipped(self, fake_backend: Any) -> None:
        """Test that resources without a handler are skipped."""
        ledger = ResourceLedger()
        ledger.record("ec2:nat-gateway", "nat-1")

        report = await Teardown(fake_backend, CleanupRegistry()).run(ledger)

        assert report.results[0].outcome == TeardownOutcome.SKIPPED
        assert report.results[0].attempts == 0
        assert ledger

    @pytest.mark.asyncio
    async def test_missing_attribute_is_failure(self, fake_backend: Any) -> None:
        """Test that a handler needing a missing attribute fails cleanly."""
        ledger = ResourceLedger()
        ledger.record("iam:role-policy-attachment", "arn:aws:iam::1:policy/p")

        report = await Teardown(fake_backend, default_registry()).run(ledger)

        assert report.results[0].outcome == TeardownOutcome.FAILED
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_audit_logged(self, fake_backend: Any, ledger: ResourceLedger) -> None:
        """Test that every result is audit logged."""
        audit_logger = Mock()

        await Teardown(
            fake_backend, default_registry(), retry_delay=0, audit_logger=audit_logger
        ).run(ledger)

        assert audit_logger.log_resource_deleted.call_count == 3
        _, kwargs = audit_logger.log_resource_deleted.call_args
        assert kwargs["outcome"] == "deleted"
        assert kwargs["success"] is True

    @pytest.mark.asyncio
    async def test_bad_placeholder_is_failure(self, fake_backend: Any) -> None:
        """Test that an unmatched brace in a step parameter fails without any call."""
        registry = CleanupRegistry()
        registry.register(
            "ec2:security-group",
            [
                CleanupStep(
                    service="ec2",
                    operation="delete_security_group",
                    params={"GroupId": "{identifier}", "Description": "left { open"},
                )
            ],
        )
        ledger = ResourceLedger()
        ledger.record("ec2:security-group", "sg-1")

        report = await Teardown(fake_backend, registry, retry_delay=0).run(ledger)

        assert report.results[0].outcome == TeardownOutcome.FAILED
        assert report.results[0].attempts == 1
        assert fake_backend.calls == []
        assert ledger
