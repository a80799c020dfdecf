"""Getting started with Amazon SageMaker Feature Store.

Creates an offline store bucket, a SageMaker role and two feature groups,
ingests a few records and reads them back.
"""

import json
import logging
import time
from typing import Any, Final

from pydantic import Field

from tutorial_runner.constants import IAM_PROPAGATION_DELAY
from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

ROLE_POLICY_ARNS: Final = (
    "arn:aws:iam::aws:policy/AmazonSageMakerFullAccess",
    "arn:aws:iam::aws:policy/AmazonS3FullAccess",
)
RUNTIME_SERVICE: Final = "sagemaker-featurestore-runtime"
FEATURE_GROUP_POLL_INTERVAL: Final = 5.0

TRUST_POLICY: Final[dict[str, Any]] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "sagemaker.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}

CUSTOMER_FEATURES: Final = (
    ("customer_id", "Integral"),
    ("name", "String"),
    ("age", "Integral"),
    ("address", "String"),
    ("membership_type", "String"),
    ("EventTime", "Fractional"),
)

ORDER_FEATURES: Final = (
    ("customer_id", "Integral"),
    ("order_id", "String"),
    ("order_date", "String"),
    ("product", "String"),
    ("quantity", "Integral"),
    ("amount", "Fractional"),
    ("EventTime", "Fractional"),
)

CUSTOMERS: Final = (
    {
        "customer_id": "573291",
        "name": "John Doe",
        "age": "35",
        "address": "123 Main St",
        "membership_type": "premium",
    },
    {
        "customer_id": "109382",
        "name": "Jane Smith",
        "age": "28",
        "address": "456 Oak Ave",
        "membership_type": "standard",
    },
)

ORDERS: Final = (
    {
        "customer_id": "573291",
        "order_id": "o-1001",
        "order_date": "2024-01-15",
        "product": "Laptop",
        "quantity": "1",
        "amount": "1299.99",
    },
    {
        "customer_id": "109382",
        "order_id": "o-1002",
        "order_date": "2024-01-16",
        "product": "Headphones",
        "quantity": "2",
        "amount": "149.98",
    },
)


def as_record(values: dict[str, str], event_time: float) -> list[dict[str, str]]:
    """Convert a row to the ``Record`` shape of ``put_record``."""
    row = {**values, "EventTime": f"{event_time:.3f}"}
    return [{"FeatureName": name, "ValueAsString": value} for name, value in row.items()]


class FeatureStoreOptions(TutorialOptions):
    """Options for the Feature Store tutorial."""

    offline_store_prefix: str = Field("featurestore", pattern=r"^[A-Za-z0-9_/-]+$")
    enable_offline_store: bool = True


class FeatureStoreTutorial(BaseTutorial):
    """Feature group creation, ingestion and retrieval walkthrough."""

    slug = "sagemaker-featurestore-gs"
    title = "Getting started with Amazon SageMaker Feature Store"
    description = (
        "Create an S3 bucket and an IAM role for SageMaker, create customer and "
        "order feature groups, ingest records into them and read the records "
        "back one at a time and in a batch."
    )
    options_model = FeatureStoreOptions

    async def run(self, session: TutorialSession, options: FeatureStoreOptions) -> None:
        region = session.region or "us-east-1"
        role_arn = await self._create_role(session)

        bucket_name = session.name("featurestore", max_length=63)
        bucket_params: dict[str, Any] = {"Bucket": bucket_name}
        if region != "us-east-1":
            bucket_params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        await session.call(
            "s3",
            "create_bucket",
            description=f"Step 2: Creating offline store bucket {bucket_name}",
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
        offline_uri = f"s3://{bucket_name}/{options.offline_store_prefix}"

        customers = await self._create_feature_group(
            session, "customers", CUSTOMER_FEATURES, role_arn, offline_uri, options
        )
        orders = await self._create_feature_group(
            session, "orders", ORDER_FEATURES, role_arn, offline_uri, options
        )
        for name in (customers, orders):
            await session.wait_for(
                "sagemaker",
                "describe_feature_group",
                params={"FeatureGroupName": name},
                status_query="FeatureGroupStatus",
                targets="Created",
                failure_states="CreateFailed",
                interval=FEATURE_GROUP_POLL_INTERVAL,
                description=f"feature group {name}",
            )

        event_time = time.time()
        for group, rows in ((customers, CUSTOMERS), (orders, ORDERS)):
            for row in rows:
                await session.call(
                    RUNTIME_SERVICE,
                    "put_record",
                    description=f"Step 4: Ingesting {group} record {row['customer_id']}",
                    FeatureGroupName=group,
                    Record=as_record(row, event_time),
                )

        record = await session.call(
            RUNTIME_SERVICE,
            "get_record",
            description="Step 5: Reading customer 573291",
            FeatureGroupName=customers,
            RecordIdentifierValueAsString="573291",
        )
        values = {
            item["FeatureName"]: item["ValueAsString"] for item in record.get("Record", [])
        }
        session.output("customer_573291", values)

        ids = [row["customer_id"] for row in CUSTOMERS]
        batch = await session.call(
            RUNTIME_SERVICE,
            "batch_get_record",
            description="Reading both customers and their orders in one batch",
            Identifiers=[
                {"FeatureGroupName": group, "RecordIdentifiersValueAsString": ids}
                for group in (customers, orders)
            ],
        )
        session.output("batch_records", len(query(batch, "Records") or []))

        listed = await session.call(
            "sagemaker", "list_feature_groups", NameContains=session.namer.suffix
        )
        names = query(listed, "FeatureGroupSummaries[].FeatureGroupName") or []
        logger.info(f"Feature groups: {', '.join(names)}")
        session.output("offline_store", offline_uri)

    async def _create_role(self, session: TutorialSession) -> str:
        role = await session.create(
            "iam",
            "create_role",
            resource_type="iam:role",
            id_query="Role.RoleName",
            capture={"arn": "Role.Arn"},
            description="Step 1: Creating the SageMaker execution role",
            params={
                "RoleName": session.name("sagemaker-role"),
                "AssumeRolePolicyDocument": json.dumps(TRUST_POLICY),
            },
        )
        for policy_arn in ROLE_POLICY_ARNS:
            await session.call(
                "iam", "attach_role_policy", RoleName=role.identifier, PolicyArn=policy_arn
            )
            session.track(
                "iam:role-policy-attachment",
                policy_arn,
                label=f"{policy_arn.rsplit('/', 1)[-1]} on {role.identifier}",
                attributes={"role_name": role.identifier},
            )
        await session.pause(IAM_PROPAGATION_DELAY, "the SageMaker role")
        return role.attributes["arn"]

    async def _create_feature_group(
        self,
        session: TutorialSession,
        kind: str,
        features: tuple[tuple[str, str], ...],
        role_arn: str,
        offline_uri: str,
        options: FeatureStoreOptions,
    ) -> str:
        params: dict[str, Any] = {
            "FeatureGroupName": session.name(f"{kind}-fg", max_length=64),
            "RecordIdentifierFeatureName": "customer_id",
            "EventTimeFeatureName": "EventTime",
            "FeatureDefinitions": [
                {"FeatureName": name, "FeatureType": feature_type}
                for name, feature_type in features
            ],
            "OnlineStoreConfig": {"EnableOnlineStore": True},
            "RoleArn": role_arn,
        }
        if options.enable_offline_store:
            params["OfflineStoreConfig"] = {
                "S3StorageConfig": {"S3Uri": offline_uri},
                "DisableGlueTableCreation": False,
            }
        name = params["FeatureGroupName"]
        response = await session.call(
            "sagemaker",
            "create_feature_group",
            description=f"Step 3: Creating feature group {name}",
            **params,
        )
        session.track(
            "sagemaker:feature-group", name, attributes={"arn": response.get("FeatureGroupArn")}
        )
        return name
