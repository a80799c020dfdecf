"""Getting started with Amazon Neptune.

Builds a VPC with three subnets in different availability zones, then a
Neptune cluster with one instance inside it.
"""

import logging
from typing import Final

from tutorial_runner.exceptions import TutorialError
from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query, require
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

VPC_CIDR: Final = "10.0.0.0/16"
SUBNET_CIDRS: Final = ("10.0.1.0/24", "10.0.2.0/24", "10.0.3.0/24")
NEPTUNE_PORT: Final = 8182


class NeptuneOptions(TutorialOptions):
    """Options for the Neptune tutorial."""

    instance_class: str = "db.r5.large"


class NeptuneTutorial(BaseTutorial):
    """Neptune cluster in a dedicated VPC."""

    slug = "neptune-gs"
    title = "Getting started with Amazon Neptune"
    description = (
        "Create a VPC with an internet gateway and three subnets, a Neptune "
        "subnet group, a Neptune cluster and a database instance, and show the "
        "cluster endpoint."
    )
    options_model = NeptuneOptions

    async def run(self, session: TutorialSession, options: NeptuneOptions) -> None:
        vpc_name = session.name("vpc")
        vpc = await session.create(
            "ec2",
            "create_vpc",
            resource_type="ec2:vpc",
            id_query="Vpc.VpcId",
            label=vpc_name,
            description="Step 1: Creating VPC",
            params={
                "CidrBlock": VPC_CIDR,
                "TagSpecifications": [
                    {"ResourceType": "vpc", "Tags": [{"Key": "Name", "Value": vpc_name}]}
                ],
            },
        )
        await session.call(
            "ec2", "modify_vpc_attribute", VpcId=vpc.identifier, EnableDnsSupport={"Value": True}
        )
        await session.call(
            "ec2", "modify_vpc_attribute", VpcId=vpc.identifier, EnableDnsHostnames={"Value": True}
        )

        gateway = await session.create(
            "ec2",
            "create_internet_gateway",
            resource_type="ec2:internet-gateway",
            id_query="InternetGateway.InternetGatewayId",
            attributes={"vpc_id": vpc.identifier},
            description="Step 2: Creating internet gateway",
        )
        await session.call(
            "ec2",
            "attach_internet_gateway",
            InternetGatewayId=gateway.identifier,
            VpcId=vpc.identifier,
        )

        zones_response = await session.call(
            "ec2",
            "describe_availability_zones",
            Filters=[
                {"Name": "state", "Values": ["available"]},
                {"Name": "zone-type", "Values": ["availability-zone"]},
            ],
        )
        zones = query(zones_response, "AvailabilityZones[].ZoneName") or []
        if len(zones) < len(SUBNET_CIDRS):
            raise TutorialError(
                f"Neptune needs {len(SUBNET_CIDRS)} availability zones, "
                f"region {session.region} has {len(zones)}"
            )

        subnet_ids = []
        for index, (cidr, zone) in enumerate(zip(SUBNET_CIDRS, zones, strict=False), start=1):
            subnet = await session.create(
                "ec2",
                "create_subnet",
                resource_type="ec2:subnet",
                id_query="Subnet.SubnetId",
                label=f"{session.name('subnet')}-{index} ({zone})",
                description=f"Step 3.{index}: Creating subnet {cidr} in {zone}",
                params={"VpcId": vpc.identifier, "CidrBlock": cidr, "AvailabilityZone": zone},
            )
            subnet_ids.append(subnet.identifier)

        route_table = await session.create(
            "ec2",
            "create_route_table",
            resource_type="ec2:route-table",
            id_query="RouteTable.RouteTableId",
            description="Step 4: Creating route table",
            params={"VpcId": vpc.identifier},
        )
        await session.call(
            "ec2",
            "create_route",
            RouteTableId=route_table.identifier,
            DestinationCidrBlock="0.0.0.0/0",
            GatewayId=gateway.identifier,
        )
        for subnet_id in subnet_ids:
            await session.create(
                "ec2",
                "associate_route_table",
                resource_type="ec2:route-table-association",
                id_query="AssociationId",
                label=f"{route_table.identifier} -> {subnet_id}",
                params={"RouteTableId": route_table.identifier, "SubnetId": subnet_id},
            )

        group = await session.create(
            "ec2",
            "create_security_group",
            resource_type="ec2:security-group",
            id_query="GroupId",
            label=session.name("sg"),
            description="Step 5: Creating security group",
            params={
                "GroupName": session.name("sg"),
                "Description": "Security group for Neptune",
                "VpcId": vpc.identifier,
            },
        )
        await session.call(
            "ec2",
            "authorize_security_group_ingress",
            GroupId=group.identifier,
            IpPermissions=[
                {
                    "IpProtocol": "tcp",
                    "FromPort": NEPTUNE_PORT,
                    "ToPort": NEPTUNE_PORT,
                    "IpRanges": [{"CidrIp": VPC_CIDR}],
                }
            ],
        )

        subnet_group = await session.create(
            "neptune",
            "create_db_subnet_group",
            resource_type="neptune:db-subnet-group",
            id_query="DBSubnetGroup.DBSubnetGroupName",
            description="Step 6: Creating Neptune subnet group",
            params={
                "DBSubnetGroupName": session.name("subnet-group"),
                "DBSubnetGroupDescription": "Subnet group for Neptune",
                "SubnetIds": subnet_ids,
            },
        )

        cluster = await session.create(
            "neptune",
            "create_db_cluster",
            resource_type="neptune:db-cluster",
            id_query="DBCluster.DBClusterIdentifier",
            description="Step 7: Creating Neptune cluster",
            params={
                "DBClusterIdentifier": session.name("cluster"),
                "Engine": "neptune",
                "VpcSecurityGroupIds": [group.identifier],
                "DBSubnetGroupName": subnet_group.identifier,
            },
        )

        instance = await session.create(
            "neptune",
            "create_db_instance",
            resource_type="neptune:db-instance",
            id_query="DBInstance.DBInstanceIdentifier",
            description="Step 8: Creating Neptune instance",
            params={
                "DBInstanceIdentifier": session.name("instance"),
                "DBInstanceClass": options.instance_class,
                "Engine": "neptune",
                "DBClusterIdentifier": cluster.identifier,
            },
        )

        logger.info("Instance creation can take 10 minutes or more")
        await session.wait(
            "neptune",
            "db_instance_available",
            description="Waiting for the Neptune instance to become available",
            DBInstanceIdentifier=instance.identifier,
        )

        clusters = await session.call(
            "neptune", "describe_db_clusters", DBClusterIdentifier=cluster.identifier
        )
        endpoint = require(clusters, "DBClusters[0].Endpoint", "cluster endpoint")
        session.output("cluster_endpoint", endpoint)
        session.output("gremlin_url", f"wss://{endpoint}:{NEPTUNE_PORT}/gremlin")
