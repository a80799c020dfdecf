"""Amazon EBS volumes.

Creates a gp3 volume in the first available zone and, optionally, attaches it
to a newly launched instance.
"""

import logging
from typing import Final

from pydantic import Field

from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import require
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)


class EBSVolumeOptions(TutorialOptions):
    """Options for the EBS volume tutorial."""

    size_gb: int = Field(10, ge=1, le=16384)
    attach: bool = False
    instance_type: str = "t3.micro"


class EBSVolumesTutorial(BaseTutorial):
    """Create, inspect and optionally attach an EBS volume."""

    slug = "ebs-volumes"
    title = "Create and manage Amazon EBS volumes"
    description = (
        "Create a gp3 EBS volume, wait for it to become available and inspect it. "
        "With attach=true, also launch an instance and attach the volume to it."
    )
    options_model = EBSVolumeOptions

    async def run(self, session: TutorialSession, options: EBSVolumeOptions) -> None:
        zones = await session.call(
            "ec2",
            "describe_availability_zones",
            description="Step 1: Finding an available availability zone",
            Filters=[{"Name": "state", "Values": ["available"]}],
        )
        zone = require(zones, "AvailabilityZones[0].ZoneName", "availability zone")
        logger.info(f"Using availability zone: {zone}")

        volume = await session.create(
            "ec2",
            "create_volume",
            resource_type="ec2:volume",
            id_query="VolumeId",
            label=session.name("volume"),
            description="Step 2: Creating a gp3 volume",
            params={
                "VolumeType": "gp3",
                "Size": options.size_gb,
                "AvailabilityZone": zone,
                "TagSpecifications": [
                    {
                        "ResourceType": "volume",
                        "Tags": [
                            {"Key": "Name", "Value": session.name("volume")},
                            {"Key": "Purpose", "Value": "Tutorial"},
                        ],
                    }
                ],
            },
        )

        await session.wait(
            "ec2",
            "volume_available",
            description="Waiting for the volume to become available",
            VolumeIds=[volume.identifier],
        )

        details = await session.call("ec2", "describe_volumes", VolumeIds=[volume.identifier])
        session.output("volume_id", volume.identifier)
        session.output("volume_state", require(details, "Volumes[0].State", "volume state"))

        if options.attach:
            await self._attach(session, options, volume.identifier, zone)

    async def _attach(
        self, session: TutorialSession, options: EBSVolumeOptions, volume_id: str, zone: str
    ) -> None:
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

        vpcs = await session.call(
            "ec2", "describe_vpcs", Filters=[{"Name": "isDefault", "Values": ["true"]}]
        )
        vpc_id = require(vpcs, "Vpcs[0].VpcId", "default VPC ID")

        subnets = await session.call(
            "ec2",
            "describe_subnets",
            Filters=[
                {"Name": "vpc-id", "Values": [vpc_id]},
                {"Name": "availability-zone", "Values": [zone]},
            ],
        )
        subnet_id = require(subnets, "Subnets[0].SubnetId", "subnet ID")

        group = await session.create(
            "ec2",
            "create_security_group",
            resource_type="ec2:security-group",
            id_query="GroupId",
            label=session.name("sg"),
            params={
                "GroupName": session.name("sg"),
                "Description": "Security group for EBS tutorial",
                "VpcId": vpc_id,
            },
        )

        instance = await session.create(
            "ec2",
            "run_instances",
            resource_type="ec2:instance",
            id_query="Instances[0].InstanceId",
            label=session.name("instance"),
            description="Launching an instance to attach the volume to",
            params={
                "ImageId": image_id,
                "InstanceType": options.instance_type,
                "SubnetId": subnet_id,
                "SecurityGroupIds": [group.identifier],
                "MinCount": 1,
                "MaxCount": 1,
                "TagSpecifications": [
                    {
                        "ResourceType": "instance",
                        "Tags": [{"Key": "Name", "Value": session.name("instance")}],
                    }
                ],
            },
        )

        await session.wait(
            "ec2",
            "instance_running",
            description="Waiting for the instance to start",
            InstanceIds=[instance.identifier],
        )

        await session.call(
            "ec2",
            "attach_volume",
            description="Step 4: Attaching the volume",
            VolumeId=volume_id,
            InstanceId=instance.identifier,
            Device="/dev/sdf",
        )
        session.track(
            "ec2:volume-attachment",
            volume_id,
            label=f"{volume_id} on {instance.identifier}",
            attributes={"instance_id": instance.identifier},
        )

        await session.wait(
            "ec2",
            "volume_in_use",
            description="Waiting for the attachment to complete",
            VolumeIds=[volume_id],
        )
        session.output("instance_id", instance.identifier)
