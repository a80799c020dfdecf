"""Getting started with Amazon Lightsail.

Creates an instance, a block storage disk attached to it, and an instance
snapshot.
"""

import logging
from typing import Final

from pydantic import Field

from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)


class LightsailOptions(TutorialOptions):
    """Options for the Lightsail tutorial."""

    blueprint_id: str = "amazon_linux_2023"
    bundle_id: str = "nano_3_0"
    availability_zone: str | None = None
    disk_size_gb: int = Field(8, ge=8, le=16384)


class LightsailTutorial(BaseTutorial):
    """Lightsail instance, disk and snapshot walkthrough."""

    slug = "lightsail-gs"
    title = "Getting started with Amazon Lightsail"
    description = (
        "Create a Lightsail instance, attach a block storage disk to it and "
        "take a snapshot of the instance."
    )
    default_region = "us-west-2"
    options_model = LightsailOptions

    async def run(self, session: TutorialSession, options: LightsailOptions) -> None:
        instance_name = session.name("instance")
        disk_name = session.name("disk")
        snapshot_name = session.name("snapshot")
        zone = options.availability_zone or f"{session.region}a"

        blueprints = await session.call(
            "lightsail", "get_blueprints", description="Step 1: Listing available blueprints"
        )
        for blueprint in blueprints.get("blueprints", [])[:5]:
            logger.info(f"  {blueprint.get('blueprintId')}: {blueprint.get('name')}")

        bundles = await session.call("lightsail", "get_bundles")
        for bundle in bundles.get("bundles", [])[:5]:
            logger.info(f"  {bundle.get('bundleId')}: {bundle.get('name')} ({bundle.get('price')})")

        await session.call(
            "lightsail",
            "create_instances",
            description=f"Step 2: Creating Lightsail instance {instance_name}",
            instanceNames=[instance_name],
            availabilityZone=zone,
            blueprintId=options.blueprint_id,
            bundleId=options.bundle_id,
        )
        session.track("lightsail:instance", instance_name)

        await session.wait_for(
            "lightsail",
            "get_instance_state",
            params={"instanceName": instance_name},
            status_query="state.name",
            targets="running",
            description="instance",
        )

        instance = await session.call("lightsail", "get_instance", instanceName=instance_name)
        session.output("instance_ip", instance.get("instance", {}).get("publicIpAddress"))

        await session.call(
            "lightsail",
            "create_disk",
            description=f"Step 3: Creating block storage disk {disk_name}",
            diskName=disk_name,
            availabilityZone=zone,
            sizeInGb=options.disk_size_gb,
        )
        session.track("lightsail:disk", disk_name)

        await session.wait_for(
            "lightsail",
            "get_disk",
            params={"diskName": disk_name},
            status_query="disk.state",
            targets="available",
            description="disk",
        )

        await session.call(
            "lightsail",
            "attach_disk",
            description="Attaching disk to instance",
            diskName=disk_name,
            instanceName=instance_name,
            diskPath="/dev/xvdf",
        )
        logger.info("Disk attached. To format and mount it, connect to the instance and run:")
        logger.info("  sudo mkfs -t ext4 /dev/xvdf")
        logger.info("  sudo mkdir -p /mnt/my-data && sudo mount /dev/xvdf /mnt/my-data")

        await session.call(
            "lightsail",
            "create_instance_snapshot",
            description=f"Step 4: Creating snapshot {snapshot_name}",
            instanceName=instance_name,
            instanceSnapshotName=snapshot_name,
        )
        session.track("lightsail:instance-snapshot", snapshot_name)

        await session.wait_for(
            "lightsail",
            "get_instance_snapshot",
            params={"instanceSnapshotName": snapshot_name},
            status_query="instanceSnapshot.state",
            targets=("available", "completed"),
            failure_states="error",
            description="snapshot",
        )
        session.output("snapshot", snapshot_name)
