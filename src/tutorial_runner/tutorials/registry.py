"""Tutorial registry.

Maps tutorial slugs to their classes so the command line can look them up.
"""

import logging
from typing import Final

from tutorial_runner.tutorials.amazon_mq import AmazonMQTutorial
from tutorial_runner.tutorials.athena import AthenaTutorial
from tutorial_runner.tutorials.aws_config import ConfigTutorial
from tutorial_runner.tutorials.base import BaseTutorial
from tutorial_runner.tutorials.ebs_volumes import EBSVolumesTutorial
from tutorial_runner.tutorials.ecs_fargate import ECSFargateTutorial
from tutorial_runner.tutorials.fis import FISTutorial
from tutorial_runner.tutorials.lightsail import LightsailTutorial
from tutorial_runner.tutorials.neptune import NeptuneTutorial
from tutorial_runner.tutorials.network_firewall import NetworkFirewallTutorial
from tutorial_runner.tutorials.sagemaker_featurestore import FeatureStoreTutorial
from tutorial_runner.tutorials.step_functions import StepFunctionsTutorial

logger: Final = logging.getLogger(__name__)

TUTORIALS: Final[dict[str, type[BaseTutorial]]] = {
    tutorial.slug: tutorial
    for tutorial in (
        LightsailTutorial,
        EBSVolumesTutorial,
        AmazonMQTutorial,
        NeptuneTutorial,
        StepFunctionsTutorial,
        AthenaTutorial,
        ConfigTutorial,
        FISTutorial,
        NetworkFirewallTutorial,
        ECSFargateTutorial,
        FeatureStoreTutorial,
    )
}


def get_tutorial(slug: str) -> BaseTutorial:
    """Instantiate a tutorial by slug.

    Args:
        slug: Tutorial identifier (e.g. "neptune-gs").

    Returns:
        A new tutorial instance.

    Raises:
        KeyError: If no tutorial has that slug. The message lists valid slugs.
    """
    try:
        tutorial_class = TUTORIALS[slug]
    except KeyError:
        raise KeyError(
            f"Unknown tutorial '{slug}'. Available tutorials: {', '.join(sorted(TUTORIALS))}"
        ) from None
    return tutorial_class()


def list_tutorials() -> list[type[BaseTutorial]]:
    """All registered tutorials, sorted by slug."""
    return [TUTORIALS[slug] for slug in sorted(TUTORIALS)]
