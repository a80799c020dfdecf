"""Tutorial definitions.

Each module defines one getting-started walkthrough as a ``BaseTutorial``
subclass; ``registry`` maps slugs to classes.
"""

from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.tutorials.registry import TUTORIALS, get_tutorial, list_tutorials

__all__ = ["TUTORIALS", "BaseTutorial", "TutorialOptions", "get_tutorial", "list_tutorials"]
