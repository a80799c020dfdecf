"""Interactive confirmation for cleanup."""

import logging
from collections.abc import Callable
from typing import Final

from tutorial_runner.constants import AFFIRMATIVE_ANSWERS, CLEANUP_BANNER

logger: Final = logging.getLogger(__name__)


def cleanup_banner() -> list[str]:
    """Lines printed before asking whether to clean up."""
    rule = "=" * 43
    return ["", rule, CLEANUP_BANNER, rule]


class ConfirmationPrompt:
    """Asks the user a yes/no question.

    Attributes:
        auto_answer: Fixed answer used instead of asking (e.g. True for
            ``--auto-cleanup``). None means ask.

    Example:
        >>> ConfirmationPrompt(auto_answer=True).confirm("Clean up? (y/n): ")
        True
        >>> ConfirmationPrompt(input_func=lambda _: "Y").confirm("Clean up? (y/n): ")
        True
    """

    def __init__(
        self,
        auto_answer: bool | None = None,
        input_func: Callable[[str], str] = input,
    ) -> None:
        self.auto_answer = auto_answer
        self.input_func = input_func

    def confirm(self, question: str) -> bool:
        """Ask a question and interpret the answer.

        Args:
            question: Question text, including the ``(y/n)`` hint.

        Returns:
            True for "y"/"yes" (any case), False otherwise. Without a
            terminal (end of input) the answer is False.
        """
        if self.auto_answer is not None:
            logger.info(f"{question}{'y' if self.auto_answer else 'n'} (automatic)")
            return self.auto_answer

        try:
            answer = self.input_func(question)
        except EOFError:
            logger.warning("No input available; treating the answer as 'no'")
            return False

        return answer.strip().lower() in AFFIRMATIVE_ANSWERS
