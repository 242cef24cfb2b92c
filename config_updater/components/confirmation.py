"""
Confirmation providers for the decision points of an update session.

A session asks twice at most: when local and remote history diverged, and
when the new commits contain breaking changes. Only the affirmative token
counts as yes; anything else, including an empty answer, declines.
"""

import sys
from typing import Callable, List, Optional, TextIO

from ..models.git import CommitRecord
from ..utils.logging import get_logger
from ..utils.text import format_commit_table

logger = get_logger("confirmation")

AFFIRMATIVE_TOKEN = "y"


def is_affirmative(answer: Optional[str]) -> bool:
    """True only for the affirmative token, compared case-insensitively."""
    if answer is None:
        return False
    return answer.lower() == AFFIRMATIVE_TOKEN


class ConsoleConfirmation:
    """Asks on the terminal and reads the answer from stdin."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        stream: Optional[TextIO] = None,
        prompt: str = "-> ",
    ):
        self.input_func = input_func
        self.stream = stream or sys.stdout
        self.prompt = prompt

    def confirm(self, question: str, commits: List[CommitRecord]) -> bool:
        print(question, file=self.stream)
        if commits:
            print(format_commit_table(commits), file=self.stream)

        try:
            answer = self.input_func(self.prompt)
        except EOFError:
            # stdin closed, nobody can answer
            logger.warning("No input available, declining", extra={"question": question})
            return False

        accepted = is_affirmative(answer)
        logger.info("User answered confirmation", extra={"question": question, "accepted": accepted})
        return accepted


class FixedAnswerConfirmation:
    """Answers every question the same way, for unattended runs."""

    def __init__(self, answer: bool):
        self.answer = answer

    def confirm(self, question: str, commits: List[CommitRecord]) -> bool:
        logger.info(
            "Answering confirmation automatically",
            extra={"question": question, "accepted": self.answer},
        )
        return self.answer


class AutoDeclineConfirmation(FixedAnswerConfirmation):
    """Default for automated callers: every decision point declines."""

    def __init__(self):
        super().__init__(answer=False)
