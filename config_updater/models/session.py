"""
Update session models.

An UpdateSession is created for a single update attempt and threaded
through every orchestrator step; UpdateResult is what the caller gets back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..utils.error_handling import UpdateErrorKind
from .git import CommitRecord, RepoHandle


class SessionState(Enum):
    """States of the update state machine."""

    START = "start"
    VALIDATED = "validated"
    SNAPSHOTTED = "snapshotted"
    FETCHED = "fetched"
    DIFFED = "diffed"
    UP_TO_DATE = "up_to_date"
    DIVERGED = "diverged"
    CLASSIFIED = "classified"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    APPLIED = "applied"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    DONE = "done"


class UpdateOutcome(Enum):
    """Three-way result of an update session."""

    APPLIED = "applied"
    NO_CHANGES = "no_changes"
    FAILED = "failed"


@dataclass
class UpdateSession:
    """Transient state of one update attempt."""

    update_branch: str
    update_url: str
    repo: Optional[RepoHandle] = None
    new_commits: List[CommitRecord] = field(default_factory=list)
    breaking_changes: List[CommitRecord] = field(default_factory=list)
    state: SessionState = SessionState.START
    history: List[SessionState] = field(default_factory=lambda: [SessionState.START])
    outcome: Optional[UpdateOutcome] = None
    error_kind: Optional[UpdateErrorKind] = None
    diverged: bool = False
    error_message: str = ""
    recovered: bool = True

    def transition(self, state: SessionState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def is_finished(self) -> bool:
        return self.state == SessionState.DONE


@dataclass
class UpdateResult:
    """Result of an update session as reported to the caller."""

    outcome: UpdateOutcome
    update_url: str
    update_branch: str
    new_commits: List[CommitRecord] = field(default_factory=list)
    breaking_changes: List[CommitRecord] = field(default_factory=list)
    error_kind: Optional[UpdateErrorKind] = None
    diverged: bool = False
    error_message: str = ""
    recovered: bool = True

    @property
    def succeeded(self) -> bool:
        return self.outcome != UpdateOutcome.FAILED

    @property
    def breaking_changes_present(self) -> bool:
        return bool(self.breaking_changes)

    @classmethod
    def from_session(cls, session: UpdateSession) -> "UpdateResult":
        return cls(
            outcome=session.outcome or UpdateOutcome.FAILED,
            update_url=session.update_url,
            update_branch=session.update_branch,
            new_commits=list(session.new_commits),
            breaking_changes=list(session.breaking_changes),
            error_kind=session.error_kind,
            error_message=session.error_message,
            recovered=session.recovered,
            diverged=session.diverged,
        )

    def validate(self) -> None:
        """Validate result consistency."""
        if not isinstance(self.outcome, UpdateOutcome):
            raise ValueError("outcome must be an UpdateOutcome enum")

        if self.outcome == UpdateOutcome.FAILED and self.error_kind is None:
            raise ValueError("error_kind required for failed sessions")

        if self.outcome != UpdateOutcome.FAILED and self.error_kind is not None:
            raise ValueError("error_kind only allowed for failed sessions")

        for commit in self.breaking_changes:
            if commit not in self.new_commits:
                raise ValueError("breaking changes must be a subset of new commits")
