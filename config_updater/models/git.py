"""
Git operation data models.

This module defines data models for the git invocations an update session
performs and the repository state it carries between them.
"""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional


@dataclass
class CommandResult:
    """Result of a single git invocation."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def error_message(self) -> str:
        """Best available description of a failure."""
        return self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"


@dataclass
class RepoHandle:
    """Repository state owned by one update session."""

    root_path: Path
    current_head_sha: str
    backup_sha: str = ""
    remote_sha: str = ""

    @property
    def has_snapshot(self) -> bool:
        """True when a snapshot commit was created on top of the current head."""
        return bool(self.backup_sha) and self.backup_sha != self.current_head_sha

    def validate(self) -> None:
        """Validate repository handle data."""
        if not self.current_head_sha:
            raise ValueError("current_head_sha cannot be empty")

        if not self.backup_sha:
            raise ValueError("backup_sha cannot be empty once a snapshot was taken")


@dataclass(frozen=True)
class CommitRecord:
    """One commit parsed from a `yyyy-mm-dd: shorthash message` log line."""

    date: Optional[date]
    short_hash: str
    message: str
    raw: str = ""

    @property
    def is_valid(self) -> bool:
        return self.date is not None and bool(self.short_hash)

    @property
    def match_text(self) -> str:
        """Text that breaking-change patterns are matched against."""
        return self.message if self.is_valid else self.raw

    @classmethod
    def unset(cls, raw: str = "") -> "CommitRecord":
        """Record standing in for a line that could not be parsed."""
        return cls(date=None, short_hash="", message="", raw=raw)


@dataclass
class CommitRange:
    """New commits between two references."""

    start_sha: str
    end_sha: str
    commits: List[CommitRecord] = field(default_factory=list)
    diverged: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.commits

    def __len__(self) -> int:
        return len(self.commits)


@dataclass
class ResetSummary:
    """Outcome of resetting the working tree to the remote head."""

    target: str
    status: str
    removed_paths: List[str] = field(default_factory=list)
