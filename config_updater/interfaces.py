"""
Protocol interfaces for the config updater.

This module defines the protocol interfaces that establish component
boundaries and enable dependency injection into the orchestrator.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, Sequence

from .models.git import CommandResult, CommitRange, CommitRecord, RepoHandle, ResetSummary

if TYPE_CHECKING:
    from .models.config import UpdaterConfig

ProgressCallback = Callable[[int, int], None]


class IProcessRunner(Protocol):
    """Protocol for invoking the version-control backend."""

    repo_path: Path

    def run(self, args: Sequence[str], input_text: Optional[str] = None) -> CommandResult:
        """Run git with the given arguments in the repository root."""
        ...

    def output(self, args: Sequence[str]) -> Optional[str]:
        """Return stdout of a successful invocation, None on failure."""
        ...


class IRepoStateManager(Protocol):
    """Protocol for validating, snapshotting and restoring the repository."""

    def validate(self, repo_path: Path) -> RepoHandle:
        """Resolve HEAD and take a snapshot of pending changes."""
        ...

    def restore(self, repo: RepoHandle) -> None:
        """Bring the working tree back to its pre-session state."""
        ...

    def reapply_snapshot(self, repo: RepoHandle) -> None:
        """Replay the snapshot's changes on top of the current HEAD."""
        ...

    def is_shallow(self, repo_path: Optional[Path] = None) -> bool:
        """Check whether the repository is a shallow clone."""
        ...

    def check_for_leftover_tmp_commit(self, repo_path: Optional[Path] = None) -> bool:
        """Remove a snapshot commit left behind by a crashed session."""
        ...


class IRemoteSync(Protocol):
    """Protocol for synchronizing with the remote branch."""

    def get_remote_head(self, branch: str) -> str:
        """Query the remote head of a branch without fetching."""
        ...

    def get_local_head(self) -> str:
        """Resolve the local HEAD."""
        ...

    def fetch_head(self, branch: str) -> None:
        """Fetch the named branch."""
        ...

    def reset_to_remote_head(self, branch: str, sha: str = "") -> ResetSummary:
        """Hard reset to sha, or the fetched branch tip, and clean the tree."""
        ...

    def reset_to_local_head(self, repo: RepoHandle) -> bool:
        """Hard reset to the pre-session head."""
        ...


class IChangeClassifier(Protocol):
    """Protocol for retrieving and classifying new commits."""

    def commits_between(self, start_sha: str, end_sha: str) -> CommitRange:
        """Commits reachable from end_sha but not start_sha."""
        ...

    def classify(
        self,
        commits: List[CommitRecord],
        patterns: Optional[List[str]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> List[CommitRecord]:
        """Return the commits matching any breaking-change pattern."""
        ...


class IConfirmation(Protocol):
    """Protocol for the yes/no decision points of a session."""

    def confirm(self, question: str, commits: List[CommitRecord]) -> bool:
        """Ask the user whether to continue."""
        ...


class IConfigurationManager(Protocol):
    """Protocol for managing updater configuration."""

    def load_config(self) -> "UpdaterConfig":
        """Load configuration from file."""
        ...
