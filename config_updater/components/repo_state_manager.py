"""
Repository state management for update sessions.

This module provides the RepoStateManager class which validates that the
configuration directory is a usable git repository, records a throwaway
snapshot commit of all pending changes, and restores the working tree to
its pre-session state when an update is abandoned.
"""

import re
from pathlib import Path
from typing import List, Optional

from ..interfaces import IProcessRunner
from ..models.config import DEFAULT_SNAPSHOT_MESSAGE
from ..models.git import RepoHandle
from ..utils.error_handling import (
    NotARepositoryError,
    ReapplyFailedError,
    RestoreFailedError,
    SnapshotFailedError,
)
from ..utils.logging import get_logger

logger = get_logger("repo.state")

SHA_PATTERN = re.compile(r"^[0-9a-f]{7,64}$")

# Snapshot commits must not depend on the user's git identity being set
SNAPSHOT_IDENTITY_ARGS = [
    "-c",
    "user.name=config-updater",
    "-c",
    "user.email=config-updater@localhost",
    "-c",
    "commit.gpgsign=false",
]


class RepoStateManager:
    """
    Validates, snapshots and restores the repository working tree.

    The snapshot is an ordinary commit on top of the current HEAD holding
    every tracked modification and untracked file. It lets a hard reset be
    undone: resetting to the original HEAD and cherry-picking the snapshot
    without committing brings back the exact pre-session working tree.
    """

    def __init__(self, runner: IProcessRunner, snapshot_message: str = DEFAULT_SNAPSHOT_MESSAGE):
        self.runner = runner
        self.snapshot_message = snapshot_message

    def _resolve_head(self) -> str:
        output = self.runner.output(["rev-parse", "--verify", "HEAD"])
        if output is None:
            return ""

        sha = output.strip()
        return sha if SHA_PATTERN.match(sha) else ""

    def validate(self, repo_path: Optional[Path] = None) -> RepoHandle:
        """
        Check that the directory is a git repository and snapshot it.

        Args:
            repo_path: Repository root, defaults to the runner's directory

        Returns:
            RepoHandle with current_head_sha and backup_sha set

        Raises:
            NotARepositoryError: HEAD cannot be resolved
            SnapshotFailedError: pending changes could not be committed; the
                working tree has been restored before this is raised
        """
        root = Path(repo_path) if repo_path is not None else self.runner.repo_path

        current_sha = self._resolve_head()
        if not current_sha:
            logger.warning("Directory is not a usable git repository", extra={"path": str(root)})
            raise NotARepositoryError(f"{root} is not a valid git directory")

        repo = RepoHandle(root_path=root, current_head_sha=current_sha, backup_sha=current_sha)

        try:
            self._create_snapshot(repo)
        except SnapshotFailedError:
            self._undo_failed_snapshot(repo)
            raise

        return repo

    def _create_snapshot(self, repo: RepoHandle) -> None:
        status = self.runner.run(["status", "--porcelain"])
        if not status.success:
            raise SnapshotFailedError("Could not read working tree status", status.error_message)

        if not status.stdout.strip():
            logger.info("Working tree clean, nothing to snapshot", extra={"head": repo.current_head_sha})
            return

        add = self.runner.run(["add", "--all"])
        if not add.success:
            raise SnapshotFailedError("Could not stage pending changes", add.error_message)

        commit = self.runner.run(
            [*SNAPSHOT_IDENTITY_ARGS, "commit", "--no-verify", "--quiet", "-m", self.snapshot_message]
        )
        backup_sha = self._resolve_head()

        if not commit.success or not backup_sha or backup_sha == repo.current_head_sha:
            raise SnapshotFailedError("Could not create snapshot commit", commit.error_message)

        repo.backup_sha = backup_sha
        logger.info(
            "Snapshot commit created",
            extra={"head": repo.current_head_sha, "snapshot": backup_sha},
        )

    def _undo_failed_snapshot(self, repo: RepoHandle) -> None:
        head = self._resolve_head()
        if head and head != repo.current_head_sha:
            # The commit went through even though it was reported as failed
            repo.backup_sha = head
            self.restore(repo)
            return

        # Nothing was committed, only unstage what `add --all` staged
        unstage = self.runner.run(["reset", "--quiet"])
        if not unstage.success:
            raise RestoreFailedError("Could not unstage changes after failed snapshot", unstage.error_message)

    def restore(self, repo: RepoHandle) -> None:
        """
        Restore the working tree to its state before validate().

        Hard resets to current_head_sha, replays the snapshot without
        committing and unstages everything.

        Raises:
            RestoreFailedError: one of the steps failed; the snapshot sha is
                attached so the changes can be recovered by hand
        """
        logger.info(
            "Restoring repository state",
            extra={"head": repo.current_head_sha, "snapshot": repo.backup_sha},
        )

        reset = self.runner.run(["reset", "--hard", "--quiet", repo.current_head_sha])
        if not reset.success:
            raise RestoreFailedError(
                f"Could not reset to {repo.current_head_sha}", reset.error_message, repo.backup_sha
            )

        if not repo.has_snapshot:
            return

        pick = self.runner.run(["cherry-pick", "--no-commit", repo.backup_sha])
        if not pick.success:
            raise RestoreFailedError(
                f"Could not reapply snapshot {repo.backup_sha}", pick.error_message, repo.backup_sha
            )

        unstage = self.runner.run(["reset", "--quiet"])
        if not unstage.success:
            raise RestoreFailedError("Could not unstage restored changes", unstage.error_message, repo.backup_sha)

    def reapply_snapshot(self, repo: RepoHandle) -> None:
        """
        Replay the snapshot's changes on top of the current HEAD.

        Used after the tree was reset to the remote head so the user's
        uncommitted customizations survive the update.

        Raises:
            ReapplyFailedError: the snapshot conflicts with the new head
        """
        if not repo.has_snapshot:
            return

        pick = self.runner.run(["cherry-pick", "--no-commit", repo.backup_sha])
        if not pick.success:
            raise ReapplyFailedError(
                "Local changes conflict with the update", pick.error_message or repo.backup_sha
            )

        unstage = self.runner.run(["reset", "--quiet"])
        if not unstage.success:
            raise ReapplyFailedError("Could not unstage reapplied changes", unstage.error_message)

        logger.info("Local changes reapplied", extra={"snapshot": repo.backup_sha})

    def is_shallow(self, repo_path: Optional[Path] = None) -> bool:
        """Check whether the repository is a shallow clone."""
        output = self.runner.output(["rev-parse", "--is-shallow-repository"])
        return output is not None and "true" in output

    def get_last_commit_message(self) -> str:
        """Return the message of the most recent commit."""
        output = self.runner.output(["log", "-1", "--pretty=%B"])
        return output.strip() if output else ""

    def get_stash_list(self) -> List[str]:
        """Return the stash entries, most recent first."""
        output = self.runner.output(["stash", "list", "--pretty=format:%gd"])
        if not output:
            return []
        return [line for line in output.splitlines() if line.strip()]

    def check_for_leftover_tmp_commit(self, repo_path: Optional[Path] = None) -> bool:
        """
        Remove a snapshot commit left behind by a crashed session.

        If the most recent commit carries the snapshot message, history is
        rewound by one commit with a mixed reset so the snapshot's contents
        come back as uncommitted changes. Modifications made after the crash
        are stashed around the reset and force-applied again afterwards.

        Returns:
            True if a leftover snapshot commit was removed
        """
        if self.get_last_commit_message() != self.snapshot_message:
            return False

        logger.warning("Removing leftover snapshot commit from a previous session")
        pre_stash_count = len(self.get_stash_list())

        self.runner.run([*SNAPSHOT_IDENTITY_ARGS, "stash"])
        stashed = len(self.get_stash_list()) > pre_stash_count

        reset = self.runner.run(["reset", "--mixed", "--quiet", "HEAD~1"])
        if not reset.success:
            logger.error("Could not remove leftover snapshot commit", extra={"error": reset.error_message})

        if stashed:
            self._force_pop_stash()

        return reset.success

    def _force_pop_stash(self) -> None:
        logger.info("Local modifications were stashed, reapplying them")

        patch = self.runner.run(["stash", "show", "-p", "--binary"])
        applied = patch.success and self.runner.run(["apply"], input_text=patch.stdout).success

        if not applied:
            logger.error("Could not reapply stashed modifications, they remain available in stash@{0}")
            return

        drop = self.runner.run(["stash", "drop", "--quiet"])
        if not drop.success:
            logger.warning("Stash applied but could not be dropped", extra={"error": drop.error_message})
        else:
            logger.info("Stashed modifications restored")
