"""
Update orchestrator for the config updater.

This module drives one update session through its state machine:
validation, snapshot, remote comparison, fetch, commit-range diff,
breaking-change classification, confirmation, and finally apply or
rollback. Whatever happens, the repository ends either updated or back in
its pre-session state, and the caller gets a three-way UpdateResult.
"""

from pathlib import Path
from typing import Optional

from .components.change_classifier import ChangeClassifier
from .components.confirmation import AutoDeclineConfirmation
from .components.process_runner import ProcessRunner
from .components.remote_sync import RemoteSync
from .components.repo_state_manager import RepoStateManager
from .interfaces import (
    IChangeClassifier,
    IConfirmation,
    IProcessRunner,
    IRemoteSync,
    IRepoStateManager,
    ProgressCallback,
)
from .models.config import UpdaterConfig
from .models.session import SessionState, UpdateOutcome, UpdateResult, UpdateSession
from .services.session_lock import SessionLock
from .utils.error_handling import (
    ErrorTracker,
    FetchFailedError,
    NotARepositoryError,
    RestoreFailedError,
    SessionLockedError,
    SnapshotFailedError,
    UpdateError,
    UpdateErrorKind,
    get_error_tracker,
)
from .utils.logging import get_logger

DIVERGED_QUESTION = (
    "Local and remote history have diverged, most likely because the remote "
    "history was rewritten. Skip the update and keep the current state? [y/N]"
)
BREAKING_CHANGES_QUESTION = (
    "The update contains breaking changes that may require manual action. "
    "Continue with the update? [y/N]"
)


class UpdateOrchestrator:
    """
    Runs update sessions against one repository.

    Components are injected for testing; by default they are built from
    the configuration. Sessions are serialized through a per-repository
    SessionLock, a second concurrent session fails with SESSION_LOCKED.
    """

    def __init__(
        self,
        config: UpdaterConfig,
        confirmation: Optional[IConfirmation] = None,
        runner: Optional[IProcessRunner] = None,
        state_manager: Optional[IRepoStateManager] = None,
        remote_sync: Optional[IRemoteSync] = None,
        classifier: Optional[IChangeClassifier] = None,
        session_lock: Optional[SessionLock] = None,
        error_tracker: Optional[ErrorTracker] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Updater configuration
            confirmation: Answers the decision points; declines by default
            runner: Process runner bound to the repository root
            state_manager: Repository validation/snapshot/restore component
            remote_sync: Fetch and reset component
            classifier: Commit range and breaking-change component
            session_lock: Lock serializing sessions on the repository
            error_tracker: Records session failures
            progress: Classification progress callback
        """
        self.config = config
        self.logger = get_logger("orchestrator", {"repo": config.repo_path})
        self.repo_path = Path(config.repo_path)

        self.confirmation = confirmation or AutoDeclineConfirmation()
        self.runner = runner or ProcessRunner(self.repo_path, config.git_executable)
        self.state_manager = state_manager or RepoStateManager(self.runner, config.snapshot_message)
        self.remote_sync = remote_sync or RemoteSync(self.runner, self.state_manager, config.remote_name)
        self.classifier = classifier or ChangeClassifier(self.runner, config.breaking_change_patterns)
        self.session_lock = session_lock or SessionLock(self.repo_path, timeout=config.lock_timeout)
        self.error_tracker = error_tracker or get_error_tracker()
        self.progress = progress

    def create_session(self) -> UpdateSession:
        return UpdateSession(
            update_branch=self.config.update_branch,
            update_url=self.config.update_url,
        )

    def run(self, session: Optional[UpdateSession] = None) -> UpdateResult:
        """
        Run one update session.

        Returns:
            UpdateResult: APPLIED, NO_CHANGES or FAILED. Failed sessions have
            restored the repository unless `recovered` is False.
        """
        session = session or self.create_session()
        self.logger.info(
            "Starting update session",
            extra={"url": session.update_url, "branch": session.update_branch},
        )

        try:
            with self.session_lock:
                self._run_locked(session)
        except SessionLockedError as e:
            self._record_failure(session, e)
            session.transition(SessionState.FAILED)

        session.transition(SessionState.DONE)
        result = UpdateResult.from_session(session)

        self.logger.info(
            "Update session finished",
            extra={
                "outcome": result.outcome.value,
                "error_kind": result.error_kind.value if result.error_kind else None,
                "new_commits": len(result.new_commits),
                "breaking_changes": len(result.breaking_changes),
                "history": [state.value for state in session.history],
            },
        )
        return result

    def _run_locked(self, session: UpdateSession) -> None:
        try:
            self._execute(session)
        except UpdateError as e:
            self._handle_failure(session, e)
        except BaseException:
            # Includes KeyboardInterrupt at a confirmation prompt
            self.logger.error("Update session aborted", exc_info=True)
            if session.repo is not None and session.outcome is None:
                try:
                    self.state_manager.restore(session.repo)
                except RestoreFailedError as restore_error:
                    self.logger.critical(
                        "Restore after aborted session failed",
                        extra={"error": str(restore_error), "snapshot": restore_error.backup_sha},
                    )
            raise

    def _execute(self, session: UpdateSession) -> None:
        if self.state_manager.check_for_leftover_tmp_commit(self.repo_path):
            self.logger.info("Removed leftover snapshot commit before updating")

        try:
            session.repo = self.state_manager.validate(self.repo_path)
        except SnapshotFailedError:
            session.transition(SessionState.VALIDATED)
            raise
        session.transition(SessionState.VALIDATED)
        session.transition(SessionState.SNAPSHOTTED)

        repo = session.repo
        branch = session.update_branch

        repo.remote_sha = self.remote_sync.get_remote_head(branch)
        if not repo.remote_sha:
            raise FetchFailedError(f"Could not resolve the remote head of {branch}")

        if repo.remote_sha == repo.current_head_sha:
            session.transition(SessionState.UP_TO_DATE)
            self.logger.info("Already up to date", extra={"head": repo.current_head_sha})
            self._finish_without_changes(session)
            return

        self.remote_sync.fetch_head(branch)
        session.transition(SessionState.FETCHED)

        commit_range = self.classifier.commits_between(repo.current_head_sha, repo.remote_sha)
        session.transition(SessionState.DIFFED)

        if commit_range.diverged:
            session.transition(SessionState.DIVERGED)
            session.diverged = True
            if self.confirmation.confirm(DIVERGED_QUESTION, []):
                self._finish_without_changes(session)
            else:
                self._decline(session, UpdateErrorKind.DIVERGED_HISTORY, "Update cancelled, history diverged")
            return

        session.new_commits = list(commit_range.commits)
        session.breaking_changes = self.classifier.classify(session.new_commits, progress=self.progress)
        session.transition(SessionState.CLASSIFIED)

        if session.breaking_changes:
            self.logger.warning("Breaking changes found", extra={"count": len(session.breaking_changes)})
            if not self.confirmation.confirm(BREAKING_CHANGES_QUESTION, session.breaking_changes):
                session.transition(SessionState.DECLINED)
                self._decline(session, UpdateErrorKind.USER_DECLINED, "Update cancelled by user")
                return
            session.transition(SessionState.CONFIRMED)

        self._apply(session)

    def _apply(self, session: UpdateSession) -> None:
        # Reset to the classified sha, not whatever the fetch moved the branch to
        summary = self.remote_sync.reset_to_remote_head(session.update_branch, session.repo.remote_sha)
        self.state_manager.reapply_snapshot(session.repo)

        session.transition(SessionState.APPLIED)
        session.outcome = UpdateOutcome.APPLIED
        self.logger.info(
            "Update applied",
            extra={"target": summary.target, "status": summary.status, "removed": summary.removed_paths},
        )

    def _finish_without_changes(self, session: UpdateSession) -> None:
        # Drops the snapshot commit and puts pending changes back
        self.state_manager.restore(session.repo)
        session.outcome = UpdateOutcome.NO_CHANGES

    def _decline(self, session: UpdateSession, kind: UpdateErrorKind, message: str) -> None:
        repo = session.repo
        if repo.has_snapshot:
            self.state_manager.restore(repo)
        elif not self.remote_sync.reset_to_local_head(repo):
            raise RestoreFailedError(f"Could not reset to {repo.current_head_sha}")
        session.transition(SessionState.ROLLED_BACK)
        session.transition(SessionState.FAILED)
        session.outcome = UpdateOutcome.FAILED
        session.error_kind = kind
        session.error_message = message
        self.logger.info("Update declined, repository restored", extra={"kind": kind.value})

    def _record_failure(self, session: UpdateSession, error: UpdateError) -> None:
        self.error_tracker.record_update_error(
            "orchestrator",
            error,
            context={"state": session.state.value, "branch": session.update_branch},
        )
        session.outcome = UpdateOutcome.FAILED
        session.error_kind = error.kind
        session.error_message = str(error)

    def _handle_failure(self, session: UpdateSession, error: UpdateError) -> None:
        self._record_failure(session, error)

        if isinstance(error, RestoreFailedError):
            self._mark_unrecoverable(session, error)
        elif isinstance(error, SnapshotFailedError):
            # validate() already put the working tree back
            session.transition(SessionState.ROLLED_BACK)
        elif isinstance(error, NotARepositoryError) or session.repo is None:
            pass
        else:
            try:
                self.state_manager.restore(session.repo)
                session.transition(SessionState.ROLLED_BACK)
            except RestoreFailedError as restore_error:
                self._record_failure(session, restore_error)
                self._mark_unrecoverable(session, restore_error)

        session.transition(SessionState.FAILED)

    def _mark_unrecoverable(self, session: UpdateSession, error: RestoreFailedError) -> None:
        session.recovered = False
        session.error_kind = UpdateErrorKind.RESTORE_FAILED
        if error.backup_sha:
            session.error_message = (
                f"{error}. Local changes are preserved in commit {error.backup_sha}, "
                f"recover them with `git cherry-pick --no-commit {error.backup_sha}`"
            )
        self.logger.critical(
            "Repository could not be restored",
            extra={"error": str(error), "snapshot": error.backup_sha},
        )
