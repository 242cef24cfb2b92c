"""
Tests for the update orchestrator.

Components are replaced with mocks so every branch of the session state
machine can be driven directly.
"""

from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest

from config_updater.components.change_classifier import ChangeClassifier
from config_updater.components.confirmation import AutoDeclineConfirmation
from config_updater.components.remote_sync import RemoteSync
from config_updater.components.repo_state_manager import RepoStateManager
from config_updater.models.git import CommitRange, RepoHandle, ResetSummary
from config_updater.models.session import SessionState, UpdateOutcome
from config_updater.orchestrator import BREAKING_CHANGES_QUESTION, DIVERGED_QUESTION, UpdateOrchestrator
from config_updater.services.session_lock import SessionLock
from config_updater.utils.error_handling import (
    ErrorTracker,
    FetchFailedError,
    NotARepositoryError,
    ReapplyFailedError,
    ResetFailedError,
    RestoreFailedError,
    SessionLockedError,
    SnapshotFailedError,
    UpdateErrorKind,
)
from git_fixtures import HEAD_SHA, REMOTE_SHA, SNAPSHOT_SHA


@pytest.fixture
def repo(tmp_path):
    return RepoHandle(root_path=tmp_path, current_head_sha=HEAD_SHA, backup_sha=SNAPSHOT_SHA)


@pytest.fixture
def state_manager(repo):
    manager = Mock()
    manager.check_for_leftover_tmp_commit.return_value = False
    manager.validate.return_value = repo
    return manager


@pytest.fixture
def remote_sync():
    sync = Mock()
    sync.get_remote_head.return_value = REMOTE_SHA
    sync.reset_to_remote_head.return_value = ResetSummary(target="origin/main", status="HEAD is now at 3333333")
    return sync


@pytest.fixture
def classifier(sample_commits):
    classifier = Mock()
    classifier.commits_between.return_value = CommitRange(
        start_sha=HEAD_SHA, end_sha=REMOTE_SHA, commits=list(sample_commits)
    )
    classifier.classify.return_value = []
    return classifier


@pytest.fixture
def confirmation():
    confirmation = Mock()
    confirmation.confirm.return_value = False
    return confirmation


@pytest.fixture
def session_lock():
    return MagicMock()


@pytest.fixture
def error_tracker():
    return ErrorTracker()


@pytest.fixture
def orchestrator(
    updater_config, confirmation, state_manager, remote_sync, classifier, session_lock, error_tracker
):
    return UpdateOrchestrator(
        updater_config,
        confirmation=confirmation,
        runner=Mock(),
        state_manager=state_manager,
        remote_sync=remote_sync,
        classifier=classifier,
        session_lock=session_lock,
        error_tracker=error_tracker,
    )


class TestDefaults:
    def test_components_built_from_config(self, updater_config) -> None:
        updater_config.remote_name = "upstream"
        orchestrator = UpdateOrchestrator(updater_config)

        assert isinstance(orchestrator.confirmation, AutoDeclineConfirmation)
        assert isinstance(orchestrator.state_manager, RepoStateManager)
        assert isinstance(orchestrator.remote_sync, RemoteSync)
        assert isinstance(orchestrator.classifier, ChangeClassifier)
        assert isinstance(orchestrator.session_lock, SessionLock)
        assert orchestrator.remote_sync.remote_name == "upstream"
        assert orchestrator.runner.repo_path == Path(updater_config.repo_path)


class TestSuccessfulSessions:
    """Sessions that end in APPLIED or NO_CHANGES."""

    def test_up_to_date(self, orchestrator, state_manager, remote_sync, classifier, repo) -> None:
        """Heads equal: no fetch, no reset, snapshot removed."""
        remote_sync.get_remote_head.return_value = HEAD_SHA

        result = orchestrator.run()

        assert result.outcome == UpdateOutcome.NO_CHANGES
        assert result.succeeded
        assert result.error_kind is None
        remote_sync.fetch_head.assert_not_called()
        remote_sync.reset_to_remote_head.assert_not_called()
        classifier.commits_between.assert_not_called()
        state_manager.restore.assert_called_once_with(repo)

    def test_applied_without_breaking_changes(
        self, orchestrator, state_manager, remote_sync, confirmation, sample_commits, repo
    ) -> None:
        """New commits without breaking changes apply without prompting."""
        result = orchestrator.run()

        assert result.outcome == UpdateOutcome.APPLIED
        assert result.new_commits == sample_commits
        assert not result.breaking_changes_present
        confirmation.confirm.assert_not_called()
        remote_sync.fetch_head.assert_called_once_with("main")
        remote_sync.reset_to_remote_head.assert_called_once_with("main", REMOTE_SHA)
        state_manager.reapply_snapshot.assert_called_once_with(repo)
        state_manager.restore.assert_not_called()

    def test_applied_history(self, orchestrator) -> None:
        session = orchestrator.create_session()
        orchestrator.run(session)

        assert session.history == [
            SessionState.START,
            SessionState.VALIDATED,
            SessionState.SNAPSHOTTED,
            SessionState.FETCHED,
            SessionState.DIFFED,
            SessionState.CLASSIFIED,
            SessionState.APPLIED,
            SessionState.DONE,
        ]
        assert session.is_finished

    def test_breaking_changes_confirmed(
        self, orchestrator, classifier, confirmation, sample_commits
    ) -> None:
        classifier.classify.return_value = [sample_commits[1]]
        confirmation.confirm.return_value = True
        session = orchestrator.create_session()

        result = orchestrator.run(session)

        assert result.outcome == UpdateOutcome.APPLIED
        assert result.breaking_changes_present
        assert result.breaking_changes == [sample_commits[1]]
        confirmation.confirm.assert_called_once_with(BREAKING_CHANGES_QUESTION, [sample_commits[1]])
        assert SessionState.CONFIRMED in session.history

    def test_diverged_and_user_skips(self, orchestrator, state_manager, remote_sync, classifier, confirmation, repo) -> None:
        classifier.commits_between.return_value = CommitRange(
            start_sha=HEAD_SHA, end_sha=REMOTE_SHA, diverged=True
        )
        confirmation.confirm.return_value = True
        session = orchestrator.create_session()

        result = orchestrator.run(session)

        assert result.outcome == UpdateOutcome.NO_CHANGES
        assert result.diverged
        confirmation.confirm.assert_called_once_with(DIVERGED_QUESTION, [])
        classifier.classify.assert_not_called()
        remote_sync.reset_to_remote_head.assert_not_called()
        state_manager.restore.assert_called_once_with(repo)
        assert SessionState.DIVERGED in session.history

    def test_progress_is_forwarded(self, updater_config, state_manager, remote_sync, classifier) -> None:
        progress = Mock()
        orchestrator = UpdateOrchestrator(
            updater_config,
            runner=Mock(),
            state_manager=state_manager,
            remote_sync=remote_sync,
            classifier=classifier,
            session_lock=MagicMock(),
            error_tracker=ErrorTracker(),
            progress=progress,
        )

        orchestrator.run()

        assert classifier.classify.call_args.kwargs["progress"] is progress

    def test_leftover_repair_runs_before_validate(self, orchestrator, state_manager) -> None:
        state_manager.check_for_leftover_tmp_commit.return_value = True

        orchestrator.run()

        names = [name for name, _, _ in state_manager.method_calls]
        assert names.index("check_for_leftover_tmp_commit") < names.index("validate")


class TestDeclinedSessions:
    """Sessions the user cancels at a decision point."""

    def test_breaking_changes_declined(
        self, orchestrator, state_manager, remote_sync, classifier, confirmation, sample_commits, repo
    ) -> None:
        classifier.classify.return_value = [sample_commits[1]]
        confirmation.confirm.return_value = False
        session = orchestrator.create_session()

        result = orchestrator.run(session)

        assert result.outcome == UpdateOutcome.FAILED
        assert result.error_kind == UpdateErrorKind.USER_DECLINED
        assert result.recovered
        remote_sync.reset_to_remote_head.assert_not_called()
        state_manager.restore.assert_called_once_with(repo)
        assert session.history[-4:] == [
            SessionState.DECLINED,
            SessionState.ROLLED_BACK,
            SessionState.FAILED,
            SessionState.DONE,
        ]

    def test_diverged_declined(self, orchestrator, state_manager, classifier, confirmation, repo) -> None:
        classifier.commits_between.return_value = CommitRange(
            start_sha=HEAD_SHA, end_sha=REMOTE_SHA, diverged=True
        )

        result = orchestrator.run()

        assert result.outcome == UpdateOutcome.FAILED
        assert result.error_kind == UpdateErrorKind.DIVERGED_HISTORY
        assert result.diverged
        state_manager.restore.assert_called_once_with(repo)


class TestFailedSessions:
    """Sessions that fail and roll back."""

    def test_fetch_failure_restores(self, orchestrator, state_manager, remote_sync, repo, error_tracker) -> None:
        remote_sync.fetch_head.side_effect = FetchFailedError("Could not fetch origin/main", "timeout")
        session = orchestrator.create_session()

        result = orchestrator.run(session)

        assert result.outcome == UpdateOutcome.FAILED
        assert result.error_kind == UpdateErrorKind.FETCH_FAILED
        assert result.recovered
        assert "timeout" in result.error_message
        state_manager.restore.assert_called_once_with(repo)
        remote_sync.reset_to_remote_head.assert_not_called()
        assert SessionState.ROLLED_BACK in session.history
        assert error_tracker.get_error_stats()["kind_breakdown"]["fetch_failed"] == 1

    def test_missing_remote_branch_is_fetch_failure(self, orchestrator, state_manager, remote_sync, repo) -> None:
        remote_sync.get_remote_head.return_value = ""

        result = orchestrator.run()

        assert result.error_kind == UpdateErrorKind.FETCH_FAILED
        remote_sync.fetch_head.assert_not_called()
        state_manager.restore.assert_called_once_with(repo)

    def test_not_a_repository(self, orchestrator, state_manager, remote_sync) -> None:
        state_manager.validate.side_effect = NotARepositoryError("/tmp/x is not a valid git directory")
        session = orchestrator.create_session()

        result = orchestrator.run(session)

        assert result.error_kind == UpdateErrorKind.NOT_A_REPOSITORY
        assert result.recovered
        state_manager.restore.assert_not_called()
        remote_sync.get_remote_head.assert_not_called()
        assert session.history == [SessionState.START, SessionState.FAILED, SessionState.DONE]

    def test_snapshot_failure(self, orchestrator, state_manager) -> None:
        state_manager.validate.side_effect = SnapshotFailedError("Could not create snapshot commit")
        session = orchestrator.create_session()

        result = orchestrator.run(session)

        assert result.error_kind == UpdateErrorKind.SNAPSHOT_FAILED
        state_manager.restore.assert_not_called()
        assert session.history == [
            SessionState.START,
            SessionState.VALIDATED,
            SessionState.ROLLED_BACK,
            SessionState.FAILED,
            SessionState.DONE,
        ]

    def test_reset_failure_restores(self, orchestrator, state_manager, remote_sync, repo) -> None:
        remote_sync.reset_to_remote_head.side_effect = ResetFailedError("Could not reset to origin/main")

        result = orchestrator.run()

        assert result.error_kind == UpdateErrorKind.RESET_FAILED
        state_manager.restore.assert_called_once_with(repo)

    def test_reapply_conflict_restores(self, orchestrator, state_manager, repo) -> None:
        state_manager.reapply_snapshot.side_effect = ReapplyFailedError("Local changes conflict with the update")

        result = orchestrator.run()

        assert result.outcome == UpdateOutcome.FAILED
        assert result.error_kind == UpdateErrorKind.REAPPLY_FAILED
        state_manager.restore.assert_called_once_with(repo)

    def test_restore_failure_is_unrecoverable(self, orchestrator, state_manager, remote_sync) -> None:
        remote_sync.fetch_head.side_effect = FetchFailedError("Could not fetch origin/main")
        state_manager.restore.side_effect = RestoreFailedError(
            "Could not reapply snapshot", "conflict", SNAPSHOT_SHA
        )
        session = orchestrator.create_session()

        result = orchestrator.run(session)

        assert result.outcome == UpdateOutcome.FAILED
        assert result.error_kind == UpdateErrorKind.RESTORE_FAILED
        assert not result.recovered
        assert SNAPSHOT_SHA in result.error_message
        assert SessionState.ROLLED_BACK not in session.history

    def test_restore_failure_when_up_to_date(self, orchestrator, state_manager, remote_sync) -> None:
        remote_sync.get_remote_head.return_value = HEAD_SHA
        state_manager.restore.side_effect = RestoreFailedError("Could not reset", "", SNAPSHOT_SHA)

        result = orchestrator.run()

        assert result.outcome == UpdateOutcome.FAILED
        assert result.error_kind == UpdateErrorKind.RESTORE_FAILED
        assert not result.recovered

    def test_session_locked(self, orchestrator, session_lock, state_manager) -> None:
        session_lock.__enter__.side_effect = SessionLockedError("Another update session is running")

        result = orchestrator.run()

        assert result.error_kind == UpdateErrorKind.SESSION_LOCKED
        assert result.recovered
        state_manager.check_for_leftover_tmp_commit.assert_not_called()
        state_manager.validate.assert_not_called()

    def test_lock_released_after_failure(self, orchestrator, session_lock, remote_sync) -> None:
        remote_sync.fetch_head.side_effect = FetchFailedError("Could not fetch origin/main")

        orchestrator.run()

        session_lock.__enter__.assert_called_once()
        session_lock.__exit__.assert_called_once()

    def test_unexpected_error_restores_and_propagates(self, orchestrator, state_manager, classifier, repo) -> None:
        classifier.classify.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            orchestrator.run()

        state_manager.restore.assert_called_once_with(repo)

    def test_interrupt_at_prompt_restores_and_propagates(
        self, orchestrator, state_manager, remote_sync, classifier, confirmation, sample_commits, repo
    ) -> None:
        classifier.classify.return_value = [sample_commits[1]]
        confirmation.confirm.side_effect = KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            orchestrator.run()

        state_manager.restore.assert_called_once_with(repo)
        remote_sync.reset_to_remote_head.assert_not_called()

    def test_interrupt_after_outcome_does_not_restore_again(
        self, orchestrator, state_manager, classifier, sample_commits
    ) -> None:
        classifier.classify.return_value = [sample_commits[1]]
        orchestrator.logger = Mock()
        # Second info call is the decline message, after the outcome is set
        orchestrator.logger.info.side_effect = [None, KeyboardInterrupt]

        with pytest.raises(KeyboardInterrupt):
            orchestrator.run()

        state_manager.restore.assert_called_once()


class TestApplyTarget:
    """The reset target is the remote sha that was classified."""

    def test_reset_uses_classified_remote_sha(self, orchestrator, remote_sync, classifier) -> None:
        orchestrator.run()

        classifier.commits_between.assert_called_once_with(HEAD_SHA, REMOTE_SHA)
        remote_sync.reset_to_remote_head.assert_called_once_with("main", REMOTE_SHA)

    def test_branch_moved_after_ls_remote(self, updater_config, repo, mock_runner, sample_commits) -> None:
        """The remote-tracking branch is ahead of what ls-remote reported."""
        state_manager = Mock()
        state_manager.check_for_leftover_tmp_commit.return_value = False
        state_manager.validate.return_value = repo
        state_manager.is_shallow.return_value = False
        mock_runner.output.return_value = f"{REMOTE_SHA}\trefs/heads/main\n"
        classifier = Mock()
        classifier.commits_between.return_value = CommitRange(
            start_sha=HEAD_SHA, end_sha=REMOTE_SHA, commits=sample_commits[:1]
        )
        classifier.classify.return_value = []

        orchestrator = UpdateOrchestrator(
            updater_config,
            runner=mock_runner,
            state_manager=state_manager,
            remote_sync=RemoteSync(mock_runner, state_manager),
            classifier=classifier,
            session_lock=MagicMock(),
            error_tracker=ErrorTracker(),
        )

        result = orchestrator.run()

        assert result.outcome == UpdateOutcome.APPLIED
        commands = [call.args[0] for call in mock_runner.run.call_args_list]
        assert ["reset", "--hard", REMOTE_SHA] in commands
        assert ["reset", "--hard", "origin/main"] not in commands


class TestCleanTreeDecline:
    """Declining when there is no snapshot only resets to the local head."""

    @pytest.fixture
    def clean_repo(self, tmp_path, state_manager):
        repo = RepoHandle(root_path=tmp_path, current_head_sha=HEAD_SHA, backup_sha=HEAD_SHA)
        state_manager.validate.return_value = repo
        return repo

    def test_decline_resets_to_local_head(
        self, orchestrator, state_manager, remote_sync, classifier, sample_commits, clean_repo
    ) -> None:
        classifier.classify.return_value = [sample_commits[1]]
        remote_sync.reset_to_local_head.return_value = True

        result = orchestrator.run()

        assert result.error_kind == UpdateErrorKind.USER_DECLINED
        assert result.recovered
        remote_sync.reset_to_local_head.assert_called_once_with(clean_repo)
        state_manager.restore.assert_not_called()

    def test_failed_local_reset_is_unrecoverable(
        self, orchestrator, state_manager, remote_sync, classifier, sample_commits, clean_repo
    ) -> None:
        classifier.classify.return_value = [sample_commits[1]]
        remote_sync.reset_to_local_head.return_value = False

        result = orchestrator.run()

        assert result.outcome == UpdateOutcome.FAILED
        assert result.error_kind == UpdateErrorKind.RESTORE_FAILED
        assert not result.recovered
