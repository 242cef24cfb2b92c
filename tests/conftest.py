"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the config updater test suite.
"""

import shutil
from datetime import date
from unittest.mock import Mock

import pytest

from config_updater.models.config import UpdaterConfig
from config_updater.models.git import CommitRecord, RepoHandle
from git_fixtures import HEAD_SHA, SNAPSHOT_SHA, commit_file, make_result, run_git


# Test data fixtures
@pytest.fixture
def sample_commits():
    """Three parsed commits, oldest first, the second one breaking."""
    return [
        CommitRecord(date=date(2024, 1, 1), short_hash="a1b2c3d", message="feat: add statusline"),
        CommitRecord(date=date(2024, 1, 2), short_hash="b2c3d4e", message="Fix: Breaking Change in API"),
        CommitRecord(date=date(2024, 1, 3), short_hash="c3d4e5f", message="fixed a bug"),
    ]


@pytest.fixture
def repo_handle(tmp_path):
    """RepoHandle with a snapshot on top of the current head."""
    return RepoHandle(root_path=tmp_path, current_head_sha=HEAD_SHA, backup_sha=SNAPSHOT_SHA)


@pytest.fixture
def updater_config(tmp_path):
    """Valid UpdaterConfig pointing at a temporary directory."""
    return UpdaterConfig(repo_path=str(tmp_path), update_url="https://example.com/config.git")


# Mock fixtures
@pytest.fixture
def mock_runner(tmp_path):
    """Process runner mock; every command succeeds with empty output by default."""
    runner = Mock()
    runner.repo_path = tmp_path
    runner.run.return_value = make_result()
    runner.output.return_value = ""
    return runner


# Real git repository fixtures
@pytest.fixture
def git_repo(tmp_path):
    """Create a real git repository with one commit."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(repo, "init", "--quiet")
    run_git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    commit_file(repo, "init.lua", "require('core')\n", "initial commit")
    return repo


@pytest.fixture
def remote_and_clone(tmp_path):
    """
    Create a bare upstream repository and a clone tracking it.

    Returns:
        (upstream work tree, local clone). Push from the upstream work tree
        to publish new commits to the bare remote.
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    bare = tmp_path / "remote.git"
    run_git(tmp_path, "init", "--quiet", "--bare", str(bare))
    run_git(bare, "symbolic-ref", "HEAD", "refs/heads/main")

    upstream = tmp_path / "upstream"
    upstream.mkdir()
    run_git(upstream, "init", "--quiet")
    run_git(upstream, "symbolic-ref", "HEAD", "refs/heads/main")
    commit_file(upstream, "init.lua", "require('core')\n", "initial commit")
    run_git(upstream, "remote", "add", "origin", str(bare))
    run_git(upstream, "push", "--quiet", "origin", "main")

    local = tmp_path / "local"
    run_git(tmp_path, "clone", "--quiet", "--branch", "main", str(bare), str(local))
    return upstream, local


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add unit marker to all tests by default
        if not any(marker.name in ["integration", "slow"] for marker in item.iter_markers()):
            item.add_marker(pytest.mark.unit)

        # Tests that drive real git processes are slow
        if item.get_closest_marker("integration") is not None:
            item.add_marker(pytest.mark.slow)
