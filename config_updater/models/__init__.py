"""
Data models for the config updater.

This module contains the data classes used throughout the updater for
representing repository state, commits, configuration and session results.
"""

from .config import UpdaterConfig
from .git import CommandResult, CommitRange, CommitRecord, RepoHandle, ResetSummary
from .session import SessionState, UpdateOutcome, UpdateResult, UpdateSession

__all__ = [
    "CommandResult",
    "CommitRange",
    "CommitRecord",
    "RepoHandle",
    "ResetSummary",
    "SessionState",
    "UpdateOutcome",
    "UpdateResult",
    "UpdateSession",
    "UpdaterConfig",
]
