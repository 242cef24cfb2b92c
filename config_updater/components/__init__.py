"""
Core components for the config updater.

This module contains the components that run git, manage the repository
snapshot, synchronize with the remote and classify incoming commits.
"""

from .change_classifier import ChangeClassifier
from .confirmation import AutoDeclineConfirmation, ConsoleConfirmation, FixedAnswerConfirmation
from .process_runner import ProcessRunner
from .remote_sync import RemoteSync
from .repo_state_manager import RepoStateManager

__all__ = [
    "ProcessRunner",
    "RepoStateManager",
    "RemoteSync",
    "ChangeClassifier",
    "ConsoleConfirmation",
    "FixedAnswerConfirmation",
    "AutoDeclineConfirmation",
]
