"""
Service layer for the config updater.

This module contains configuration loading and the per-repository session
lock used by the orchestrator.
"""

from .config_manager import ConfigurationManager
from .session_lock import SessionLock

__all__ = [
    "ConfigurationManager",
    "SessionLock",
]
