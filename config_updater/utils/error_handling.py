"""
Error handling utilities for the config updater.

This module defines the error kinds an update session can end with, the
exception hierarchy raised by the components, and an error tracker that
records every failure for later reporting.
"""

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .logging import get_logger


class UpdateErrorKind(Enum):
    """Reasons an update session can fail or stop."""

    NOT_A_REPOSITORY = "not_a_repository"
    SNAPSHOT_FAILED = "snapshot_failed"
    FETCH_FAILED = "fetch_failed"
    RESET_FAILED = "reset_failed"
    CLEAN_FAILED = "clean_failed"
    REAPPLY_FAILED = "reapply_failed"
    DIVERGED_HISTORY = "diverged_history"
    USER_DECLINED = "user_declined"
    RESTORE_FAILED = "restore_failed"
    SESSION_LOCKED = "session_locked"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    VERSION_CONTROL = "version_control"
    NETWORK = "network"
    USER_DECISION = "user_decision"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


class UpdateError(Exception):
    """Base class for failures raised by updater components."""

    kind: UpdateErrorKind = UpdateErrorKind.RESET_FAILED
    category: ErrorCategory = ErrorCategory.VERSION_CONTROL
    severity: ErrorSeverity = ErrorSeverity.HIGH

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class NotARepositoryError(UpdateError):
    """The directory has no resolvable HEAD or could not be snapshotted."""

    kind = UpdateErrorKind.NOT_A_REPOSITORY
    category = ErrorCategory.CONFIGURATION


class SnapshotFailedError(NotARepositoryError):
    """The throwaway snapshot commit could not be created."""

    kind = UpdateErrorKind.SNAPSHOT_FAILED
    category = ErrorCategory.VERSION_CONTROL


class FetchFailedError(UpdateError):
    """Fetching the update branch failed."""

    kind = UpdateErrorKind.FETCH_FAILED
    category = ErrorCategory.NETWORK
    severity = ErrorSeverity.MEDIUM


class ResetFailedError(UpdateError):
    """Hard reset to a reference failed."""

    kind = UpdateErrorKind.RESET_FAILED


class CleanFailedError(UpdateError):
    """Removing untracked files after the reset failed."""

    kind = UpdateErrorKind.CLEAN_FAILED


class ReapplyFailedError(UpdateError):
    """The snapshot could not be replayed on top of the updated tree."""

    kind = UpdateErrorKind.REAPPLY_FAILED


class RestoreFailedError(UpdateError):
    """Restoring the pre-session state failed; manual recovery is required."""

    kind = UpdateErrorKind.RESTORE_FAILED
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, detail: str = "", backup_sha: str = ""):
        super().__init__(message, detail)
        self.backup_sha = backup_sha


class SessionLockedError(UpdateError):
    """Another update session holds the repository lock."""

    kind = UpdateErrorKind.SESSION_LOCKED
    category = ErrorCategory.SYSTEM
    severity = ErrorSeverity.MEDIUM


@dataclass
class ErrorInfo:
    """Information about an error occurrence."""

    timestamp: datetime
    component: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str
    traceback: str
    context: Dict[str, Any] = field(default_factory=dict)
    kind: Optional[UpdateErrorKind] = None


class ErrorTracker:
    """
    Tracks errors and provides statistics for reporting.
    """

    def __init__(self, max_errors: int = 100):
        """
        Initialize error tracker.

        Args:
            max_errors: Maximum number of errors to keep in memory
        """
        self.max_errors = max_errors
        self.errors: List[ErrorInfo] = []
        self.error_counts: Dict[str, int] = {}
        self.logger = get_logger("error_tracker")

    def record_error(
        self,
        component: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        exception: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
        kind: Optional[UpdateErrorKind] = None,
    ) -> ErrorInfo:
        """
        Record an error occurrence.

        Args:
            component: Component where error occurred
            category: Error category
            severity: Error severity
            message: Error message
            exception: Exception object if available
            context: Additional context information
            kind: Update error kind, if the error ended a session

        Returns:
            ErrorInfo object
        """
        error_info = ErrorInfo(
            timestamp=datetime.now(),
            component=component,
            category=category,
            severity=severity,
            message=message,
            exception_type=type(exception).__name__ if exception else "Unknown",
            traceback=(
                "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
                if exception
                else ""
            ),
            context=context or {},
            kind=kind,
        )

        self.errors.append(error_info)
        if len(self.errors) > self.max_errors:
            self.errors.pop(0)

        error_key = f"{component}.{category.value}.{severity.value}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

        self.logger.error(
            f"Error recorded: {message}",
            extra={
                "component": component,
                "category": category.value,
                "severity": severity.value,
                "kind": kind.value if kind else None,
                "exception_type": error_info.exception_type,
                "context": context,
            },
        )

        return error_info

    def record_update_error(
        self, component: str, error: UpdateError, context: Optional[Dict[str, Any]] = None
    ) -> ErrorInfo:
        """Record an UpdateError using the category and severity it carries."""
        return self.record_error(
            component=component,
            category=error.category,
            severity=error.severity,
            message=str(error),
            exception=error,
            context=context,
            kind=error.kind,
        )

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        return {
            "total_errors": len(self.errors),
            "error_counts": self.error_counts.copy(),
            "kind_breakdown": {
                kind.value: len([e for e in self.errors if e.kind == kind])
                for kind in UpdateErrorKind
            },
            "severity_breakdown": {
                severity.value: len([e for e in self.errors if e.severity == severity])
                for severity in ErrorSeverity
            },
        }

    def clear(self):
        """Forget all recorded errors."""
        self.errors.clear()
        self.error_counts.clear()


# Global error tracker instance
_error_tracker: Optional[ErrorTracker] = None


def get_error_tracker() -> ErrorTracker:
    """Get global error tracker instance."""
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker()
    return _error_tracker
