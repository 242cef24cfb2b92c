"""
Configuration models for the updater.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

DEFAULT_UPDATE_URL = "https://github.com/NvChad/NvChad"
DEFAULT_UPDATE_BRANCH = "main"
DEFAULT_BREAKING_CHANGE_PATTERNS = ["breaking.*change"]
DEFAULT_SNAPSHOT_MESSAGE = "tmp"

# Sequences git refuses in reference names
_INVALID_REF_CHARS = re.compile(r"[\s~^:?*\[\\]|\.\.|@\{")


@dataclass
class UpdaterConfig:
    """Updater configuration."""

    repo_path: str
    update_url: str = DEFAULT_UPDATE_URL
    update_branch: str = DEFAULT_UPDATE_BRANCH
    remote_name: str = "origin"
    breaking_change_patterns: List[str] = field(
        default_factory=lambda: list(DEFAULT_BREAKING_CHANGE_PATTERNS)
    )
    snapshot_message: str = DEFAULT_SNAPSHOT_MESSAGE
    git_executable: str = "git"
    lock_timeout: float = 0.0
    log_dir: Optional[str] = None
    log_level: str = "INFO"

    def validate(self) -> bool:
        """Validate updater configuration."""
        if not self.repo_path or not str(self.repo_path).strip():
            raise ValueError("Repository path cannot be empty")

        if not self.update_url or not self.update_url.strip():
            raise ValueError("Update URL cannot be empty")

        parsed_url = urlparse(self.update_url)
        if parsed_url.scheme and parsed_url.scheme not in ["http", "https", "ssh", "git", "file"]:
            raise ValueError(f"Unsupported update URL scheme: {self.update_url}")

        for name, ref in (("Update branch", self.update_branch), ("Remote name", self.remote_name)):
            if not ref or not ref.strip():
                raise ValueError(f"{name} cannot be empty")

            if ref.startswith("-") or _INVALID_REF_CHARS.search(ref):
                raise ValueError(f"{name} is not a valid git reference name: {ref!r}")

        if not isinstance(self.breaking_change_patterns, list):
            raise ValueError("Breaking change patterns must be a list")

        for pattern in self.breaking_change_patterns:
            if not isinstance(pattern, str) or not pattern.strip():
                raise ValueError("All breaking change patterns must be non-empty strings")
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid breaking change pattern {pattern!r}: {e}")

        if not self.snapshot_message or "\n" in self.snapshot_message:
            raise ValueError("Snapshot message must be a single non-empty line")

        if not isinstance(self.lock_timeout, (int, float)) or self.lock_timeout < 0:
            raise ValueError("Lock timeout must be a non-negative number")

        if self.log_level.upper() not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"Invalid log level: {self.log_level}")

        return True
