"""
Configuration management for the config updater.
"""

import json
import os
from typing import Any, Dict, List, Optional

import yaml

from ..models.config import (
    DEFAULT_BREAKING_CHANGE_PATTERNS,
    DEFAULT_SNAPSHOT_MESSAGE,
    DEFAULT_UPDATE_BRANCH,
    DEFAULT_UPDATE_URL,
    UpdaterConfig,
)


class ConfigurationManager:
    """Loads and validates updater configuration."""

    SEARCH_PATHS = [
        "config/updater.yaml",
        "config/updater.yml",
        "config/updater.json",
        "updater.yaml",
        "updater.yml",
        "updater.json",
    ]

    def __init__(self, config_path: Optional[str] = None, repo_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, standard
                locations are searched and defaults are used when none exists.
            repo_path: Repository root used when the file does not name one
        """
        self.config_path = config_path or self._find_config_file()
        self.repo_path = repo_path
        self._config: Optional[UpdaterConfig] = None

    def _find_config_file(self) -> Optional[str]:
        """Find the configuration file in standard locations."""
        for path in self.SEARCH_PATHS:
            if os.path.exists(path):
                return path
        return None

    def load_config(self) -> UpdaterConfig:
        """
        Load configuration from file.

        Returns:
            UpdaterConfig with validated settings.

        Raises:
            FileNotFoundError: An explicitly given file doesn't exist.
            ValueError: The configuration is invalid or cannot be parsed.
        """
        if self.config_path is None:
            raw_config: Dict[str, Any] = {}
        elif not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        else:
            raw_config = self._read_file(self.config_path)

        raw_config = self._expand_env_vars(raw_config)
        config = self._parse_config(raw_config)
        config.validate()

        self._config = config
        return config

    def _read_file(self, path: str) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    raw_config = json.load(f)
                else:
                    raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

        if raw_config is None:
            return {}

        if not isinstance(raw_config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        return raw_config

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR_NAME} references."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            if obj.startswith("${") and obj.endswith("}"):
                var_name = obj[2:-1]
                env_value = os.getenv(var_name)
                if env_value is None:
                    raise ValueError(f"Environment variable '{var_name}' not found")
                return env_value
            return obj
        else:
            return obj

    def _section(self, raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = raw_config.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Configuration section '{name}' must be a mapping")
        return section

    def _parse_config(self, raw_config: Dict[str, Any]) -> UpdaterConfig:
        """Parse raw configuration dictionary into UpdaterConfig."""
        repository = self._section(raw_config, "repository")
        update = self._section(raw_config, "update")
        system = self._section(raw_config, "system")
        logging_section = self._section(raw_config, "logging")

        patterns: List[str] = update.get(
            "breaking_change_patterns", list(DEFAULT_BREAKING_CHANGE_PATTERNS)
        )

        return UpdaterConfig(
            repo_path=os.path.expanduser(str(self.repo_path or repository.get("path") or os.getcwd())),
            update_url=update.get("url") or DEFAULT_UPDATE_URL,
            update_branch=update.get("branch") or DEFAULT_UPDATE_BRANCH,
            remote_name=update.get("remote") or "origin",
            breaking_change_patterns=patterns,
            snapshot_message=update.get("snapshot_message") or DEFAULT_SNAPSHOT_MESSAGE,
            git_executable=system.get("git_executable") or "git",
            lock_timeout=system.get("lock_timeout", 0.0),
            log_dir=logging_section.get("directory"),
            log_level=logging_section.get("level") or "INFO",
        )

    def get_config(self) -> UpdaterConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    def get_config_template(self) -> Dict[str, Any]:
        """Example configuration structure."""
        return {
            "repository": {"path": "~/.config/nvim"},
            "update": {
                "url": DEFAULT_UPDATE_URL,
                "branch": DEFAULT_UPDATE_BRANCH,
                "remote": "origin",
                "breaking_change_patterns": list(DEFAULT_BREAKING_CHANGE_PATTERNS),
            },
            "system": {"git_executable": "git", "lock_timeout": 0},
            "logging": {"directory": None, "level": "INFO"},
        }
