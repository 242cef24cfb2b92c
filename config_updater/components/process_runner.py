"""
Process runner for git invocations.

Every backend call of an update session goes through ProcessRunner: it runs
git with an explicit argument list inside the repository root and captures
the output. No shell is involved, so branch names and URLs coming from
configuration are never interpreted.
"""

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..models.git import CommandResult
from ..utils.logging import get_logger

logger = get_logger("process.runner")

COMMAND_NOT_FOUND = 127


class ProcessRunner:
    """Runs git commands against a fixed working directory."""

    def __init__(self, repo_path: Union[str, Path], git_executable: str = "git"):
        """
        Initialize ProcessRunner.

        Args:
            repo_path: Repository root every command runs in
            git_executable: Name or path of the git binary
        """
        self.repo_path = Path(repo_path)
        self.git_executable = git_executable

    def build_command(self, args: Sequence[str]) -> List[str]:
        return [self.git_executable, *args]

    def run(self, args: Sequence[str], input_text: Optional[str] = None) -> CommandResult:
        """
        Run a git command and return its result.

        Blocks until the process exits. A missing git binary or working
        directory is reported as a failed result rather than raised.

        Args:
            args: Git arguments, without the executable
            input_text: Optional text fed to the process on stdin

        Returns:
            CommandResult with exit status and captured output
        """
        command = self.build_command(args)
        logger.debug("Running git command", extra={"command": command, "cwd": str(self.repo_path)})

        try:
            completed = subprocess.run(
                command,
                cwd=self.repo_path,
                input=input_text,
                capture_output=True,
                text=True,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
            logger.error("Could not start git", extra={"command": command, "error": str(e)})
            return CommandResult(args=list(args), returncode=COMMAND_NOT_FOUND, stderr=str(e))

        result = CommandResult(
            args=list(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

        if not result.success:
            logger.debug(
                "Git command failed",
                extra={"command": command, "returncode": result.returncode, "stderr": result.stderr.strip()},
            )

        return result

    def output(self, args: Sequence[str]) -> Optional[str]:
        """Return stdout of a successful command, or None if it failed."""
        result = self.run(args)
        if not result.success:
            return None
        return result.stdout
