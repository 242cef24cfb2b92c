"""
Remote synchronization for update sessions.

RemoteSync resolves local and remote heads, fetches the update branch and
moves the working tree onto the fetched branch tip.
"""

from typing import List

from ..interfaces import IProcessRunner, IRepoStateManager
from ..models.git import RepoHandle, ResetSummary
from ..utils.error_handling import CleanFailedError, FetchFailedError, ResetFailedError
from ..utils.logging import get_logger

logger = get_logger("remote.sync")


class RemoteSync:
    """Fetches the update branch and resets the working tree to it."""

    def __init__(
        self,
        runner: IProcessRunner,
        state_manager: IRepoStateManager,
        remote_name: str = "origin",
    ):
        """
        Initialize RemoteSync.

        Args:
            runner: Process runner bound to the repository root
            state_manager: Used to detect shallow clones before fetching
            remote_name: Remote the update branch is fetched from
        """
        self.runner = runner
        self.state_manager = state_manager
        self.remote_name = remote_name

    def get_remote_head(self, branch: str) -> str:
        """
        Query the remote's head sha for a branch without fetching objects.

        Returns:
            The sha, or an empty string when the branch or remote is unavailable
        """
        output = self.runner.output(["ls-remote", "--heads", self.remote_name, branch])
        if not output:
            return ""

        wanted_ref = f"refs/heads/{branch}"
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[1] == wanted_ref:
                return parts[0]

        return ""

    def get_local_head(self) -> str:
        """Resolve the local HEAD sha, or an empty string."""
        output = self.runner.output(["rev-parse", "--verify", "HEAD"])
        return output.strip() if output else ""

    def build_fetch_args(self, branch: str, shallow: bool) -> List[str]:
        args = ["fetch", "--quiet", "--prune", "--no-tags"]
        if shallow:
            args.append("--unshallow")
        args.extend(["--no-recurse-submodules", self.remote_name, branch])
        return args

    def fetch_head(self, branch: str) -> None:
        """
        Fetch only the update branch, deepening a shallow clone first.

        Raises:
            FetchFailedError: the fetch did not succeed; the caller restores
        """
        shallow = self.state_manager.is_shallow()
        if shallow:
            logger.info("Shallow clone detected, fetching full history")

        result = self.runner.run(self.build_fetch_args(branch, shallow))
        if not result.success:
            logger.error(
                "Fetching remote changes failed",
                extra={"remote": self.remote_name, "branch": branch, "error": result.error_message},
            )
            raise FetchFailedError(f"Could not fetch {self.remote_name}/{branch}", result.error_message)

        logger.info("Fetched remote branch", extra={"remote": self.remote_name, "branch": branch})

    def reset_to_remote_head(self, branch: str, sha: str = "") -> ResetSummary:
        """
        Hard reset to the fetched branch tip and remove stray untracked files.

        Args:
            branch: Update branch that was fetched
            sha: Exact commit to reset to; defaults to the remote-tracking branch

        Raises:
            ResetFailedError: the hard reset failed
            CleanFailedError: removing untracked files failed
        """
        target = sha or f"{self.remote_name}/{branch}"

        reset = self.runner.run(["reset", "--hard", target])
        if not reset.success:
            logger.error("Reset to remote head failed", extra={"target": target, "error": reset.error_message})
            raise ResetFailedError(f"Could not reset to {target}", reset.error_message)

        status = reset.stdout.strip()
        logger.info("Reset to remote head", extra={"target": target, "status": status})

        clean = self.runner.run(["clean", "-f", "-d"])
        if not clean.success:
            logger.error("Cleaning working tree failed", extra={"error": clean.error_message})
            raise CleanFailedError("Could not remove untracked files", clean.error_message)

        removed = [
            line[len("Removing "):].strip()
            for line in clean.stdout.splitlines()
            if line.startswith("Removing ")
        ]
        if removed:
            logger.info("Removed untracked paths", extra={"paths": removed})

        return ResetSummary(target=target, status=status, removed_paths=removed)

    def reset_to_local_head(self, repo: RepoHandle) -> bool:
        """
        Hard reset to the pre-session head. Failure is logged, not raised.

        Aborts a declined session whose working tree was clean, where there
        is no snapshot to replay.
        """
        result = self.runner.run(["reset", "--hard", "--quiet", repo.current_head_sha])
        if not result.success:
            logger.warning(
                "Reset to local head failed",
                extra={"head": repo.current_head_sha, "error": result.error_message},
            )
        return result.success
