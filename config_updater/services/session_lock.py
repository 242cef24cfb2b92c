"""
Per-repository advisory lock for update sessions.

At most one update session may work on a repository at a time. The lock is
an exclusive flock (msvcrt.locking on Windows) on a lock file kept in the
system temp directory, outside the working tree, so `git clean` never
touches it and it never shows up as an untracked file.
"""

import hashlib
import os
import tempfile
import time
from pathlib import Path
from typing import Optional, TextIO, Union

from ..utils.error_handling import SessionLockedError
from ..utils.logging import get_logger

logger = get_logger("session.lock")


def default_lock_path(repo_path: Union[str, Path]) -> Path:
    """Lock file location for a repository root."""
    digest = hashlib.sha1(str(Path(repo_path).resolve()).encode("utf-8")).hexdigest()[:16]
    return Path(tempfile.gettempdir()) / f"config-updater-{digest}.lock"


class SessionLock:
    """
    Exclusive lock held for the duration of one update session.

    Usage:
        with SessionLock(repo_path):
            # ... run the session ...
    """

    def __init__(
        self,
        repo_path: Union[str, Path],
        timeout: float = 0.0,
        poll_interval: float = 0.1,
        lock_path: Optional[Path] = None,
    ):
        self.repo_path = Path(repo_path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.lock_path = lock_path or default_lock_path(repo_path)
        self._handle: Optional[TextIO] = None

    @property
    def is_held(self) -> bool:
        return self._handle is not None

    def _try_lock(self, handle: TextIO) -> None:
        if os.name == "nt":
            import msvcrt

            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        else:
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(self, handle: TextIO) -> None:
        if os.name == "nt":
            import msvcrt

            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        else:
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def acquire(self) -> None:
        """
        Take the lock, waiting up to `timeout` seconds.

        Raises:
            SessionLockedError: another session holds the lock
        """
        if self.is_held:
            return

        os.makedirs(self.lock_path.parent, exist_ok=True)
        handle = open(self.lock_path, "a+", encoding="utf-8")
        start = time.monotonic()

        while True:
            try:
                self._try_lock(handle)
                break
            except OSError:
                if time.monotonic() - start >= self.timeout:
                    handle.close()
                    logger.warning(
                        "Repository is locked by another update session",
                        extra={"repo": str(self.repo_path), "lock_file": str(self.lock_path)},
                    )
                    raise SessionLockedError(
                        f"Another update session is running for {self.repo_path}",
                        str(self.lock_path),
                    )
                time.sleep(self.poll_interval)

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()

        self._handle = handle
        logger.debug("Session lock acquired", extra={"lock_file": str(self.lock_path)})

    def release(self) -> None:
        """Release the lock if held."""
        if self._handle is None:
            return

        handle, self._handle = self._handle, None
        try:
            self._unlock(handle)
        except OSError as e:
            logger.warning("Could not release session lock", extra={"error": str(e)})
        finally:
            handle.close()

        logger.debug("Session lock released", extra={"lock_file": str(self.lock_path)})

    def __enter__(self) -> "SessionLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
