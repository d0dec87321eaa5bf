# smooth_operator/server/file_lock.py

"""
Cross-process exclusive lock guarding extraction into a shared directory.

Uses fcntl.flock on POSIX and msvcrt.locking on Windows. The OS drops the
lock when the holding process dies, so a crashed installer never leaves a
stale lock behind.
"""

import errno
import os
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from smooth_operator.errors import InstallError
from smooth_operator.utils import Clock, Deadline, wait_until

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl


class InstallLock:
    """Exclusive, non-reentrant lock on ``lock_path``.

    Acquisition polls a non-blocking lock attempt so the wait is bounded by
    ``timeout_ms``; running out of time raises InstallError.
    """

    def __init__(
        self,
        lock_path: Union[str, Path],
        timeout_ms: int = 120000,
        poll_interval_ms: int = 100,
        clock: Optional[Clock] = None,
    ):
        self.lock_path = Path(lock_path)
        self.timeout_ms = timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self._clock = clock
        self._fd: Optional[int] = None

    @property
    def is_locked(self) -> bool:
        return self._fd is not None

    def _try_lock(self) -> bool:
        fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            if sys.platform == "win32":
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            if isinstance(e, BlockingIOError) or e.errno in (
                errno.EACCES,
                errno.EAGAIN,
                errno.EDEADLK,
            ):
                return False
            raise
        self._fd = fd
        return True

    def acquire(self) -> None:
        if self._fd is not None:
            raise RuntimeError(f"{self.lock_path} is already held by this object")
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        deadline = Deadline(self.timeout_ms, self._clock)
        try:
            acquired = wait_until(self._try_lock, deadline, self.poll_interval_ms)
        except OSError as e:
            raise InstallError(f"Could not open install lock {self.lock_path}: {e}") from e
        if not acquired:
            raise InstallError(
                f"Timed out after {self.timeout_ms}ms waiting for install lock "
                f"{self.lock_path} held by another process."
            )
        logger.debug(f"Acquired install lock {self.lock_path}")

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            if sys.platform == "win32":
                os.lseek(self._fd, 0, os.SEEK_SET)
                msvcrt.locking(self._fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
            logger.debug(f"Released install lock {self.lock_path}")

    def __enter__(self) -> "InstallLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
