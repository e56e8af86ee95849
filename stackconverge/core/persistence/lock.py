"""
Host lock — at most one provisioning run per host at a time.

An exclusive, non-blocking ``flock`` on <state_dir>/stackconverge.lock.
The kernel releases it when the process exits, so a crashed run never
leaves a stale lock behind.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path

from stackconverge.core.errors import LockHeld

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILE = "stackconverge.lock"


class HostLock:
    """Context manager holding the exclusive host lock.

    Usage::

        with HostLock(state_dir):
            pipeline.run()
    """

    def __init__(self, state_dir: Path, name: str = DEFAULT_LOCK_FILE):
        self.path = state_dir / name
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            LockHeld: Another process holds it.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            os.ftruncate(fd, 0)
            os.write(fd, f"{os.getpid()}\n".encode())
        except BlockingIOError:
            os.close(fd)
            raise LockHeld(f"Another run holds {self.path}") from None
        except OSError:
            os.close(fd)
            raise
        self._fd = fd
        logger.debug("Acquired host lock %s", self.path)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Released host lock %s", self.path)

    def __enter__(self) -> HostLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
