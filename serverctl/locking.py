from __future__ import annotations

import errno
import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .errors import LockError, LockTimeout

__all__ = ["control_lock"]

logger = logging.getLogger(__name__)

_RETRY_INTERVAL = 0.1


@contextmanager
def control_lock(path: Path, timeout: float) -> Iterator[None]:
    """Hold an exclusive advisory lock on *path* for the duration of the block.

    Waits up to *timeout* seconds for a concurrent holder to release it and
    raises :class:`LockTimeout` after that.  A lock file that cannot be
    opened (missing or read-only directory) raises :class:`LockError`.  The
    lock file itself is left in place; only the ``flock`` matters.
    """
    try:
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    except OSError as exc:
        raise LockError(f"Cannot open lock file {path}: {exc.strerror}") from exc
    try:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except OSError as exc:
                if exc.errno not in (errno.EAGAIN, errno.EACCES):
                    raise
                if time.monotonic() >= deadline:
                    raise LockTimeout(
                        f"Another serverctl invocation holds {path} (waited {timeout:g}s)"
                    ) from exc
                time.sleep(_RETRY_INTERVAL)

        logger.debug("event=lock_acquired path=%s", path)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("event=lock_released path=%s", path)
    finally:
        os.close(fd)
