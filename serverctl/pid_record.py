"""
On-disk PID record for the supervised server.

The record is a small text file: the PID on the first line and, optionally,
the process launch time on the second.  Files holding only a PID are still
accepted.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

from .process_types import ProcessHandle

__all__ = ["PidRecord"]

logger = logging.getLogger(__name__)


class PidRecord:
    """Reads, writes and removes the PID file at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> ProcessHandle | None:
        """Return the recorded handle, or ``None`` if there is no usable record.

        A malformed record is deleted.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        lines = text.split()
        try:
            pid = int(lines[0])
            create_time = float(lines[1]) if len(lines) > 1 else None
        except (IndexError, ValueError):
            logger.warning("PID file '%s' is malformed. Deleting.", self.path)
            self.delete()
            return None

        if pid <= 0:
            logger.warning("PID file '%s' holds invalid PID %d. Deleting.", self.path, pid)
            self.delete()
            return None

        if create_time is not None and not (math.isfinite(create_time) and create_time > 0):
            logger.warning(
                "PID file '%s' holds invalid launch time %r. Deleting.", self.path, create_time
            )
            self.delete()
            return None

        return ProcessHandle(pid=pid, create_time=create_time)

    def write(self, handle: ProcessHandle) -> None:
        """Atomically write *handle* to the PID file."""
        content = f"{handle.pid}\n"
        if handle.create_time is not None:
            content += f"{handle.create_time!r}\n"

        temp_path = self.path.with_suffix(".tmp")
        try:
            temp_path.write_text(content, encoding="utf-8")
            temp_path.replace(self.path)
        finally:
            temp_path.unlink(missing_ok=True)
        logger.debug("event=pid_written path=%s pid=%s", self.path, handle.pid)

    def delete(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            # Read-only install dir: leave the record for a privileged caller.
            logger.warning("Could not remove PID file '%s': %s", self.path, exc)
            return
        logger.debug("event=pid_deleted path=%s", self.path)

    def discard(self, handle: ProcessHandle) -> bool:
        """Delete the record only if it still names *handle*.

        A concurrent ``start`` may have replaced a stale record with a fresh
        one since *handle* was read; that record is left alone.
        """
        if self.read() != handle:
            logger.debug("event=pid_changed path=%s old_pid=%s", self.path, handle.pid)
            return False
        self.delete()
        return True
