from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import time
from collections import deque
from pathlib import Path
from typing import IO

from .logging_utils import CLI_LOGGER
from .utils import get_iso_timestamp

__all__ = ["LogManager"]

logger = logging.getLogger(__name__)

_FOLLOW_INTERVAL = 0.2


class LogManager:
    """Owns the supervised server's output log and its single rotated copy."""

    def __init__(self, log_file: Path, old_log_file: Path, rotate_bytes: int):
        self.log_file = log_file
        self.old_log_file = old_log_file
        self.rotate_bytes = rotate_bytes

    def exists(self) -> bool:
        return self.log_file.exists()

    def size(self) -> int:
        """Size of the log in bytes; 0 if it is missing or cannot be stat'ed."""
        try:
            return os.stat(self.log_file).st_size
        except FileNotFoundError:
            return 0
        except OSError as exc:
            logger.warning("Could not stat %s, skipping rotation: %s", self.log_file, exc)
            return 0

    def rotate_if_needed(self) -> bool:
        """Move the log aside to ``.old`` if it has reached the size threshold.

        Only called at start time, before the new server process opens the
        file.  Returns ``True`` if the log was rotated.
        """
        size = self.size()
        if size < self.rotate_bytes:
            return False

        self.log_file.replace(self.old_log_file)
        logger.info(
            "event=log_rotated size=%d src=%s dst=%s",
            size,
            self.log_file,
            self.old_log_file,
        )
        return True

    def open_for_append(self) -> IO[bytes]:
        """Open the log for the server's stdout/stderr (O_APPEND)."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        return self.log_file.open("ab")

    def append_event(self, message: str) -> None:
        """Write a supervisor marker line into the server log."""
        with self.log_file.open("a", encoding="utf-8") as fh:
            fh.write(f"[{get_iso_timestamp()}] [SYSTEM] {message}\n")

    def tail(self, lines: int) -> list[str]:
        """Return the last *lines* lines of the log without trailing newlines."""
        try:
            with self.log_file.open("r", encoding="utf-8", errors="replace") as fh:
                last = deque(fh, maxlen=lines)
        except FileNotFoundError:
            return []
        return [line.rstrip("\n") for line in last]

    # ------------------------------------------------------------------
    # Interactive viewing
    # ------------------------------------------------------------------

    def view(self) -> None:
        """Attach an interactive view to the log until the operator quits.

        Uses ``less +G`` on a terminal when available, otherwise follows the
        file in-process.  The log is never modified.
        """
        if not self.exists():
            CLI_LOGGER.warning("No log file found at %s", self.log_file)
            return

        CLI_LOGGER.info("Viewing logs (Ctrl+C to exit)")

        less = shutil.which("less")
        if less and sys.stdout.isatty():
            try:
                subprocess.run([less, "+G", str(self.log_file)], check=False)
            except KeyboardInterrupt:
                pass
            return

        try:
            self.follow(sys.stdout)
        except KeyboardInterrupt:
            sys.stdout.write("\n")

    def follow(
        self,
        out: IO[str],
        initial_lines: int = 10,
        stop_after: float | None = None,
    ) -> None:
        """Print the last *initial_lines* lines, then new lines as they arrive.

        Runs until interrupted, or for *stop_after* seconds if given.
        """
        deadline = None if stop_after is None else time.monotonic() + stop_after

        with self.log_file.open("r", encoding="utf-8", errors="replace") as fh:
            for line in deque(fh, maxlen=initial_lines):
                out.write(line)
            out.flush()

            while deadline is None or time.monotonic() < deadline:
                line = fh.readline()
                if line:
                    out.write(line)
                    out.flush()
                else:
                    time.sleep(_FOLLOW_INTERVAL)
