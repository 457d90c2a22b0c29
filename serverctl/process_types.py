"""Shared dataclasses used by *serverctl* components.

Having these types in a dedicated module avoids circular imports between
``process_manager``, ``pid_record`` and ``cli``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

__all__ = [
    "ProcessHandle",
    "StartResult",
    "StopResult",
    "RestartResult",
    "StatusResult",
]


@dataclass(frozen=True)
class ProcessHandle:
    """A supervised process as recorded on disk.

    ``create_time`` is the launch time reported by the OS (seconds since the
    epoch).  It is ``None`` for records written without one.
    """

    pid: int
    create_time: float | None = None


@dataclass
class StartResult:
    pid: int | None = None
    already_running: bool = False
    error: str | None = None
    hint: str | None = None


@dataclass
class StopResult:
    """Result of a stop call.

    * ``pid`` is ``None`` when nothing was running.
    * ``forced`` is set when SIGKILL had to be sent.
    * ``stopped`` is ``False`` only if the process survived SIGKILL.
    """

    pid: int | None = None
    forced: bool = False
    stopped: bool = True
    error: str | None = None


@dataclass
class RestartResult:
    """Outcome of a restart: the stop phase followed by the start phase.

    The start phase decides success, so ``error`` mirrors ``start.error``.
    """

    stop: StopResult
    start: StartResult

    @property
    def old_pid(self) -> int | None:
        return self.stop.pid

    @property
    def pid(self) -> int | None:
        return self.start.pid

    @property
    def error(self) -> str | None:
        return self.start.error


@dataclass
class StatusResult:
    running: bool
    log_file: Path
    pid: int | None = None
    uptime: str | None = None
    memory_mb: int | None = None
    cpu_percent: float | None = None
    log_tail: List[str] = field(default_factory=list)
