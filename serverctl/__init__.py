"""
serverctl: run a single server in the background and manage its lifecycle.

This package starts a server as a detached process, tracks it through a PID
file and provides start, stop, restart, status and log-viewing commands.
"""

from .config import SupervisorConfig, load_config
from .errors import LockError, LockTimeout, PrerequisiteError
from .log_manager import LogManager
from .pid_record import PidRecord
from .process_manager import ProcessManager
from .process_types import (
    ProcessHandle,
    RestartResult,
    StartResult,
    StatusResult,
    StopResult,
)

# Package metadata
__version__ = "0.1.0"

# Public API
__all__ = [
    "SupervisorConfig",
    "load_config",
    "LockError",
    "LockTimeout",
    "PrerequisiteError",
    "LogManager",
    "PidRecord",
    "ProcessManager",
    "ProcessHandle",
    "RestartResult",
    "StartResult",
    "StatusResult",
    "StopResult",
]
