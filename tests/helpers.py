from __future__ import annotations

import os
import subprocess
import sys
import time
from pathlib import Path

import psutil

__all__ = [
    "run_cli",
    "cli_env",
    "is_process_running",
    "wait_for_exit",
]

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def cli_env(base_dir: Path, **extra: str) -> dict[str, str]:
    """Environment that points serverctl at the fake server in *base_dir*."""
    env = {
        **os.environ,
        "SERVERCTL_BASE_DIR": str(base_dir),
        "SERVERCTL_RUNTIME": sys.executable,
        "SERVERCTL_RUNTIME_ARGS": "-u",
        "SERVERCTL_ENTRY_POINT": "server.py",
        "SERVERCTL_MIN_RUNTIME_VERSION": "3",
        "SERVERCTL_DEPENDENCIES_DIR": "",
        "PYTHONPATH": str(PROJECT_ROOT),
    }
    env.update(extra)
    return env


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    """Invoke the serverctl CLI synchronously and capture output."""
    cmd = [sys.executable, "-m", "serverctl", *args]
    return subprocess.run(
        cmd, text=True, capture_output=True, check=False, env=env, timeout=60
    )


def is_process_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
        return True
    except (OSError, ProcessLookupError):
        return False


def wait_for_exit(pid: int, timeout: float = 5.0) -> bool:
    """Poll until *pid* is gone or a zombie; ``True`` on exit."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if psutil.Process(pid).status() == psutil.STATUS_ZOMBIE:
                return True
        except psutil.NoSuchProcess:
            return True
        time.sleep(0.05)
    return False
