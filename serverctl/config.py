from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

__all__ = ["SupervisorConfig", "load_config"]

logger = logging.getLogger(__name__)

ENV_BASE_DIR = "SERVERCTL_BASE_DIR"
ENV_NAME = "SERVERCTL_NAME"
ENV_RUNTIME = "SERVERCTL_RUNTIME"
ENV_RUNTIME_ARGS = "SERVERCTL_RUNTIME_ARGS"
ENV_ENTRY_POINT = "SERVERCTL_ENTRY_POINT"
ENV_MIN_RUNTIME_VERSION = "SERVERCTL_MIN_RUNTIME_VERSION"
ENV_DEPENDENCIES_DIR = "SERVERCTL_DEPENDENCIES_DIR"
ENV_INSTALL_COMMAND = "SERVERCTL_INSTALL_COMMAND"
ENV_PORT = "SERVERCTL_PORT"

DEFAULT_NAME = "server"
DEFAULT_RUNTIME = "node"
DEFAULT_ENTRY_POINT = "server.js"
DEFAULT_MIN_RUNTIME_VERSION = 14
DEFAULT_DEPENDENCIES_DIR = "node_modules"
DEFAULT_INSTALL_COMMAND = "npm install"
DEFAULT_PORT = 3000

# 10 MiB
ROTATE_BYTES = 10 * 1024 * 1024

SUPERVISOR_LOG_NAME = "serverctl.log"


@dataclass
class SupervisorConfig:
    """Everything the supervisor needs to know about the server it manages.

    Paths are resolved relative to *base_dir*, the directory the server is
    installed in. Timings are in seconds.
    """

    base_dir: Path
    name: str = DEFAULT_NAME
    runtime: str = DEFAULT_RUNTIME
    runtime_args: list[str] = field(default_factory=list)
    entry_point: str = DEFAULT_ENTRY_POINT
    version_flag: str = "-v"
    min_runtime_version: int = DEFAULT_MIN_RUNTIME_VERSION
    dependencies_dir: str | None = DEFAULT_DEPENDENCIES_DIR
    install_command: list[str] = field(
        default_factory=lambda: shlex.split(DEFAULT_INSTALL_COMMAND)
    )
    port: int = DEFAULT_PORT

    rotate_bytes: int = ROTATE_BYTES
    start_confirm_delay: float = 2.0
    stop_timeout: int = 10
    poll_interval: float = 1.0
    kill_wait: float = 1.0
    restart_delay: float = 1.0
    lock_timeout: float = 30.0

    @property
    def pid_file(self) -> Path:
        return self.base_dir / f"{self.name}.pid"

    @property
    def lock_file(self) -> Path:
        return self.base_dir / f"{self.name}.pid.lock"

    @property
    def log_file(self) -> Path:
        return self.base_dir / f"{self.name}.log"

    @property
    def old_log_file(self) -> Path:
        return self.log_file.with_name(self.log_file.name + ".old")

    @property
    def supervisor_log_file(self) -> Path:
        return self.base_dir / SUPERVISOR_LOG_NAME

    @property
    def entry_point_path(self) -> Path:
        return self.base_dir / self.entry_point

    @property
    def dashboard_url(self) -> str:
        return f"http://localhost:{self.port}"

    def server_command(self) -> list[str]:
        """Return the argv used to launch the supervised server."""
        return [self.runtime, *self.runtime_args, str(self.entry_point_path)]


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %d", name, raw, default)
        return default


def _env_split(name: str, default: str) -> list[str]:
    raw = os.environ.get(name)
    return shlex.split(raw if raw is not None else default)


def get_default_base_dir() -> Path:
    """Return the default base directory, honouring *SERVERCTL_BASE_DIR*."""

    if os.environ.get(ENV_BASE_DIR):
        return Path(os.environ[ENV_BASE_DIR]).expanduser().resolve()
    return Path.cwd()


def get_default_port() -> int:
    """Return default port, honouring *SERVERCTL_PORT*."""

    return _env_int(ENV_PORT, DEFAULT_PORT)


def load_config(
    base_dir: Path | None = None,
    name: str | None = None,
    runtime: str | None = None,
    entry_point: str | None = None,
    port: int | None = None,
) -> SupervisorConfig:
    """Build a config from defaults, the environment and explicit overrides.

    Explicit (non-``None``) arguments win over environment variables, which
    win over the built-in defaults.
    """

    deps_dir = os.environ.get(ENV_DEPENDENCIES_DIR, DEFAULT_DEPENDENCIES_DIR)

    return SupervisorConfig(
        base_dir=Path(base_dir).expanduser().resolve()
        if base_dir is not None
        else get_default_base_dir(),
        name=name or os.environ.get(ENV_NAME) or DEFAULT_NAME,
        runtime=runtime or os.environ.get(ENV_RUNTIME) or DEFAULT_RUNTIME,
        runtime_args=_env_split(ENV_RUNTIME_ARGS, ""),
        entry_point=entry_point
        or os.environ.get(ENV_ENTRY_POINT)
        or DEFAULT_ENTRY_POINT,
        min_runtime_version=_env_int(
            ENV_MIN_RUNTIME_VERSION, DEFAULT_MIN_RUNTIME_VERSION
        ),
        # An empty value disables the dependency check entirely.
        dependencies_dir=deps_dir or None,
        install_command=_env_split(ENV_INSTALL_COMMAND, DEFAULT_INSTALL_COMMAND),
        port=port if port is not None else get_default_port(),
    )
