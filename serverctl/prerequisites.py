"""
Start-time gates: runtime, dependencies and entry point.

Each check either returns normally or raises
:class:`~serverctl.errors.PrerequisiteError`.  A runtime that is present but
older than recommended only produces a warning.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess

from .config import SupervisorConfig
from .errors import PrerequisiteError
from .logging_utils import CLI_LOGGER, log_success

__all__ = [
    "check_runtime",
    "check_dependencies",
    "check_entry_point",
    "parse_major_version",
    "check_all",
]

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+)(?:\.\d+)*")

NODE_INSTALL_HINT = """\
Install Node.js 14+ from https://nodejs.org

Quick install commands:
  Ubuntu/Debian:  sudo apt update && sudo apt install nodejs npm
  Fedora:         sudo dnf install nodejs
  Arch:           sudo pacman -S nodejs npm"""


def parse_major_version(output: str) -> int | None:
    """Extract the major version from ``--version`` style output.

    >>> parse_major_version("v18.19.0")
    18
    >>> parse_major_version("Python 3.12.1")
    3
    """
    match = _VERSION_RE.search(output)
    if match is None:
        return None
    return int(match.group(1))


def _install_hint(runtime: str) -> str:
    if runtime == "node" or runtime.endswith("/node"):
        return NODE_INSTALL_HINT
    return f"Install '{runtime}' and make sure it is on your PATH."


def check_runtime(config: SupervisorConfig) -> str:
    """Verify the runtime executable exists; warn if its version is old.

    Returns the resolved path to the runtime.
    """
    resolved = shutil.which(config.runtime)
    if resolved is None:
        raise PrerequisiteError(
            f"{config.runtime} is not installed!", hint=_install_hint(config.runtime)
        )

    try:
        proc = subprocess.run(
            [resolved, config.version_flag],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
        version_output = (proc.stdout or proc.stderr).strip()
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("Version query for %s failed: %s", resolved, exc)
        version_output = ""

    major = parse_major_version(version_output)
    if major is None:
        CLI_LOGGER.warning(
            "Could not determine %s version. Version %d+ recommended.",
            config.runtime,
            config.min_runtime_version,
        )
    elif major < config.min_runtime_version:
        CLI_LOGGER.warning(
            "%s version is old (v%d). Version %d+ recommended.",
            config.runtime,
            major,
            config.min_runtime_version,
        )
    else:
        logger.debug("Runtime %s version %s OK", resolved, version_output)

    return resolved


def check_dependencies(config: SupervisorConfig) -> bool:
    """Run the installer if the dependencies directory is missing.

    Returns ``True`` if the installer ran.
    """
    if config.dependencies_dir is None:
        return False

    deps = config.base_dir / config.dependencies_dir
    if deps.is_dir():
        return False

    if not config.install_command:
        raise PrerequisiteError(
            f"Dependencies missing at {deps} and no install command configured"
        )

    CLI_LOGGER.warning(
        "Dependencies not installed. Running %s...", " ".join(config.install_command)
    )
    try:
        proc = subprocess.run(config.install_command, cwd=config.base_dir, check=False)
    except FileNotFoundError as exc:
        raise PrerequisiteError(
            f"Failed to install dependencies: command not found: {exc.filename}"
        ) from exc

    if proc.returncode != 0:
        raise PrerequisiteError(
            f"Failed to install dependencies (exit code {proc.returncode})"
        )

    log_success("Dependencies installed successfully")
    return True


def check_entry_point(config: SupervisorConfig) -> None:
    path = config.entry_point_path
    if not path.is_file():
        raise PrerequisiteError(f"{config.entry_point} not found at {path}")


def check_all(config: SupervisorConfig) -> None:
    """Run every start gate in order."""
    check_runtime(config)
    check_dependencies(config)
    check_entry_point(config)
