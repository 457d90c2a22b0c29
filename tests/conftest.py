import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Iterable
import signal

import pytest

from serverctl.config import SupervisorConfig
from serverctl.process_manager import ProcessManager

LOG_PATTERN = "serverctl.log"

FAKE_SERVER = Path(__file__).parent / "scripts" / "fake_server.py"


def _find_latest_log(dirs: Iterable[Path]) -> Path | None:
    """Return the most recently modified log file among *dirs* (recursive)."""
    latest: Path | None = None
    for base in dirs:
        if not base.exists():
            continue
        for path in base.rglob(LOG_PATTERN):
            if latest is None or path.stat().st_mtime > latest.stat().st_mtime:
                latest = path
    return latest


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_makereport(item, call):  # noqa: D401 – pytest hook
    # Let pytest perform its normal processing first.
    outcome = yield
    rep = outcome.get_result()

    # Only act after the *call* phase and when the test has failed.
    if rep.when != "call" or rep.passed:
        return

    candidate_dirs: list[Path] = []
    fixture_val = item.funcargs.get("tmp_path") if hasattr(item, "funcargs") else None
    if isinstance(fixture_val, Path):
        candidate_dirs.append(fixture_val)

    latest_log = _find_latest_log(candidate_dirs)
    if latest_log is None:
        return

    try:
        contents = latest_log.read_text(encoding="utf-8")
    except OSError as exc:  # pragma: no cover – best-effort
        contents = f"<error reading log file {latest_log}: {exc}>"

    rep.sections.append(("serverctl-log", contents))


@pytest.fixture(autouse=True)
def _enforce_timeout(request):
    """Fail tests that run longer than the allowed time.

    Default timeout is 30 seconds unless a test is marked with
    ``@pytest.mark.timeout(N)`` specifying a custom limit.
    """

    marker = request.node.get_closest_marker("timeout")
    timeout = int(marker.args[0]) if marker and marker.args else 30

    if timeout <= 0:
        yield
        return

    def _alarm_handler(signum, frame):  # noqa: D401 – signal handler
        pytest.fail(f"Test timed out after {timeout} seconds", pytrace=False)

    previous = signal.signal(signal.SIGALRM, _alarm_handler)  # type: ignore[arg-type]
    signal.alarm(timeout)

    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, previous)  # type: ignore[arg-type]


@pytest.fixture(autouse=True)
def _restore_root_handlers():
    """Undo handler changes made by ``setup_logging`` during a test."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    for handler in before:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def base_dir(tmp_path) -> Path:
    """An installation directory holding the fake server as ``server.py``."""
    shutil.copy(FAKE_SERVER, tmp_path / "server.py")
    return tmp_path


@pytest.fixture
def config(base_dir) -> SupervisorConfig:
    """Config for the fake server with short timings."""
    return SupervisorConfig(
        base_dir=base_dir,
        name="server",
        runtime=sys.executable,
        runtime_args=["-u"],
        entry_point="server.py",
        version_flag="--version",
        min_runtime_version=3,
        dependencies_dir=None,
        install_command=[],
        start_confirm_delay=1.0,
        stop_timeout=5,
        poll_interval=0.2,
        kill_wait=0.2,
        restart_delay=0.1,
        lock_timeout=5.0,
    )


@pytest.fixture
def pm(config):
    """A ProcessManager whose server is stopped again after the test."""
    manager = ProcessManager(config)
    yield manager
    manager.stop()


@pytest.fixture
def dead_pid() -> int:
    """PID of a process that has already exited and been reaped."""
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid
