from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import time

import psutil

from .config import SupervisorConfig
from .errors import LockError, PrerequisiteError
from .locking import control_lock
from .log_manager import LogManager
from .logging_utils import CLI_LOGGER
from .pid_record import PidRecord
from . import prerequisites
from .process_types import (
    ProcessHandle,
    RestartResult,
    StartResult,
    StatusResult,
    StopResult,
)
from .utils import format_elapsed

__all__ = ["ProcessManager", "is_alive"]

logger = logging.getLogger(__name__)

# psutil derives create_time from boot time plus clock ticks, so allow for
# rounding between two reads of the same process.
_CREATE_TIME_TOLERANCE = 1.0

STATUS_TAIL_RUNNING = 5
STATUS_TAIL_STOPPED = 10


# ---------------------------------------------------------------------------
# OS queries
# ---------------------------------------------------------------------------


def is_alive(handle: ProcessHandle) -> bool:
    """Return ``True`` if *handle* names a live, non-zombie process.

    When the handle carries a launch time, a process whose launch time
    differs is a different process that reused the PID.
    """
    try:
        proc = psutil.Process(handle.pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return False
        if handle.create_time is not None:
            drift = abs(proc.create_time() - handle.create_time)
            if drift > _CREATE_TIME_TOLERANCE:
                logger.debug(
                    "event=pid_reused pid=%s recorded=%s actual=%s",
                    handle.pid,
                    handle.create_time,
                    proc.create_time(),
                )
                return False
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Exists, but owned by someone we may not inspect.
        return True
    return True


def _get_create_time(pid: int) -> float | None:
    try:
        return psutil.Process(pid).create_time()
    except psutil.Error:
        return None


class ProcessManager:
    """Start, stop and inspect the single supervised server.

    Holds no state between invocations: every operation re-reads the PID
    record and asks the OS whether the process it names is still alive.
    """

    def __init__(self, config: SupervisorConfig) -> None:
        self.config = config
        self._record = PidRecord(config.pid_file)
        self._log_mgr = LogManager(
            config.log_file, config.old_log_file, config.rotate_bytes
        )

    @property
    def log_manager(self) -> LogManager:
        return self._log_mgr

    # ------------------------------------------------------------------
    # Liveness
    # ------------------------------------------------------------------

    def get_handle(self) -> ProcessHandle | None:
        """Return the live recorded process, removing a stale record."""
        handle = self._record.read()
        if handle is None:
            return None

        if is_alive(handle):
            return handle

        logger.debug("event=stale_pid pid=%s path=%s", handle.pid, self._record.path)
        self._record.discard(handle)
        return None

    def get_pid(self) -> int | None:
        handle = self.get_handle()
        return handle.pid if handle else None

    # ------------------------------------------------------------------
    # Core API – exposed via the CLI
    # ------------------------------------------------------------------

    def start(self) -> StartResult:
        try:
            with control_lock(self.config.lock_file, self.config.lock_timeout):
                return self._start_locked()
        except LockError as exc:
            return StartResult(error=str(exc))

    def _start_locked(self) -> StartResult:
        handle = self.get_handle()
        if handle is not None:
            logger.debug("event=start_noop pid=%s", handle.pid)
            return StartResult(pid=handle.pid, already_running=True)

        try:
            prerequisites.check_all(self.config)
        except PrerequisiteError as exc:
            logger.debug("event=start_prerequisite_failed error=%s", exc)
            return StartResult(error=str(exc), hint=exc.hint)

        try:
            self._log_mgr.rotate_if_needed()
        except OSError as exc:
            logger.debug("event=rotate_failed error=%s", exc)
            return StartResult(
                error=f"Failed to rotate {self.config.log_file}: {exc}",
                hint="Move or remove the log file, then start again.",
            )

        try:
            handle = self._launch()
        except OSError as exc:
            return StartResult(
                error=f"Failed to launch {self.config.runtime}: {exc}",
                hint=f"Check logs: {self.config.log_file}",
            )

        self._record.write(handle)
        logger.info("Process %s launched", handle.pid)

        time.sleep(self.config.start_confirm_delay)
        if not is_alive(handle):
            self._record.delete()
            logger.error("event=start_failed pid=%s", handle.pid)
            return StartResult(
                error=f"Server failed to start. Check logs: {self.config.log_file}"
            )

        logger.debug("event=start_confirmed pid=%s", handle.pid)
        return StartResult(pid=handle.pid)

    def _launch(self) -> ProcessHandle:
        cmd = self.config.server_command()
        self._log_mgr.append_event(f"Starting: {shlex.join(cmd)}")

        with self._log_mgr.open_for_append() as log_fh:
            proc = subprocess.Popen(  # noqa: S603 – configured command
                cmd,
                cwd=str(self.config.base_dir),
                stdin=subprocess.DEVNULL,
                stdout=log_fh,
                stderr=subprocess.STDOUT,
                close_fds=True,
                # New session: no controlling terminal, so no SIGHUP when the
                # operator's shell goes away.
                start_new_session=True,
            )

        handle = ProcessHandle(pid=proc.pid, create_time=_get_create_time(proc.pid))
        logger.debug(
            "event=launch pid=%s cmd=%s cwd=%s",
            proc.pid,
            shlex.join(cmd),
            self.config.base_dir,
        )
        return handle

    def stop(self) -> StopResult:
        try:
            with control_lock(self.config.lock_file, self.config.lock_timeout):
                return self._stop_locked()
        except LockError as exc:
            return StopResult(stopped=False, error=str(exc))

    def _stop_locked(self) -> StopResult:
        handle = self.get_handle()
        if handle is None:
            logger.debug("event=stop_noop")
            return StopResult()

        pid = handle.pid

        # Send SIGTERM first for graceful shutdown
        try:
            self._send_signal(pid, signal.SIGTERM)
            logger.debug("Sent SIGTERM to pid=%s", pid)
        except ProcessLookupError:
            pass
        except PermissionError as exc:
            self._record.delete()
            return StopResult(
                pid=pid,
                stopped=False,
                error=f"Permission denied when signalling PID {pid}: {exc}",
            )

        for _ in range(self.config.stop_timeout):
            if not is_alive(handle):
                break
            time.sleep(self.config.poll_interval)

        forced = False
        if is_alive(handle):
            CLI_LOGGER.warning("Server did not stop gracefully, forcing shutdown...")
            try:
                self._send_signal(pid, signal.SIGKILL)
                logger.warning("Escalated to SIGKILL pid=%s", pid)
            except ProcessLookupError:
                pass  # Process vanished between checks.
            forced = True
            time.sleep(self.config.kill_wait)

        stopped = not is_alive(handle)
        if not stopped:
            logger.error("event=stop_timeout pid=%s", pid)

        self._record.delete()
        self._log_mgr.append_event(
            f"Stopped PID {pid}" + (" (SIGKILL)" if forced else "")
        )
        logger.debug("event=stopped pid=%s forced=%s", pid, forced)
        return StopResult(pid=pid, forced=forced, stopped=stopped)

    def restart(self) -> RestartResult:
        """Stop, pause briefly, then start.

        If the old process survives the stop phase, the start phase finds it
        alive and becomes a no-op.
        """
        stop_res = self.stop()
        time.sleep(self.config.restart_delay)
        start_res = self.start()
        logger.debug("event=restart pid_old=%s pid_new=%s", stop_res.pid, start_res.pid)
        return RestartResult(stop=stop_res, start=start_res)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def status(self) -> StatusResult:
        handle = self.get_handle()
        if handle is None:
            return StatusResult(
                running=False,
                log_file=self.config.log_file,
                log_tail=self._log_mgr.tail(STATUS_TAIL_STOPPED),
            )

        uptime, memory_mb, cpu_percent = self._process_metrics(handle.pid)
        return StatusResult(
            running=True,
            log_file=self.config.log_file,
            pid=handle.pid,
            uptime=uptime,
            memory_mb=memory_mb,
            cpu_percent=cpu_percent,
            log_tail=self._log_mgr.tail(STATUS_TAIL_RUNNING),
        )

    def view_logs(self) -> None:
        self._log_mgr.view()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _process_metrics(pid: int) -> tuple[str | None, int | None, float | None]:
        """Uptime, resident memory (MB) and lifetime CPU percentage, like ``ps``."""
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                created = proc.create_time()
                cpu_times = proc.cpu_times()
                rss = proc.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            logger.debug("Could not read metrics for pid=%s: %s", pid, exc)
            return None, None, None

        elapsed = max(time.time() - created, 0.0)
        busy = cpu_times.user + cpu_times.system
        cpu_percent = round(busy / elapsed * 100, 1) if elapsed > 0 else 0.0
        return format_elapsed(elapsed), rss // (1024 * 1024), cpu_percent

    @staticmethod
    def _send_signal(pid: int, sig: signal.Signals) -> None:  # noqa: D401
        # A server we launched leads its own process group.
        if os.getpgid(pid) == pid:
            os.killpg(pid, sig)
        else:
            os.kill(pid, sig)
