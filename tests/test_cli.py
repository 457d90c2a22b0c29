import logging
import os
from pathlib import Path
from unittest.mock import patch

import psutil
import pytest

from serverctl.cli import COMMANDS, main, parse_cli, usage_text
from serverctl.process_types import ProcessHandle
from serverctl.pid_record import PidRecord
from tests.helpers import cli_env, run_cli, wait_for_exit


@pytest.fixture
def cli_environment(base_dir, monkeypatch):
    """Point the in-process CLI at the fake server via the environment."""
    for key, value in cli_env(base_dir).items():
        if key.startswith("SERVERCTL_"):
            monkeypatch.setenv(key, value)
    return base_dir


def test_parse_cli_defaults_to_start(cli_environment):
    args, config, log_path = parse_cli([])
    assert args.command == "start"
    assert args.verbose == 0
    assert config.base_dir == Path(cli_environment).resolve()
    assert log_path == config.base_dir / "serverctl.log"
    assert log_path.exists()


def test_parse_cli_flags_override_environment(cli_environment, tmp_path):
    other = tmp_path / "elsewhere"
    args, config, _ = parse_cli(
        ["status", "--base-dir", str(other), "--port", "8123", "--name", "hamclock", "-vv"]
    )
    assert args.command == "status"
    assert args.verbose == 2
    assert config.base_dir == other.resolve()
    assert config.port == 8123
    assert config.pid_file.name == "hamclock.pid"


def test_usage_lists_every_command():
    text = usage_text()
    for name in COMMANDS:
        assert f"  {name}" in text
    assert "Usage: serverctl {start|stop|restart|status|logs}" in text


def test_unknown_command_prints_usage(cli_environment, capsys):
    assert main(["frobnicate"]) == 1
    out = capsys.readouterr().out
    assert "Usage: serverctl" in out


def test_stop_when_not_running(cli_environment, capsys):
    assert main(["stop"]) == 0
    assert "Server is not running" in capsys.readouterr().out


def test_status_when_not_running(cli_environment, capsys):
    (cli_environment / "server.log").write_text("boom: EADDRINUSE\n")

    assert main(["status"]) == 0

    out = capsys.readouterr().out
    assert "Server is NOT running" in out
    assert "server may have crashed" in out
    assert "  boom: EADDRINUSE" in out


def test_status_running_report(cli_environment, capsys):
    PidRecord(cli_environment / "server.pid").write(
        ProcessHandle(pid=os.getpid(), create_time=psutil.Process().create_time())
    )
    (cli_environment / "server.log").write_text("ready on :3000\n")

    assert main(["status", "--port", "3000"]) == 0

    out = capsys.readouterr().out
    assert "Server is RUNNING" in out
    assert f"PID:       {os.getpid()}" in out
    assert "Dashboard: http://localhost:3000" in out
    assert "Recent log entries" in out
    assert "  ready on :3000" in out


def test_status_in_read_only_base_dir(cli_environment, capsys, monkeypatch, dead_pid):
    """status must work for an operator who cannot write the install dir."""
    (cli_environment / "server.pid").write_text(f"{dead_pid}\n")
    (cli_environment / "server.log").write_text("listening\n")

    def _read_only(*_a, **_kw):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(logging, "FileHandler", _read_only)
    monkeypatch.setattr(Path, "unlink", _read_only)

    assert main(["status"]) == 0

    out = capsys.readouterr().out
    assert "Server is NOT running" in out
    assert "  listening" in out
    assert not (cli_environment / "serverctl.log").exists()


def test_status_does_not_create_missing_base_dir(cli_environment, tmp_path, capsys):
    typo = tmp_path / "typo"

    _, _, log_path = parse_cli(["status", "--base-dir", str(typo)])
    assert log_path is None

    assert main(["status", "--base-dir", str(typo)]) == 0
    assert "NOT running" in capsys.readouterr().out
    assert not typo.exists()


def test_start_fails_without_entry_point(cli_environment, capsys):
    (cli_environment / "server.py").unlink()

    assert main(["start"]) == 1

    out = capsys.readouterr().out
    assert "server.py not found" in out
    assert not (cli_environment / "server.pid").exists()


def test_start_missing_runtime_prints_hint(cli_environment, capsys):
    assert main(["start", "--runtime", "node-that-does-not-exist"]) == 1

    out = capsys.readouterr().out
    assert "is not installed" in out
    assert "PATH" in out


def test_start_when_already_running(cli_environment, capsys):
    (cli_environment / "server.pid").write_text(f"{os.getpid()}\n")

    assert main(["start"]) == 0
    assert f"already running (PID: {os.getpid()})" in capsys.readouterr().out


def test_restart_propagates_start_failure(cli_environment, capsys):
    (cli_environment / "server.py").unlink()

    with patch("serverctl.process_manager.time.sleep"):
        assert main(["restart"]) == 1


def test_logs_without_file(cli_environment, capsys):
    assert main(["logs"]) == 0
    assert "No log file found" in capsys.readouterr().out


def test_root_help_lists_commands(tmp_path):
    proc = run_cli("--help", env=cli_env(tmp_path))
    assert proc.returncode == 0
    for name in COMMANDS:
        assert name in proc.stdout


@pytest.mark.timeout(60)
def test_cli_lifecycle_end_to_end(base_dir):
    """Start via the CLI, let the CLI exit, and find the server still running."""
    env = cli_env(base_dir)

    start = run_cli("start", env=env)
    assert start.returncode == 0, start.stdout + start.stderr
    assert "Server started successfully" in start.stdout
    assert "http://localhost:3000" in start.stdout

    pid = int((base_dir / "server.pid").read_text().split()[0])
    assert not wait_for_exit(pid, timeout=0.5)

    try:
        status = run_cli("status", env=env)
        assert status.returncode == 0
        assert "RUNNING" in status.stdout
        assert str(pid) in status.stdout

        again = run_cli("start", env=env)
        assert again.returncode == 0
        assert "already running" in again.stdout
    finally:
        stop = run_cli("stop", env=env)

    assert stop.returncode == 0
    assert "Server stopped" in stop.stdout
    assert not (base_dir / "server.pid").exists()
    assert wait_for_exit(pid)

    status = run_cli("status", env=env)
    assert "NOT running" in status.stdout
