import argparse
import logging
import sys
from pathlib import Path

from .config import SupervisorConfig, get_default_base_dir, load_config
from .console import print_rich, print_status_report
from .logging_utils import CLI_LOGGER, log_success, setup_logging
from .process_manager import ProcessManager
from .process_types import StartResult, StopResult

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "start"

COMMANDS = {
    "start": "Start the server in background",
    "stop": "Stop the running server",
    "restart": "Restart the server",
    "status": "Show server status",
    "logs": "View server logs",
}


def usage_text(prog: str = "serverctl") -> str:
    lines = [
        "",
        "serverctl - Background Server Manager",
        "",
        f"Usage: {prog} {{{'|'.join(COMMANDS)}}}",
        "",
        "Commands:",
    ]
    lines += [f"  {name:<9} - {desc}" for name, desc in COMMANDS.items()]
    lines.append("")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="serverctl",
        description="Run a single server in the background and manage its lifecycle",
        epilog=usage_text(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "command",
        nargs="?",
        default=DEFAULT_COMMAND,
        help=f"One of: {', '.join(COMMANDS)} (default: {DEFAULT_COMMAND})",
    )
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        help=f"Directory the server is installed in (default: {get_default_base_dir()})",
    )
    parser.add_argument("--name", default=None, help="Name used for the PID and log files")
    parser.add_argument("--runtime", default=None, help="Executable that runs the server")
    parser.add_argument("--entry-point", default=None, help="Server script, relative to --base-dir")
    parser.add_argument("--port", type=int, default=None, help="Port the server listens on")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity; you can use -vv for more",
    )
    return parser


def parse_cli(argv: list[str]) -> tuple[argparse.Namespace, SupervisorConfig, Path | None]:
    """Parse *argv*, build the config and configure logging."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(
        base_dir=args.base_dir,
        name=args.name,
        runtime=args.runtime,
        entry_point=args.entry_point,
        port=args.port,
    )
    log_path = setup_logging(args.verbose, config.base_dir)
    return args, config, log_path


# ---------------------------------------------------------------------------
# Command handlers – each returns the process exit code
# ---------------------------------------------------------------------------


def _report_start(res: StartResult, config: SupervisorConfig) -> int:
    if res.already_running:
        CLI_LOGGER.warning("Server is already running (PID: %d)", res.pid)
        return 0

    if res.error:
        CLI_LOGGER.error(res.error)
        if res.hint:
            print_rich()
            print_rich(res.hint, markup=False)
            print_rich()
        return 1

    log_success("Server started successfully (PID: %d)", res.pid)
    print_rich()
    CLI_LOGGER.info("Access the dashboard at: %s", config.dashboard_url)
    CLI_LOGGER.info("View logs: %s", config.log_file)
    CLI_LOGGER.info("Stop server: serverctl stop")
    print_rich()
    return 0


def _report_stop(res: StopResult) -> int:
    if res.error:
        CLI_LOGGER.error(res.error)
    elif res.pid is None:
        CLI_LOGGER.warning("Server is not running")
    elif res.stopped:
        log_success("Server stopped")
    else:
        CLI_LOGGER.warning("PID %d did not exit after SIGKILL", res.pid)
    return 0


def cmd_start(pm: ProcessManager) -> int:
    CLI_LOGGER.info("Starting %s...", pm.config.name)
    return _report_start(pm.start(), pm.config)


def cmd_stop(pm: ProcessManager) -> int:
    CLI_LOGGER.info("Stopping %s...", pm.config.name)
    return _report_stop(pm.stop())


def cmd_restart(pm: ProcessManager) -> int:
    CLI_LOGGER.info("Restarting %s...", pm.config.name)
    res = pm.restart()
    _report_stop(res.stop)
    return _report_start(res.start, pm.config)


def cmd_status(pm: ProcessManager) -> int:
    print_status_report(
        pm.status(),
        title=f"{pm.config.name} status",
        dashboard_url=pm.config.dashboard_url,
    )
    return 0


def cmd_logs(pm: ProcessManager) -> int:
    pm.view_logs()
    return 0


HANDLERS = {
    "start": cmd_start,
    "stop": cmd_stop,
    "restart": cmd_restart,
    "status": cmd_status,
    "logs": cmd_logs,
}


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    args, config, log_path = parse_cli(argv)

    handler = HANDLERS.get(args.command)
    if handler is None:
        print(usage_text())
        return 1

    logger.debug("command=%s base_dir=%s log=%s", args.command, config.base_dir, log_path)
    return handler(ProcessManager(config))
