from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from .process_types import StatusResult

_console: Console | None = None


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console


def print_rule(title: str = "") -> None:
    """Print a horizontal rule with optional title."""
    console = get_console()
    if title:
        console.rule(f"[bold]{title}[/bold]")
    else:
        console.rule()


def print_rich(*args, **kwargs) -> None:
    get_console().print(*args, **kwargs)


def print_log_lines(lines: list[str]) -> None:
    for line in lines:
        get_console().print(f"  {escape(line)}", soft_wrap=True)


def print_status_report(result: StatusResult, title: str, dashboard_url: str) -> None:
    """Render the output of ``serverctl status``."""
    console = get_console()
    console.print()
    print_rule(title)
    console.print()

    if result.running:
        console.print("[green][SUCCESS][/green] Server is RUNNING")
        console.print(f"  PID:       {result.pid}")
        console.print(f"  Uptime:    {result.uptime or 'unknown'}")
        memory = f"{result.memory_mb} MB" if result.memory_mb is not None else "unknown"
        console.print(f"  Memory:    {memory}")
        cpu = f"{result.cpu_percent}%" if result.cpu_percent is not None else "unknown"
        console.print(f"  CPU:       {cpu}")
        console.print()
        console.print(f"  Dashboard: {dashboard_url}")
        console.print(f"  Log file:  {escape(str(result.log_file))}")
        console.print()

        if result.log_tail:
            console.print("Recent log entries:")
            print_rule()
            print_log_lines(result.log_tail)
            console.print()
    else:
        console.print("[red][ERROR][/red] Server is NOT running")
        console.print()

        if result.log_tail:
            console.print("Last log entries (server may have crashed):")
            print_rule()
            print_log_lines(result.log_tail)
            console.print()

    print_rule()
    console.print()
