from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

CLI_LOGGER_NAME = "serverctl.cli"

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_current_log_path: Path | None = None


def get_current_log_path() -> Path | None:
    """Get the diagnostic log path that was set during setup_logging."""
    return _current_log_path


class CustomFormatter(logging.Formatter):
    blue = "\x1b[34;20m"
    green = "\x1b[32;20m"
    yellow = "\x1b[33;1m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    grey = "\x1b[90;20m"
    reset = "\x1b[0m"
    format = "%(message)s"

    FORMATS = {
        logging.DEBUG: grey + "[DEBUG]" + reset + " " + format,
        logging.INFO: blue + "[INFO]" + reset + " " + format,
        SUCCESS: green + "[SUCCESS]" + reset + " " + format,
        logging.WARNING: yellow + "[WARNING]" + reset + " " + format,
        logging.ERROR: red + "[ERROR]" + reset + " " + format,
        logging.CRITICAL: bold_red + "[ERROR]" + reset + " " + format,
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, "%(message)s")
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


class _CliOnlyFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 – simple predicate
        return record.name.startswith(CLI_LOGGER_NAME)


def setup_logging(verbosity: int, data_dir: Path) -> Path | None:
    """Configure logging for the current *serverctl* invocation.

    A console handler is configured according to *verbosity* and a file handler
    capturing *all* logs at DEBUG level appends to ``data_dir/serverctl.log``.

    Returns the path to the log file, or ``None`` when it cannot be opened
    (missing or read-only *data_dir*); console logging still works then.
    *data_dir* is never created here.
    """
    global _current_log_path

    log_path: Path | None = data_dir / "serverctl.log"
    file_error: OSError | None = None

    root_logger = logging.getLogger()

    # Avoid adding handlers multiple times if this function is called repeatedly,
    # which can happen during tests.
    if root_logger.hasHandlers():
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.setLevel(logging.DEBUG)

    # ----------------------------------------------------------------------------
    # File handler (always DEBUG)
    # ----------------------------------------------------------------------------
    try:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as exc:
        file_error = exc
        log_path = None
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
        )
        root_logger.addHandler(file_handler)
    _current_log_path = log_path

    # ----------------------------------------------------------------------------
    # Console handler – behaviour depends on *verbosity*
    # ----------------------------------------------------------------------------
    console_handler = logging.StreamHandler(sys.stdout)

    if verbosity <= 0:
        # Default: only show the dedicated CLI logger at INFO level.
        console_handler.setLevel(logging.INFO)
        console_handler.addFilter(_CliOnlyFilter())
    elif verbosity == 1:
        # Show INFO+ from *all* loggers.
        console_handler.setLevel(logging.INFO)
    else:
        # Show DEBUG from *all* loggers.
        console_handler.setLevel(logging.DEBUG)

    if _isatty(sys.stdout):
        console_handler.setFormatter(CustomFormatter())
    else:
        console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root_logger.addHandler(console_handler)

    if file_error is not None:
        logging.getLogger(__name__).debug(
            "Diagnostic log disabled, cannot open %s: %s", data_dir / "serverctl.log", file_error
        )

    return log_path


def _isatty(stream) -> bool:
    try:
        return os.isatty(stream.fileno())
    except (AttributeError, OSError, ValueError):
        # pytest's capture replaces stdout with objects lacking a real fd
        return False


def log_success(msg: str, *args) -> None:
    CLI_LOGGER.log(SUCCESS, msg, *args)


CLI_LOGGER = logging.getLogger(CLI_LOGGER_NAME)
