"""
Entry point for the serverctl package.

This module serves as the main entry point when running `python -m serverctl`.
"""

import os
import sys

# Check for Unix-like system
if os.name != "posix":
    print(
        "Error: serverctl only supports Unix-like systems (Linux, macOS, BSD)",
        file=sys.stderr,
    )
    sys.exit(1)

from .cli import main as cli_main


def main() -> None:
    """Main entry point for the serverctl command."""
    try:
        sys.exit(cli_main())
    except KeyboardInterrupt:
        # Interrupting start/stop mid-flight is recovered by the next
        # liveness check.
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
