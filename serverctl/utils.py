"""
Utility functions for serverctl.

Timestamps and human-readable durations.
"""

from datetime import datetime, timezone


def get_iso_timestamp() -> str:
    """Returns the current UTC time in ISO 8601 format."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def format_elapsed(seconds: float) -> str:
    """Format *seconds* the way ``ps -o etime`` does: ``[[dd-]hh:]mm:ss``."""
    total = max(int(seconds), 0)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)

    if days:
        return f"{days}-{hours:02d}:{minutes:02d}:{secs:02d}"
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
