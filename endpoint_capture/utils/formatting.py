"""Duration and timestamp formatting helpers."""

from datetime import datetime, timezone

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
FILENAME_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def format_duration(duration_ms: float) -> str:
    """Format a duration in milliseconds as ``150ms``, ``2.50s`` or ``1.20m``."""
    if duration_ms < 1000:
        return f"{duration_ms:g}ms"
    if duration_ms < 60000:
        return f"{duration_ms / 1000:.2f}s"
    return f"{duration_ms / 60000:.2f}m"


def format_timestamp(fmt: str = DEFAULT_TIMESTAMP_FORMAT, moment: datetime | None = None) -> str:
    """Format the given (or current local) time."""
    return (moment or datetime.now()).strftime(fmt)


def filename_timestamp() -> str:
    """Timestamp safe for use inside file names."""
    return datetime.now().strftime(FILENAME_TIMESTAMP_FORMAT)


def iso_now() -> str:
    """Current UTC time in ISO-8601 format."""
    return datetime.now(tz=timezone.utc).isoformat()
