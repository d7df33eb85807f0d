"""Unit tests for duration and timestamp formatting."""

from datetime import datetime

import pytest

from endpoint_capture.utils.formatting import (
    FILENAME_TIMESTAMP_FORMAT,
    filename_timestamp,
    format_duration,
    format_timestamp,
)


@pytest.mark.parametrize(
    ("duration", "expected"),
    [
        (0, "0ms"),
        (150, "150ms"),
        (12.5, "12.5ms"),
        (2500, "2.50s"),
        (72000, "1.20m"),
    ],
)
def test_format_duration(duration: float, expected: str) -> None:
    """Durations switch unit at one second and one minute."""
    assert format_duration(duration) == expected


def test_format_timestamp_uses_format() -> None:
    """The given moment is formatted with the given format."""
    moment = datetime(2024, 3, 5, 14, 7, 9, 123000)
    assert format_timestamp("%Y-%m-%d %H:%M:%S", moment) == "2024-03-05 14:07:09"


def test_filename_timestamp_is_parseable() -> None:
    """Filename timestamps round-trip through their format and contain no colons."""
    stamp = filename_timestamp()
    assert ":" not in stamp
    datetime.strptime(stamp, FILENAME_TIMESTAMP_FORMAT)
