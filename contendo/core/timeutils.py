"""Timestamp and duration formatting helpers."""

from datetime import UTC, datetime

from contendo.core.constants import SECONDS_PER_HOUR, SECONDS_PER_MINUTE


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string with a ``Z`` suffix.

    Returns:
        str: Timestamp such as ``2024-06-14T12:00:00.000Z``.
    """
    now = datetime.now(UTC)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_uptime(elapsed_seconds: float) -> str:
    """Format an elapsed duration as hours, minutes and seconds.

    Fractional seconds are truncated and negative input is clamped to zero.

    Args:
        elapsed_seconds: Duration in seconds.

    Returns:
        str: Duration formatted as ``"<H>h <M>m <S>s"``.

    Examples:
        >>> format_uptime(3725.9)
        '1h 2m 5s'
    """
    total = max(int(elapsed_seconds), 0)
    hours, remainder = divmod(total, SECONDS_PER_HOUR)
    minutes, seconds = divmod(remainder, SECONDS_PER_MINUTE)
    return f"{hours}h {minutes}m {seconds}s"
