"""Timestamp utilities for the relay.

Provides ISO 8601 timestamps for audit log entries and the millisecond
clock the WeChat web endpoints use as cache-buster and request nonce.
"""

import time
from datetime import UTC, datetime


def now_iso() -> str:
    """Get the current UTC timestamp in ISO 8601 format.

    Returns:
        Current timestamp as ISO 8601 string (YYYY-MM-DDTHH:MM:SSZ).

    Examples:
        >>> ts = now_iso()
        >>> ts  # e.g., "2025-02-04T14:30:22Z"
    """
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def today_iso() -> str:
    """Get today's date in ISO format (YYYY-MM-DD).

    Useful for daily log file naming.

    Returns:
        Today's date as ISO string.

    Examples:
        >>> date = today_iso()
        >>> date  # e.g., "2025-02-04"
    """
    return datetime.now(UTC).strftime("%Y-%m-%d")


def now_millis() -> int:
    """Get milliseconds since the Unix epoch.

    Used for the ``_``/``r`` cache-buster query parameters and the ``rr``
    nonce of sync requests.

    Examples:
        >>> now_millis() > 1_500_000_000_000
        True
    """
    return time.time_ns() // 1_000_000
