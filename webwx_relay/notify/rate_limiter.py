"""In-memory sliding window rate limiter for digest e-mails.

Counter resets on restart; no persistence needed for a single session.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_SENDS_PER_HOUR = 30
DEFAULT_WINDOW_SECONDS = 3600


class RateLimiter:
    """Sliding-window rate limiter for digest sends."""

    def __init__(
        self,
        max_sends: int = DEFAULT_MAX_SENDS_PER_HOUR,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._send_timestamps: deque[float] = deque()
        self._clock = clock
        self.max_sends = max_sends
        self.window_seconds = window_seconds
        logger.info(
            "Rate limiter initialized: %d sends per %d seconds",
            self.max_sends,
            self.window_seconds,
        )

    def _prune_expired(self) -> None:
        """Remove timestamps outside the current sliding window."""
        cutoff = self._clock() - self.window_seconds
        while self._send_timestamps and self._send_timestamps[0] < cutoff:
            self._send_timestamps.popleft()

    def check(self) -> tuple[bool, int]:
        """Check if a send is allowed under the current rate limit.

        Returns:
            Tuple of (allowed, seconds_until_next_slot).
            If allowed is True, seconds_until_next_slot is 0.
            If allowed is False, seconds_until_next_slot is the number
            of seconds until the oldest entry expires from the window.
        """
        self._prune_expired()

        if len(self._send_timestamps) < self.max_sends:
            return True, 0

        oldest = self._send_timestamps[0]
        seconds_remaining = int(oldest + self.window_seconds - self._clock()) + 1
        return False, max(seconds_remaining, 1)

    def record_send(self) -> None:
        """Record a successful send timestamp."""
        self._send_timestamps.append(self._clock())

    @property
    def current_count(self) -> int:
        """Number of sends in the current window."""
        self._prune_expired()
        return len(self._send_timestamps)
