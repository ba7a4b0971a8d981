"""Bounded, ordered buffer of digest lines shared by sync and the digest timer."""

from __future__ import annotations

import logging
import threading
from collections import deque

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 9999


class NotificationBatch:
    """Append-only queue of rendered ``"sender: content"`` lines.

    Safe to append from one thread while another drains: ``drain`` takes
    every queued line and empties the queue in one step.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = capacity
        self._lines: deque[str] = deque()
        self._lock = threading.Lock()
        self.dropped = 0

    def append(self, line: str) -> bool:
        """Queue a line. Returns False, and drops it, when the batch is full."""
        with self._lock:
            if len(self._lines) >= self.capacity:
                self.dropped += 1
                logger.warning("Notification batch full (%d), dropping message", self.capacity)
                return False
            self._lines.append(line)
            return True

    def drain(self) -> list[str]:
        with self._lock:
            lines = list(self._lines)
            self._lines.clear()
        return lines

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)

    def __bool__(self) -> bool:
        return len(self) > 0
