"""Abstract base class for polling watchers."""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class BaseWatcher(ABC):
    """Base class for watchers that repeatedly poll an external source.

    Subclasses must implement:
        - check_for_updates() -> list of new items
    and may override:
        - is_fatal(exc) -> whether an error ends the loop
    """

    def __init__(self, logs_path: str, check_interval: float = 60):
        self.logs_path = Path(logs_path)
        self.check_interval = check_interval
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def check_for_updates(self) -> list[Any]:
        """Return list of new items seen in this iteration."""

    def is_fatal(self, exc: Exception) -> bool:
        """Errors for which the loop stops instead of retrying next iteration."""
        return False

    async def run(self) -> None:
        """Main polling loop. Runs until a fatal error is raised."""
        self.logger.info("Starting %s", self.__class__.__name__)
        while True:
            try:
                await self.check_for_updates()
            except Exception as exc:
                if self.is_fatal(exc):
                    raise
                self.logger.exception("Error in %s", self.__class__.__name__)
            await asyncio.sleep(self.check_interval)
