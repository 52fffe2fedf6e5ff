"""Pacing between page fetches."""
import asyncio
import logging
import random
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Delay(Protocol):
    async def wait(self) -> None: ...


class RandomDelay:
    """Sleep a random duration in [0, max_seconds) before each fetch."""

    def __init__(self, max_seconds: float, rng: Callable[[], float] = random.random):
        if max_seconds < 0:
            raise ValueError("max_seconds must be >= 0")
        self.max_seconds = max_seconds
        self._rng = rng
        self.total_waited = 0.0

    async def wait(self) -> None:
        seconds = self._rng() * self.max_seconds
        self.total_waited += seconds
        logger.debug(f"Pacing for {seconds:.2f}s")
        await asyncio.sleep(seconds)


class NoDelay:
    """Pacing policy that never sleeps."""

    def __init__(self):
        self.calls = 0

    async def wait(self) -> None:
        self.calls += 1
