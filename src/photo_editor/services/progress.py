"""Progress estimation for processing calls without a native progress channel."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

ProgressCallback = Callable[[float], None]


class ProgressEstimator(Protocol):
    """Interface for components that report progress while a call is pending."""

    async def run(self, report: ProgressCallback) -> None:
        """Report estimated progress until cancelled."""


@dataclass
class SyntheticProgress(ProgressEstimator):
    """Randomised progress that creeps from ``start`` towards ``ceiling``."""

    start: float = 15.0
    ceiling: float = 85.0
    max_step: float = 15.0
    interval_seconds: float = 0.5
    rng: random.Random = field(default_factory=random.Random)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def run(self, report: ProgressCallback) -> None:
        """Report a random increment every interval while below the ceiling."""
        current = self.start
        while True:
            await self.sleep(self.interval_seconds)
            current += self.rng.random() * self.max_step
            if current < self.ceiling:
                report(current)
