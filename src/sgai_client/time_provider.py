"""
Time Provider Abstraction

Provides a pluggable time source for the engine's periodic tasks (manifest
polling, quartile polling, heartbeat) and for time-driven ad completion.
Production code runs on wall-clock time; tests and dry runs drive a virtual
clock explicitly.
"""

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod

from .log_config import get_context_logger


class TimeProvider(ABC):
    """
    Abstract base class for time providers.

    Enables different time behaviors (real vs. simulated) while every
    scheduling component keeps a single code path.
    """

    @abstractmethod
    def now(self) -> float:
        """Get current time in seconds."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for the given duration.

        Args:
            seconds: Duration to sleep (wall-clock for real, virtual for simulated)
        """
        pass

    def elapsed_time(self, start_time: float) -> float:
        """Calculate elapsed time since start_time.

        Args:
            start_time: Reference time from an earlier now() call

        Returns:
            Elapsed time in seconds
        """
        return self.now() - start_time

    @abstractmethod
    def get_mode(self) -> str:
        """Get time provider mode identifier."""
        pass


class RealtimeTimeProvider(TimeProvider):
    """
    Real-time time provider using wall-clock time.

    Uses time.time() for current time and asyncio.sleep() for delays.

    Examples:
        >>> provider = RealtimeTimeProvider()
        >>> start = provider.now()
        >>> await provider.sleep(1.0)  # Sleep 1 real second
        >>> elapsed = provider.elapsed_time(start)
        >>> assert 0.95 < elapsed < 1.1  # Allow for scheduling variance
    """

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def get_mode(self) -> str:
        return "realtime"


class SimulatedTimeProvider(TimeProvider):
    """
    Virtual clock for headless sessions and tests.

    Sleeping tasks are parked until the clock is moved forward with
    ``advance()``. Sleepers are woken in deadline order and the event loop is
    given a few turns after each wake-up, so work triggered by one timer
    (fetches against mocked clients, fire-and-forget sends, new sleeps) runs
    before the next timer fires.

    Examples:
        >>> clock = SimulatedTimeProvider()
        >>> task = asyncio.create_task(clock.sleep(15.0))
        >>> await clock.advance(14.0)
        >>> task.done()
        False
        >>> await clock.advance(1.0)
        >>> task.done()
        True
    """

    def __init__(self, initial_time: float = 0.0, settle_iterations: int = 50):
        """
        Initialize simulated time provider.

        Args:
            initial_time: Starting virtual time (default: 0.0)
            settle_iterations: Event-loop turns granted after each wake-up

        Raises:
            ValueError: If settle_iterations < 1
        """
        if settle_iterations < 1:
            raise ValueError(f"settle_iterations must be positive, got {settle_iterations}")

        self.virtual_time = initial_time
        self.settle_iterations = settle_iterations
        self._sleepers: list[tuple[float, int, asyncio.Future]] = []
        self._sequence = itertools.count()
        self.logger = get_context_logger("simulated_time_provider")

    def now(self) -> float:
        return self.virtual_time

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return

        future = asyncio.get_running_loop().create_future()
        heapq.heappush(
            self._sleepers, (self.virtual_time + seconds, next(self._sequence), future)
        )
        await future

    def get_mode(self) -> str:
        return "simulated"

    @property
    def pending_sleepers(self) -> int:
        """Number of tasks currently parked on the clock."""
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float) -> None:
        """Move virtual time forward, waking every sleeper that falls due.

        Args:
            seconds: Virtual duration to advance

        Raises:
            ValueError: If seconds < 0
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance by a negative duration: {seconds}")

        target = self.virtual_time + seconds
        await self.settle()

        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self.virtual_time = max(self.virtual_time, deadline)
            if not future.done():
                future.set_result(None)
                await self.settle()

        self.virtual_time = target
        await self.settle()

    async def settle(self) -> None:
        """Give ready tasks a bounded number of event-loop turns."""
        for _ in range(self.settle_iterations):
            await asyncio.sleep(0)


def create_time_provider(mode: str = "real", **kwargs) -> TimeProvider:
    """
    Factory function to create appropriate time provider.

    Args:
        mode: 'real' or 'simulated'
        **kwargs: Additional arguments passed to the simulated provider

    Returns:
        Configured TimeProvider instance
    """
    if mode == "simulated":
        return SimulatedTimeProvider(**kwargs)
    return RealtimeTimeProvider()


__all__ = [
    "TimeProvider",
    "RealtimeTimeProvider",
    "SimulatedTimeProvider",
    "create_time_provider",
]
