"""Cancellable waits and tickers for deployment phases.

Every suspension point of a run (probe retry backoff, canary observation
windows, monitoring ticks) goes through a `Scheduler`, so tests can swap in a
virtual clock and the monitor loop stays a plain `async for`.

Example:
    >>> ticker = scheduler.every(30.0)
    >>> try:
    >>>     async for tick in ticker:
    >>>         if done(tick):
    >>>             break
    >>> finally:
    >>>     ticker.stop()
"""
import asyncio
from abc import ABC, abstractmethod


class Ticker(ABC):
    """Async iterator yielding the tick number after every interval."""

    def __init__(self, interval: float):
        if interval <= 0:
            raise ValueError("Ticker interval must be positive")
        self.interval = interval
        self.ticks = 0

    @abstractmethod
    def stop(self) -> None:
        """Cancel the ticker; pending and future waits end the iteration."""

    @property
    @abstractmethod
    def stopped(self) -> bool:
        pass

    def __aiter__(self) -> "Ticker":
        return self

    @abstractmethod
    async def __anext__(self) -> int:
        pass


class Scheduler(ABC):
    @abstractmethod
    async def after(self, seconds: float) -> None:
        """Wait `seconds`; cancelled with the enclosing task."""

    @abstractmethod
    def every(self, interval: float) -> Ticker:
        """Create a ticker firing every `interval` seconds."""


class AsyncioTicker(Ticker):

    def __init__(self, interval: float):
        super().__init__(interval)
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    async def __anext__(self) -> int:
        if self.stopped:
            raise StopAsyncIteration
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            self.ticks += 1
            return self.ticks
        raise StopAsyncIteration


class AsyncioScheduler(Scheduler):
    """Wall-clock scheduler backed by the running event loop."""

    async def after(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    def every(self, interval: float) -> Ticker:
        return AsyncioTicker(interval)
