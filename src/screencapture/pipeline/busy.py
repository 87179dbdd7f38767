"""
Busy Indicator
==============

Scoped acquisition of the "capture in progress" affordance.

Every capture acquires the indicator when it starts and releases it on
every exit path through busy_scope().
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol


class BusyIndicator(Protocol):
    """Something shown while a capture runs (spinner, counter, ...)."""

    def acquire(self) -> None:
        ...

    def release(self) -> None:
        ...


class InFlightCounter:
    """
    Busy indicator counting captures in progress.

    Attributes:
        in_flight: Captures currently running
        acquired_total: Captures ever started
        released_total: Captures ever finished
    """

    def __init__(self) -> None:
        self.in_flight: int = 0
        self.acquired_total: int = 0
        self.released_total: int = 0

    def acquire(self) -> None:
        self.in_flight += 1
        self.acquired_total += 1

    def release(self) -> None:
        if self.in_flight == 0:
            raise RuntimeError("Busy indicator released more often than acquired")
        self.in_flight -= 1
        self.released_total += 1

    @property
    def busy(self) -> bool:
        return self.in_flight > 0

    def metrics(self) -> dict:
        return {
            "in_flight": self.in_flight,
            "acquired_total": self.acquired_total,
            "released_total": self.released_total,
        }


@asynccontextmanager
async def busy_scope(indicator: BusyIndicator) -> AsyncIterator[BusyIndicator]:
    """Hold the indicator for the duration of the block."""
    indicator.acquire()
    try:
        yield indicator
    finally:
        indicator.release()
