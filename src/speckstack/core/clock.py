"""Clock abstraction for testing.

Branch records are stamped with a creation time; injecting the clock keeps
tests deterministic.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Abstract clock for dependency injection."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware time."""
        ...


class RealClock(Clock):
    """Production clock using the system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FakeClock(Clock):
    """Deterministic clock that advances by a fixed step on each call.

    This class has NO public setup methods. All state is provided via constructor.
    """

    def __init__(
        self,
        start: datetime | None = None,
        *,
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self._current = start if start is not None else datetime(2025, 1, 1, tzinfo=UTC)
        self._step = step
        self._calls = 0

    @property
    def call_count(self) -> int:
        """Number of now() calls made. For test assertions only."""
        return self._calls

    def now(self) -> datetime:
        value = self._current
        self._current = self._current + self._step
        self._calls += 1
        return value
