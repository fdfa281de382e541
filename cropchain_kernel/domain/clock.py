"""
Injectable time source.

Services and selectors take a Clock instead of calling ``datetime.now()``.
Every timestamp stored on a batch (created_at, updated_at, update entries,
recalled_at), the harvest-date upper bound and the year inside a new batch
identifier all come from ``Clock.now_utc()``.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

DEFAULT_TEST_INSTANT = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now_utc(self) -> datetime:
        """Current instant as an aware UTC datetime."""


class SystemClock(Clock):
    """Wall-clock time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock pinned to one instant, for tests and replays.

    Raises:
        ValueError: if ``instant`` is naive.
    """

    def __init__(self, instant: datetime = DEFAULT_TEST_INSTANT):
        if instant.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware instant")
        self._instant = instant.astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._instant
