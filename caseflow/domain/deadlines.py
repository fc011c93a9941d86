"""Business-hour deadline arithmetic.

The working window is the half-open interval ``[start_hour, end_hour)`` in the
wall-clock time of whatever datetime is passed in. Callers convert to the
business timezone first; see ``caseflow.infra.schedule``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

ONE_HOUR = timedelta(hours=1)
ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class BusinessWindow:
    start_hour: int
    end_hour: int

    def __post_init__(self) -> None:
        if not (0 <= self.start_hour < self.end_hour <= 24):
            raise ValueError(
                f"invalid business window [{self.start_hour}, {self.end_hour}): "
                "expected 0 <= start_hour < end_hour <= 24"
            )

    def contains(self, moment: datetime) -> bool:
        return self.start_hour <= moment.hour < self.end_hour


def _at_window_start(moment: datetime, window: BusinessWindow) -> datetime:
    return moment.replace(hour=window.start_hour, minute=0, second=0, microsecond=0)


def compute_deadline(start: datetime, business_hours: int, window: BusinessWindow) -> datetime:
    """Return ``start`` advanced by ``business_hours`` hours counted inside ``window``.

    The walk moves one clock hour at a time and counts a step only when the hour
    it lands on is inside the window. Landing at or past ``end_hour`` jumps to
    ``start_hour`` of the next day with the minute offset kept, so
    18:30 + 4h in [10, 19) gives 14:30 the next day.
    """
    if business_hours < 0:
        raise ValueError("business_hours must be >= 0")

    cursor = start
    if cursor.hour < window.start_hour:
        cursor = _at_window_start(cursor, window)
    elif cursor.hour >= window.end_hour:
        cursor = _at_window_start(cursor + ONE_DAY, window)

    remaining = business_hours
    while remaining > 0:
        cursor += ONE_HOUR
        if cursor.hour >= window.end_hour:
            cursor = (cursor + ONE_DAY).replace(hour=window.start_hour)
            continue
        if cursor.hour < window.start_hour:
            # wrapped past midnight
            cursor = cursor.replace(hour=window.start_hour)
            continue
        remaining -= 1
    return cursor
