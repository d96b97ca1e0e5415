"""
Overlap detection between type-matched availability intervals.

One rule for every call site:

- recurring and one-time rules are never compared with each other
- recurring rules conflict only on a shared weekday
- one-time rules conflict only when their date spans overlap
- minute windows are half-open, so back-to-back windows do not conflict
"""

from typing import Iterable, List, Protocol, TypeVar

from pendulum import Date

from .models import DateSpan, Schedule, TimeInterval
from .recurrence import RecurrenceRule, resolve


class Scheduled(Protocol):
    """Anything carrying an interval and the recurrence used to type-match it."""

    interval: TimeInterval
    recurrence: RecurrenceRule


T = TypeVar("T", bound=Scheduled)


def minutes_overlap(a: TimeInterval, b: TimeInterval) -> bool:
    """Half-open overlap of the wall-clock windows."""
    return a.start_minute < b.end_minute and b.start_minute < a.end_minute


def dates_overlap(a: TimeInterval, b: TimeInterval) -> bool:
    """Inclusive overlap of two dated anchors."""
    if not (isinstance(a.anchor, DateSpan) and isinstance(b.anchor, DateSpan)):
        return False
    return a.anchor.overlaps(b.anchor)


def conflicts(a: Scheduled, b: Scheduled) -> bool:
    """
    Decide whether two scheduled intervals conflict.

    Recurring versus one-time always returns False; the two kinds are not
    cross-checked.
    """
    if (a.recurrence is None) != (b.recurrence is None):
        return False

    if a.recurrence is not None:
        shared_days = resolve(a.recurrence) & resolve(b.recurrence)
        if not shared_days:
            return False
        return minutes_overlap(a.interval, b.interval)

    if not dates_overlap(a.interval, b.interval):
        return False

    return minutes_overlap(a.interval, b.interval)


def covers_date(schedule: Scheduled, day: Date) -> bool:
    """Check if a scheduled interval applies on a calendar date."""
    return Schedule(interval=schedule.interval, recurrence=schedule.recurrence).applies_on(day)


def find_conflicts(candidate: Scheduled, existing: Iterable[T]) -> List[T]:
    """Return every existing entry that conflicts with the candidate."""
    return [entry for entry in existing if conflicts(candidate, entry)]
