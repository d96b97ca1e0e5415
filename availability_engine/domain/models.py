"""
Domain models for availability rules and their time intervals.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from pendulum import Date

from .exceptions import InvalidRange
from .recurrence import DAY_NAMES, RecurrenceRule, weekday_of

MINUTES_PER_DAY = 1440


class EntityKind(str, Enum):
    """The three kinds of stored availability entities."""
    BASE = "base"
    EXCEPTION = "exception"
    TIME_OFF = "time_off"


@dataclass(frozen=True)
class DateSpan:
    """
    Inclusive calendar date range. A single date is DateSpan(d, d).
    """
    start_date: Date
    end_date: Date

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise InvalidRange(
                f"End date {self.end_date} must not be before start date {self.start_date}"
            )

    @classmethod
    def single(cls, day: Date) -> "DateSpan":
        return cls(start_date=day, end_date=day)

    def covers(self, day: Date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: "DateSpan") -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date

    def __str__(self) -> str:
        if self.start_date == self.end_date:
            return self.start_date.isoformat()
        return f"{self.start_date.isoformat()}..{self.end_date.isoformat()}"


@dataclass(frozen=True)
class WeekdayAnchor:
    """Seed weekday (0=Sunday) of a recurring rule."""
    weekday: int

    def __post_init__(self):
        if self.weekday not in range(7):
            raise InvalidRange(f"Weekday must be between 0 and 6, got {self.weekday}")

    def __str__(self) -> str:
        return DAY_NAMES[self.weekday]


DayAnchor = Union[DateSpan, WeekdayAnchor]


@dataclass(frozen=True)
class TimeInterval:
    """
    When a rule applies: a day anchor plus a wall-clock minute window.

    Invariant: 0 <= start_minute < end_minute <= 1440. For a DateSpan
    covering several days the window applies on each of them.
    """
    anchor: DayAnchor
    start_minute: int
    end_minute: int

    def __post_init__(self):
        if not 0 <= self.start_minute < self.end_minute <= MINUTES_PER_DAY:
            raise InvalidRange(
                f"Start minute {self.start_minute} must be before end minute "
                f"{self.end_minute} within one day"
            )

    @property
    def is_dated(self) -> bool:
        return isinstance(self.anchor, DateSpan)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end_minute - self.start_minute

    def contains_minute(self, minute: int) -> bool:
        """Half-open containment: start is included, end is not."""
        return self.start_minute <= minute < self.end_minute

    def contains(self, other: "TimeInterval") -> bool:
        """Check whether other lies fully inside this window on the same anchor."""
        return (
            self.anchor == other.anchor
            and self.start_minute <= other.start_minute
            and other.end_minute <= self.end_minute
        )

    def with_minutes(self, start_minute: int, end_minute: int) -> "TimeInterval":
        return TimeInterval(anchor=self.anchor, start_minute=start_minute, end_minute=end_minute)

    def __str__(self) -> str:
        return f"{self.anchor} {_hhmm(self.start_minute)} - {_hhmm(self.end_minute)}"


def _hhmm(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"


@dataclass(frozen=True)
class Schedule:
    """An interval paired with the recurrence used to type-match it."""
    interval: TimeInterval
    recurrence: RecurrenceRule = None
    id: Optional[str] = None

    def applies_on(self, day: Date) -> bool:
        """Check if the rule's day scope covers a calendar date."""
        if self.recurrence is not None:
            return self.recurrence.includes(weekday_of(day))
        if isinstance(self.interval.anchor, DateSpan):
            return self.interval.anchor.covers(day)
        return False


@dataclass(frozen=True)
class AvailabilityBase:
    """A provider's standing availability."""
    provider_id: str
    interval: TimeInterval
    recurrence: RecurrenceRule = None
    id: Optional[str] = None

    kind = EntityKind.BASE

    def __post_init__(self):
        _check_anchor(self.interval, self.recurrence)

    @property
    def schedule(self) -> Schedule:
        return Schedule(interval=self.interval, recurrence=self.recurrence, id=self.id)


@dataclass(frozen=True)
class AvailabilityException:
    """
    A carve-out from one base.

    Only the minute window is its own; the day scope and recurrence always
    come from the base, so a base moved to another day takes its
    exceptions along.
    """
    base_id: str
    interval: TimeInterval
    reason: str = ""
    id: Optional[str] = None

    kind = EntityKind.EXCEPTION

    def interval_under(self, base: AvailabilityBase) -> TimeInterval:
        return base.interval.with_minutes(self.interval.start_minute, self.interval.end_minute)

    def schedule_under(self, base: AvailabilityBase) -> Schedule:
        return Schedule(interval=self.interval_under(base), recurrence=base.recurrence, id=self.id)


@dataclass(frozen=True)
class TimeOff:
    """An independent block-out that overrides base availability."""
    provider_id: str
    interval: TimeInterval
    recurrence: RecurrenceRule = None
    reason: str = ""
    id: Optional[str] = None

    kind = EntityKind.TIME_OFF

    def __post_init__(self):
        _check_anchor(self.interval, self.recurrence)

    @property
    def schedule(self) -> Schedule:
        return Schedule(interval=self.interval, recurrence=self.recurrence, id=self.id)


Entity = Union[AvailabilityBase, AvailabilityException, TimeOff]


def _check_anchor(interval: TimeInterval, recurrence: RecurrenceRule) -> None:
    """One-time rules are anchored on dates, recurring rules on a weekday."""
    if recurrence is None and not isinstance(interval.anchor, DateSpan):
        raise InvalidRange(f"A one-time rule needs a date anchor, got {interval.anchor}")
    if recurrence is not None and not isinstance(interval.anchor, WeekdayAnchor):
        raise InvalidRange(f"A recurring rule needs a weekday anchor, got {interval.anchor}")


@dataclass
class BaseWithExceptions:
    """A base together with its exceptions, as shown in the hierarchical view."""
    base: AvailabilityBase
    exceptions: list = field(default_factory=list)
