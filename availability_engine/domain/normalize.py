"""
Normalization of the legacy availability shapes into TimeInterval values.

Three row shapes exist for the same concept:

1. Timestamp shape: ``start_time``/``end_time`` ISO-8601 timestamps plus an
   optional ``recurrence`` token.
2. Weekly-slot shape: ``day_of_week`` + ``HH:MM`` wall-clock times, an
   ``is_recurring`` flag and an optional ``specific_date``.
3. Time-off shape: like (2) plus a ``start_date``/``end_date`` range and an
   ``is_all_day`` flag.

Everything downstream works on ``TimeInterval`` + ``RecurrenceRule`` only.
"""

import re
from datetime import date, datetime
from typing import Any, Mapping, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInput, MalformedTime
from .models import MINUTES_PER_DAY, DateSpan, TimeInterval, WeekdayAnchor
from .recurrence import RecurrenceRule, Weekly, to_rule, weekday_of

_WALL_CLOCK = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")


def parse_wall_clock(value: Any, end_of_day: bool = False) -> int:
    """
    Parse an ``HH:MM`` wall-clock string into a minute of day.

    The database form ``HH:MM:SS`` is accepted too; seconds are dropped.
    With ``end_of_day`` the closing boundary ``24:00`` maps to 1440.

    Raises:
        MalformedTime: If the value is not a time in [00:00, 23:59]
    """
    if not isinstance(value, str):
        raise MalformedTime(f"Invalid time: {value!r}. Expected HH:MM")

    if end_of_day and value.strip() in ("24:00", "24:00:00"):
        return MINUTES_PER_DAY

    match = _WALL_CLOCK.match(value.strip())
    if not match:
        raise MalformedTime(f"Invalid time: {value!r}. Expected HH:MM")

    hours, minutes, seconds = match.groups()
    if int(hours) > 23 or int(minutes) > 59 or (seconds is not None and int(seconds) > 59):
        raise MalformedTime(f"Time out of range: {value!r}")

    return int(hours) * 60 + int(minutes)


def format_minutes(minute: int) -> str:
    """Format a minute of day as ``HH:MM`` (1440 renders as 24:00)."""
    return f"{minute // 60:02d}:{minute % 60:02d}"


def parse_timestamp(value: Any) -> DateTime:
    """
    Parse an ISO-8601 timestamp, keeping its wall-clock as written.

    Raises:
        MalformedTime: If the value does not parse to a date-time
    """
    if isinstance(value, datetime):
        return pendulum.instance(value)

    if not isinstance(value, str) or not value.strip():
        raise MalformedTime(f"Invalid timestamp: {value!r}. Expected ISO-8601 format")

    try:
        parsed = pendulum.parse(value.strip())
    except (ValueError, TypeError) as exc:
        raise MalformedTime(f"Invalid timestamp: {value!r}. Expected ISO-8601 format") from exc

    if not isinstance(parsed, DateTime):
        raise MalformedTime(f"Invalid timestamp: {value!r}. Expected ISO-8601 format")

    return parsed


def parse_date(value: Any) -> Date:
    """
    Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        MalformedTime: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return pendulum.instance(value).date()

    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)

    if not isinstance(value, str):
        raise MalformedTime(f"Invalid date: {value!r}. Expected YYYY-MM-DD")

    try:
        return pendulum.from_format(value.strip(), "YYYY-MM-DD").date()
    except (ValueError, TypeError) as exc:
        raise MalformedTime(f"Invalid date: {value!r}. Expected YYYY-MM-DD") from exc


def minute_of_day(instant: DateTime) -> int:
    return instant.hour * 60 + instant.minute


def date_of(instant: DateTime) -> Date:
    return pendulum.date(instant.year, instant.month, instant.day)


def normalize(raw: Mapping[str, Any]) -> TimeInterval:
    """
    Normalize any legacy row shape into a TimeInterval.

    Raises:
        MalformedTime: On unparsable input or when end is not after start
    """
    interval, _ = normalize_rule(raw)
    return interval


def normalize_recurrence(raw: Mapping[str, Any]) -> RecurrenceRule:
    """Derive the recurrence rule of a legacy row."""
    _, recurrence = normalize_rule(raw)
    return recurrence


def normalize_rule(raw: Mapping[str, Any]) -> Tuple[TimeInterval, RecurrenceRule]:
    """Normalize a legacy row into its interval and recurrence rule."""
    if not isinstance(raw, Mapping):
        raise InvalidInput(f"Expected a mapping, got {type(raw).__name__}")

    if _is_timestamp_shape(raw):
        return _from_timestamps(raw)

    return _from_wall_clock(raw)


def normalize_exception(raw: Mapping[str, Any], base_interval: TimeInterval) -> TimeInterval:
    """
    Normalize an exception row against its base.

    Exceptions only carry a wall-clock window; the day scope is always the
    base's. Timestamps are reduced to their wall-clock part and
    ``is_all_day`` carves out the whole base window.
    """
    if not isinstance(raw, Mapping):
        raise InvalidInput(f"Expected a mapping, got {type(raw).__name__}")

    if raw.get("is_all_day"):
        return base_interval.with_minutes(base_interval.start_minute, base_interval.end_minute)

    start_minute = _wall_clock_minute(raw.get("start_time"))
    end_minute = _wall_clock_minute(raw.get("end_time"), end_of_day=True)

    if end_minute <= start_minute:
        raise MalformedTime("End time must be after start time")

    return base_interval.with_minutes(start_minute, end_minute)


def _wall_clock_minute(value: Any, end_of_day: bool = False) -> int:
    if isinstance(value, datetime) or (isinstance(value, str) and ("T" in value or "-" in value)):
        minute = minute_of_day(parse_timestamp(value))
        if end_of_day and minute == 0:
            return MINUTES_PER_DAY
        return minute
    return parse_wall_clock(value, end_of_day=end_of_day)


def _is_timestamp_shape(raw: Mapping[str, Any]) -> bool:
    start = raw.get("start_time")
    if isinstance(start, datetime):
        return True
    if isinstance(start, str):
        return "T" in start or "-" in start
    return False


def _from_timestamps(raw: Mapping[str, Any]) -> Tuple[TimeInterval, RecurrenceRule]:
    start = parse_timestamp(raw.get("start_time"))
    end = parse_timestamp(raw.get("end_time"))

    if end <= start:
        raise MalformedTime("End time must be after start time")

    recurrence = to_rule(raw.get("recurrence"))
    start_date = date_of(start)
    end_date = date_of(end)
    start_minute = minute_of_day(start)
    end_minute = minute_of_day(end)

    # Midnight after the last day is an exclusive day boundary
    if end_minute == 0 and end.second == 0 and end_date > start_date:
        end_date = end_date.subtract(days=1)
        end_minute = MINUTES_PER_DAY

    if end_minute <= start_minute:
        raise MalformedTime(
            f"End time {format_minutes(end_minute)} must be after start time "
            f"{format_minutes(start_minute)} within each day"
        )

    if recurrence is not None:
        anchor = WeekdayAnchor(weekday_of(start_date))
    else:
        anchor = DateSpan(start_date=start_date, end_date=end_date)

    return TimeInterval(anchor=anchor, start_minute=start_minute, end_minute=end_minute), recurrence


def _from_wall_clock(raw: Mapping[str, Any]) -> Tuple[TimeInterval, RecurrenceRule]:
    if raw.get("is_all_day"):
        start_minute, end_minute = 0, MINUTES_PER_DAY
    else:
        start_minute = parse_wall_clock(raw.get("start_time"))
        end_minute = parse_wall_clock(raw.get("end_time"), end_of_day=True)

    if end_minute <= start_minute:
        raise MalformedTime("End time must be after start time")

    token_rule = to_rule(raw.get("recurrence"))

    if token_rule is not None:
        # An explicit token wins over the single day_of_week column
        if raw.get("day_of_week") is not None:
            weekday = _parse_weekday(raw.get("day_of_week"))
        else:
            weekday = min(token_rule.days)
        anchor = WeekdayAnchor(weekday)
        recurrence: RecurrenceRule = token_rule
    elif raw.get("is_recurring"):
        weekday = _parse_weekday(raw.get("day_of_week"))
        anchor = WeekdayAnchor(weekday)
        recurrence = Weekly.of(weekday)
    else:
        anchor = _date_span(raw)
        recurrence = None

    return TimeInterval(anchor=anchor, start_minute=start_minute, end_minute=end_minute), recurrence


def _parse_weekday(value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedTime(f"Invalid day_of_week: {value!r}")
    try:
        weekday = int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedTime(f"Invalid day_of_week: {value!r}") from exc
    if weekday not in range(7):
        raise MalformedTime(f"day_of_week must be between 0 and 6, got {weekday}")
    return weekday


def _date_span(raw: Mapping[str, Any]) -> DateSpan:
    if raw.get("start_date"):
        start_date = parse_date(raw["start_date"])
        end_date = parse_date(raw["end_date"]) if raw.get("end_date") else start_date
    elif raw.get("specific_date"):
        start_date = end_date = parse_date(raw["specific_date"])
    else:
        raise MalformedTime("One-time rule needs a specific_date or start_date")

    if end_date < start_date:
        raise MalformedTime(f"End date {end_date} must not be before start date {start_date}")

    return DateSpan(start_date=start_date, end_date=end_date)
