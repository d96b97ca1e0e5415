"""
Recurrence codec for weekly day-sets.

Wire format: ``"weekly:Mon,Wed,Fri"`` with Sunday-first canonical ordering.
A missing token means the rule is one-time.
"""

from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, Iterable, Optional

from .exceptions import InvalidInput

WEEKLY_PREFIX = "weekly:"

# 0=Sunday, 6=Saturday
DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_DAY_LOOKUP = {name.lower(): index for index, name in enumerate(DAY_NAMES)}


@dataclass(frozen=True)
class Weekly:
    """
    A weekly recurrence on a fixed set of weekdays.

    Invariant: days is non-empty and every day is within 0..6.
    """
    days: FrozenSet[int]

    def __post_init__(self):
        if not self.days:
            raise InvalidInput("Weekly recurrence needs at least one day")
        invalid = sorted(day for day in self.days if day not in range(7))
        if invalid:
            raise InvalidInput(f"Weekdays must be between 0 and 6, got {invalid}")

    @classmethod
    def of(cls, *days: int) -> "Weekly":
        return cls(frozenset(days))

    def includes(self, weekday: int) -> bool:
        return weekday in self.days

    def __str__(self) -> str:
        return encode(self.days)


# None means one-time
RecurrenceRule = Optional[Weekly]


def encode(days: Iterable[int]) -> str:
    """
    Encode a weekday set as a recurrence token.

    Raises:
        InvalidInput: If the set is empty or contains a day outside 0..6
    """
    day_set = frozenset(days)
    if not day_set:
        raise InvalidInput("Cannot encode an empty weekday set")

    invalid = sorted(day for day in day_set if day not in range(7))
    if invalid:
        raise InvalidInput(f"Weekdays must be between 0 and 6, got {invalid}")

    return WEEKLY_PREFIX + ",".join(DAY_NAMES[day] for day in sorted(day_set))


def decode(token: Optional[str]) -> FrozenSet[int]:
    """
    Decode a recurrence token into a weekday set.

    Never raises: an absent or malformed token yields the empty set, which
    callers treat as "no recurrence". Unknown day names are skipped.
    """
    if not isinstance(token, str):
        return frozenset()

    token = token.strip()
    if not token.lower().startswith(WEEKLY_PREFIX):
        return frozenset()

    days_part = token[len(WEEKLY_PREFIX):]
    days = set()
    for name in days_part.split(","):
        index = _DAY_LOOKUP.get(name.strip().lower())
        if index is not None:
            days.add(index)

    return frozenset(days)


def to_rule(token: Optional[str]) -> RecurrenceRule:
    """Turn a wire token into a rule; None when the token carries no days."""
    days = decode(token)
    if not days:
        return None
    return Weekly(days)


def from_rule(rule: RecurrenceRule) -> Optional[str]:
    """Turn a rule back into its wire token (None for one-time)."""
    if rule is None:
        return None
    return encode(rule.days)


def resolve(rule: RecurrenceRule) -> FrozenSet[int]:
    """Return the weekdays a rule applies on (empty for one-time)."""
    if rule is None:
        return frozenset()
    return rule.days


def weekday_of(day: date) -> int:
    """Sunday-first weekday index of a calendar date."""
    return day.isoweekday() % 7
