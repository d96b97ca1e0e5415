"""
Tests for domain models.
"""

import pendulum
import pytest

from availability_engine.domain.exceptions import InvalidRange
from availability_engine.domain.models import (
    AvailabilityBase,
    AvailabilityException,
    DateSpan,
    TimeInterval,
    TimeOff,
    WeekdayAnchor,
)
from availability_engine.domain.overlap import conflicts
from availability_engine.domain.recurrence import Weekly

MONDAY = pendulum.date(2025, 3, 10)


class TestTimeInterval:
    """Tests for TimeInterval."""

    def test_valid_interval(self):
        interval = TimeInterval(anchor=WeekdayAnchor(1), start_minute=540, end_minute=1020)

        assert interval.duration_minutes() == 480
        assert interval.contains_minute(540)
        assert not interval.contains_minute(1020)
        assert str(interval) == "Mon 09:00 - 17:00"

    @pytest.mark.parametrize("start, end", [(600, 600), (600, 540), (-1, 60), (0, 1441)])
    def test_invalid_minutes(self, start, end):
        with pytest.raises(InvalidRange):
            TimeInterval(anchor=WeekdayAnchor(1), start_minute=start, end_minute=end)

    def test_reversed_date_span(self):
        with pytest.raises(InvalidRange):
            DateSpan(MONDAY, pendulum.date(2025, 3, 9))


class TestAnchors:
    """One-time rules sit on dates, recurring rules on weekdays."""

    def test_one_time_base_needs_a_date(self):
        with pytest.raises(InvalidRange):
            AvailabilityBase(
                provider_id="p-1",
                interval=TimeInterval(anchor=WeekdayAnchor(1), start_minute=540, end_minute=600),
            )

    def test_recurring_time_off_needs_a_weekday(self):
        with pytest.raises(InvalidRange):
            TimeOff(
                provider_id="p-1",
                interval=TimeInterval(anchor=DateSpan.single(MONDAY), start_minute=540, end_minute=600),
                recurrence=Weekly.of(1),
            )

    def test_valid_entities_conflict_with_themselves(self):
        once = AvailabilityBase(
            provider_id="p-1",
            interval=TimeInterval(anchor=DateSpan.single(MONDAY), start_minute=540, end_minute=600),
        )
        weekly = TimeOff(
            provider_id="p-1",
            interval=TimeInterval(anchor=WeekdayAnchor(1), start_minute=540, end_minute=600),
            recurrence=Weekly.of(1),
        )

        assert conflicts(once.schedule, once.schedule)
        assert conflicts(weekly.schedule, weekly.schedule)


def test_exception_follows_its_base():
    """An exception's day scope is always its base's."""
    base = AvailabilityBase(
        id="b-1",
        provider_id="p-1",
        interval=TimeInterval(anchor=DateSpan.single(MONDAY), start_minute=540, end_minute=1020),
    )
    stale = AvailabilityException(
        base_id="b-1",
        interval=TimeInterval(
            anchor=DateSpan.single(pendulum.date(2025, 3, 3)), start_minute=720, end_minute=780
        ),
    )

    assert stale.interval_under(base) == base.interval.with_minutes(720, 780)
    assert stale.schedule_under(base).applies_on(MONDAY)
