"""
Tests for hierarchical availability resolution.
"""

import pendulum

from availability_engine.domain.models import (
    AvailabilityBase,
    AvailabilityException,
    DateSpan,
    TimeInterval,
    TimeOff,
    WeekdayAnchor,
)
from availability_engine.domain.recurrence import Weekly
from availability_engine.domain.resolver import (
    HierarchicalResolver,
    hierarchical_view,
    is_available,
    list_availability,
)

MONDAY = pendulum.date(2025, 3, 10)
FRIDAY = pendulum.date(2025, 3, 14)


def _weekly_base(base_id, weekday, start, end):
    return AvailabilityBase(
        id=base_id,
        provider_id="p-1",
        interval=TimeInterval(anchor=WeekdayAnchor(weekday), start_minute=start, end_minute=end),
        recurrence=Weekly.of(weekday),
    )


def _dated_base(base_id, day, start, end):
    return AvailabilityBase(
        id=base_id,
        provider_id="p-1",
        interval=TimeInterval(anchor=DateSpan.single(day), start_minute=start, end_minute=end),
    )


def _exception(exception_id, base, start, end):
    return AvailabilityException(
        id=exception_id,
        base_id=base.id,
        interval=base.interval.with_minutes(start, end),
    )


def _at(day, hour, minute=0):
    return pendulum.datetime(day.year, day.month, day.day, hour, minute)


def _windows(intervals):
    return [(interval.start_minute, interval.end_minute) for interval in intervals]


class TestIsAvailable:
    """Tests for point-in-time availability."""

    def setup_method(self):
        self.base = _weekly_base("b-1", 1, 540, 1020)  # Mon 09:00-17:00
        self.lunch = _exception("e-1", self.base, 720, 780)  # 12:00-13:00

    def test_exception_carves_out_its_base(self):
        resolver = HierarchicalResolver(bases=[self.base], exceptions=[self.lunch])

        assert resolver.is_available(_at(MONDAY, 11, 30))
        assert not resolver.is_available(_at(MONDAY, 12, 30))

    def test_exception_end_is_exclusive(self):
        resolver = HierarchicalResolver(bases=[self.base], exceptions=[self.lunch])

        assert not resolver.is_available(_at(MONDAY, 12, 0))
        assert resolver.is_available(_at(MONDAY, 13, 0))

    def test_uncovered_instant_is_unavailable(self):
        resolver = HierarchicalResolver(bases=[self.base])

        assert not resolver.is_available(_at(MONDAY, 8, 59))
        assert not resolver.is_available(_at(MONDAY, 17, 0))
        assert not resolver.is_available(_at(pendulum.date(2025, 3, 11), 10))

    def test_no_bases_means_never_available(self):
        resolver = HierarchicalResolver(bases=[])
        assert not resolver.is_available(_at(MONDAY, 10))

    def test_time_off_overrides_base(self):
        time_off = TimeOff(
            id="t-1",
            provider_id="p-1",
            interval=TimeInterval(anchor=DateSpan.single(MONDAY), start_minute=600, end_minute=660),
        )
        resolver = HierarchicalResolver(bases=[self.base], time_off=[time_off])

        assert not resolver.is_available(_at(MONDAY, 10, 30))
        assert resolver.is_available(_at(MONDAY, 11))

    def test_exception_only_affects_its_own_base(self):
        other = _dated_base("b-2", MONDAY, 720, 780)
        resolver = HierarchicalResolver(bases=[self.base, other], exceptions=[self.lunch])

        assert resolver.is_available(_at(MONDAY, 12, 30))

    def test_recurring_all_day_time_off(self):
        friday_base = _weekly_base("b-3", 5, 540, 1020)
        every_friday_off = TimeOff(
            id="t-2",
            provider_id="p-1",
            interval=TimeInterval(anchor=WeekdayAnchor(5), start_minute=0, end_minute=1440),
            recurrence=Weekly.of(5),
        )
        resolver = HierarchicalResolver(bases=[friday_base], time_off=[every_friday_off])

        assert not resolver.is_available(_at(FRIDAY, 10))
        assert resolver.list_availability(FRIDAY) == []


class TestListAvailability:
    """Tests for per-day interval listing."""

    def test_base_minus_exception_minus_time_off(self):
        base = _weekly_base("b-1", 1, 540, 1020)
        time_off = TimeOff(
            id="t-1",
            provider_id="p-1",
            interval=TimeInterval(anchor=DateSpan.single(MONDAY), start_minute=960, end_minute=1080),
        )
        resolver = HierarchicalResolver(
            bases=[base],
            exceptions=[_exception("e-1", base, 720, 780)],
            time_off=[time_off],
        )

        result = resolver.list_availability(MONDAY)

        assert _windows(result) == [(540, 720), (780, 960)]
        assert all(interval.anchor == DateSpan.single(MONDAY) for interval in result)

    def test_overlapping_bases_are_merged(self):
        resolver = HierarchicalResolver(bases=[
            _weekly_base("b-1", 1, 540, 720),
            _dated_base("b-2", MONDAY, 660, 840),
            _dated_base("b-3", MONDAY, 840, 900),
        ])

        assert _windows(resolver.list_availability(MONDAY)) == [(540, 900)]

    def test_day_without_bases_is_empty(self):
        resolver = HierarchicalResolver(bases=[_weekly_base("b-1", 1, 540, 1020)])
        assert resolver.list_availability(pendulum.date(2025, 3, 11)) == []

    def test_every_listed_minute_is_available(self):
        base = _weekly_base("b-1", 1, 540, 1020)
        resolver = HierarchicalResolver(
            bases=[base],
            exceptions=[_exception("e-1", base, 600, 630), _exception("e-2", base, 900, 960)],
        )

        for interval in resolver.list_availability(MONDAY):
            for minute in range(interval.start_minute, interval.end_minute, 15):
                assert resolver.is_available(_at(MONDAY, minute // 60, minute % 60))


def test_hierarchical_view_orders_bases_and_exceptions():
    """Recurring bases come first by weekday, then one-time bases by date."""
    tuesday = _weekly_base("b-tue", 2, 540, 1020)
    monday = _weekly_base("b-mon", 1, 540, 1020)
    once = _dated_base("b-once", MONDAY, 1080, 1200)
    late = _exception("e-late", monday, 900, 960)
    early = _exception("e-early", monday, 600, 660)

    resolver = HierarchicalResolver(bases=[once, tuesday, monday], exceptions=[late, early])
    view = resolver.hierarchical_view()

    assert [entry.base.id for entry in view] == ["b-mon", "b-tue", "b-once"]
    assert [exception.id for exception in view[0].exceptions] == ["e-early", "e-late"]
    assert view[1].exceptions == []


def test_module_level_helpers_match_resolver():
    """The functional entry points delegate to HierarchicalResolver."""
    base = _weekly_base("b-1", 1, 540, 1020)
    lunch = _exception("e-1", base, 720, 780)

    assert is_available(_at(MONDAY, 11, 30), [base], [lunch])
    assert not is_available(_at(MONDAY, 12, 30), [base], [lunch])
    assert _windows(list_availability(MONDAY, [base], [lunch])) == [(540, 720), (780, 1020)]
    assert hierarchical_view([base], [lunch])[0].exceptions == [lunch]
