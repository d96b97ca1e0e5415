"""
Hierarchical availability resolution.

Pure domain logic: the resolver is handed a provider's bases, exceptions
and time-off entries and composes them into a verdict. No store access.

Precedence, lowest to highest:
1. Base availability opens a window
2. Exceptions carve holes into their own base only
3. Time-off closes any matching window, regardless of bases or exceptions
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Sequence, Tuple

from pendulum import Date, DateTime

from .models import (
    AvailabilityBase,
    AvailabilityException,
    BaseWithExceptions,
    DateSpan,
    TimeInterval,
    TimeOff,
)
from .normalize import date_of, minute_of_day

logger = logging.getLogger(__name__)

MinuteRange = Tuple[int, int]


class HierarchicalResolver:
    """
    Composes base rules, their exceptions and time-off into availability.

    Algorithm for a calendar day:
    1. Collect every base whose recurrence or date span covers the day
    2. Subtract each base's own exceptions from its window
    3. Union what is left across bases
    4. Subtract every matching time-off window
    5. Merge adjacent or overlapping pieces, ordered by start
    """

    def __init__(
        self,
        bases: Iterable[AvailabilityBase],
        exceptions: Iterable[AvailabilityException] = (),
        time_off: Iterable[TimeOff] = (),
    ):
        self.bases = list(bases)
        self.time_off = list(time_off)
        self._exceptions_by_base: Dict[str, List[AvailabilityException]] = {}
        for exception in exceptions:
            self._exceptions_by_base.setdefault(exception.base_id, []).append(exception)

    def exceptions_for(self, base: AvailabilityBase) -> List[AvailabilityException]:
        return list(self._exceptions_by_base.get(base.id, []))

    def is_available(self, instant: DateTime) -> bool:
        """
        Decide whether the provider is available at an instant.

        Args:
            instant: The moment to check (wall-clock, provider's own zone)

        Returns:
            True if some covering base is open at the instant and no
            exception of that base or matching time-off closes it
        """
        day = date_of(instant)
        minute = minute_of_day(instant)

        covering = [
            base for base in self.bases
            if base.schedule.applies_on(day) and base.interval.contains_minute(minute)
        ]

        if not covering:
            logger.debug("No base covers %s", instant)
            return False

        open_bases = [
            base for base in covering
            if not self._carved_out(base, day, minute)
        ]

        if not open_bases:
            logger.debug("All covering bases carved out at %s", instant)
            return False

        # Time-off is checked last and always wins
        for entry in self.time_off:
            if entry.schedule.applies_on(day) and entry.interval.contains_minute(minute):
                logger.debug("Time-off %s blocks %s", entry.id, instant)
                return False

        return True

    def list_availability(self, day: Date) -> List[TimeInterval]:
        """
        Produce the merged open intervals for a calendar day.

        Example:
        Base: 09:00 - 17:00, exception 12:00 - 13:00
        Time-off: 16:00 - 18:00
        Result: [09:00-12:00, 13:00-16:00]
        """
        open_ranges: List[MinuteRange] = []

        for base in self.bases:
            if not base.schedule.applies_on(day):
                continue

            holes = [
                (exception.interval.start_minute, exception.interval.end_minute)
                for exception in self.exceptions_for(base)
                if exception.schedule_under(base).applies_on(day)
            ]
            window = (base.interval.start_minute, base.interval.end_minute)
            open_ranges.extend(self._subtract(window, holes))

        merged = self._merge(open_ranges)

        blocked = [
            (entry.interval.start_minute, entry.interval.end_minute)
            for entry in self.time_off
            if entry.schedule.applies_on(day)
        ]

        result: List[MinuteRange] = []
        for window in merged:
            result.extend(self._subtract(window, blocked))

        anchor = DateSpan.single(day)
        return [
            TimeInterval(anchor=anchor, start_minute=start, end_minute=end)
            for start, end in self._merge(result)
        ]

    def hierarchical_view(self) -> List[BaseWithExceptions]:
        """
        Group each base with its exceptions.

        Recurring bases come first ordered by weekday, then one-time bases
        by date, each then by start time. Exceptions are reported on their
        base's day scope.
        """
        ordered = sorted(self.bases, key=self._base_sort_key)
        return [
            BaseWithExceptions(
                base=base,
                exceptions=sorted(
                    (
                        replace(exception, interval=exception.interval_under(base))
                        for exception in self.exceptions_for(base)
                    ),
                    key=lambda exception: exception.interval.start_minute,
                ),
            )
            for base in ordered
        ]

    def _carved_out(self, base: AvailabilityBase, day: Date, minute: int) -> bool:
        for exception in self.exceptions_for(base):
            if (
                exception.schedule_under(base).applies_on(day)
                and exception.interval.contains_minute(minute)
            ):
                return True
        return False

    @staticmethod
    def _base_sort_key(base: AvailabilityBase):
        anchor = base.interval.anchor
        if base.recurrence is not None:
            return (0, min(base.recurrence.days), "", base.interval.start_minute)
        if isinstance(anchor, DateSpan):
            return (1, 0, anchor.start_date.isoformat(), base.interval.start_minute)
        return (1, 0, "", base.interval.start_minute)

    @staticmethod
    def _subtract(window: MinuteRange, cuts: Sequence[MinuteRange]) -> List[MinuteRange]:
        """
        Subtract cut ranges from a window, yielding what stays open.

        Example:
        Window: 09:00 - 17:00
        Cuts: [10:00-11:00, 14:00-15:00]
        Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
        """
        window_start, window_end = window
        pieces: List[MinuteRange] = []
        current_start = window_start

        for cut_start, cut_end in sorted(cuts):
            # Ignore cuts that miss the window entirely
            if cut_end <= window_start or cut_start >= window_end:
                continue

            clipped_start = max(cut_start, window_start)
            clipped_end = min(cut_end, window_end)

            if current_start < clipped_start:
                pieces.append((current_start, clipped_start))

            current_start = max(current_start, clipped_end)

        if current_start < window_end:
            pieces.append((current_start, window_end))

        return pieces

    @staticmethod
    def _merge(ranges: Sequence[MinuteRange]) -> List[MinuteRange]:
        """
        Merge overlapping or adjacent ranges.

        Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
        """
        if not ranges:
            return []

        sorted_ranges = sorted(ranges)
        merged: List[MinuteRange] = [sorted_ranges[0]]

        for start, end in sorted_ranges[1:]:
            last_start, last_end = merged[-1]
            if start <= last_end:
                merged[-1] = (last_start, max(last_end, end))
            else:
                merged.append((start, end))

        return merged


def is_available(
    instant: DateTime,
    bases: Iterable[AvailabilityBase],
    exceptions: Iterable[AvailabilityException] = (),
    time_off: Iterable[TimeOff] = (),
) -> bool:
    return HierarchicalResolver(bases, exceptions, time_off).is_available(instant)


def list_availability(
    day: Date,
    bases: Iterable[AvailabilityBase],
    exceptions: Iterable[AvailabilityException] = (),
    time_off: Iterable[TimeOff] = (),
) -> List[TimeInterval]:
    return HierarchicalResolver(bases, exceptions, time_off).list_availability(day)


def hierarchical_view(
    bases: Iterable[AvailabilityBase],
    exceptions: Iterable[AvailabilityException] = (),
) -> List[BaseWithExceptions]:
    return HierarchicalResolver(bases, exceptions).hierarchical_view()
