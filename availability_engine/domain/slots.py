"""
Splitting open intervals into fixed-length bookable slots.
"""

from typing import Iterable, List, Optional

from .exceptions import InvalidInput
from .models import TimeInterval


def split_into_slots(
    intervals: Iterable[TimeInterval],
    duration_minutes: int = 30,
    step_minutes: Optional[int] = None,
) -> List[TimeInterval]:
    """
    Cut open intervals into slots that fit completely inside them.

    Args:
        intervals: Open intervals, e.g. from HierarchicalResolver.list_availability
        duration_minutes: Length of each slot
        step_minutes: Distance between slot starts, defaults to duration_minutes

    Returns:
        Slots ordered by start time
    """
    if duration_minutes <= 0:
        raise InvalidInput(f"Slot duration must be positive, got {duration_minutes}")

    step = step_minutes if step_minutes is not None else duration_minutes
    if step <= 0:
        raise InvalidInput(f"Slot step must be positive, got {step}")

    slots: List[TimeInterval] = []
    for interval in sorted(intervals, key=lambda i: i.start_minute):
        current = interval.start_minute
        while current + duration_minutes <= interval.end_minute:
            slots.append(interval.with_minutes(current, current + duration_minutes))
            current += step

    return slots
