"""
Domain layer - Pure availability logic without external dependencies.
"""

from .conflict_guard import Accepted, Conflict, try_insert
from .models import (
    AvailabilityBase,
    AvailabilityException,
    DateSpan,
    EntityKind,
    TimeInterval,
    TimeOff,
    WeekdayAnchor,
)
from .overlap import conflicts
from .recurrence import Weekly
from .resolver import HierarchicalResolver

__all__ = [
    "Accepted",
    "AvailabilityBase",
    "AvailabilityException",
    "Conflict",
    "DateSpan",
    "EntityKind",
    "HierarchicalResolver",
    "TimeInterval",
    "TimeOff",
    "WeekdayAnchor",
    "Weekly",
    "conflicts",
    "try_insert",
]
