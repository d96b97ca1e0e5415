"""
Write-path gate: decides whether a candidate entity may be stored.

The guard is a pure decision function. Persisting an accepted candidate is
the caller's job, and the caller must hold the per-(provider, kind) write
lock while it reads, decides and writes.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from .exceptions import InvalidInput, InvalidRange
from .models import AvailabilityBase, AvailabilityException, Entity, EntityKind, Schedule
from .normalize import format_minutes
from .overlap import conflicts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accepted:
    """No existing entity conflicts with the candidate."""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Conflict:
    """The candidate overlaps the entity with ``with_id``."""
    with_id: str

    @property
    def ok(self) -> bool:
        return False


GuardResult = Union[Accepted, Conflict]


def try_insert(
    kind: EntityKind,
    candidate: Entity,
    existing: Iterable[Entity],
    base: Optional[AvailabilityBase] = None,
) -> GuardResult:
    """
    Check a candidate against every existing entity of the same kind.

    Args:
        kind: Kind of the candidate
        candidate: Entity about to be inserted or updated
        existing: Stored entities of the same kind and provider
        base: Owning base, required when kind is EXCEPTION

    Returns:
        Conflict for the first overlapping entity, Accepted otherwise

    Raises:
        InvalidInput: If the candidate does not match kind, or base is missing
        InvalidRange: If an exception is not contained in its base
    """
    kind = EntityKind(kind)
    if candidate.kind != kind:
        raise InvalidInput(f"Candidate is a {candidate.kind.value}, not a {kind.value}")

    if kind is EntityKind.EXCEPTION:
        return _check_exception(candidate, existing, base)

    candidate_schedule = candidate.schedule
    for entry in existing:
        if entry.kind != kind or _is_same(candidate, entry):
            continue
        if conflicts(candidate_schedule, entry.schedule):
            logger.debug("%s %s conflicts with %s", kind.value, candidate.id, entry.id)
            return Conflict(with_id=entry.id)

    return Accepted()


def _check_exception(
    candidate: AvailabilityException,
    existing: Iterable[Entity],
    base: Optional[AvailabilityBase],
) -> GuardResult:
    if base is None:
        raise InvalidInput("An exception can only be checked against its base")

    if candidate.base_id != base.id:
        raise InvalidInput(f"Exception belongs to base {candidate.base_id}, not {base.id}")

    if not base.interval.contains(candidate.interval_under(base)):
        raise InvalidRange(
            "Exception must be within base availability time range "
            f"({format_minutes(base.interval.start_minute)}-"
            f"{format_minutes(base.interval.end_minute)})"
        )

    candidate_schedule: Schedule = candidate.schedule_under(base)
    for entry in existing:
        if entry.kind != EntityKind.EXCEPTION or entry.base_id != base.id:
            continue
        if _is_same(candidate, entry):
            continue
        if conflicts(candidate_schedule, entry.schedule_under(base)):
            logger.debug("Exception %s conflicts with %s", candidate.id, entry.id)
            return Conflict(with_id=entry.id)

    return Accepted()


def _is_same(candidate: Entity, entry: Entity) -> bool:
    return candidate.id is not None and candidate.id == entry.id
