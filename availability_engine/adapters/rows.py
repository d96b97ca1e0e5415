"""
Conversion between persisted rows and domain entities.

Rows may arrive in any of the legacy shapes; they are normalized here so
nothing past the store boundary branches on the source schema. Rows are
written back in the column layout of each table:

- ``base_availability``: ``day_of_week``, ``HH:MM:SS`` times, ``is_recurring``
  and ``specific_date``
- ``time_off``: the same plus ``start_date``/``end_date`` and ``is_all_day``
- ``availability_exceptions``: ``HH:MM:SS`` times only (``24:00:00`` closes
  the day)
"""

from typing import Any, Dict, Mapping, Optional

from ..domain.exceptions import InvalidInput
from ..domain.models import (
    MINUTES_PER_DAY,
    AvailabilityBase,
    AvailabilityException,
    Entity,
    EntityKind,
    TimeOff,
)
from ..domain.normalize import format_minutes, normalize_exception, normalize_rule
from ..domain.recurrence import from_rule, weekday_of

TABLES: Dict[EntityKind, str] = {
    EntityKind.BASE: "base_availability",
    EntityKind.EXCEPTION: "availability_exceptions",
    EntityKind.TIME_OFF: "time_off",
}

PROVIDER_COLUMN = "therapist_id"
BASE_COLUMN = "base_availability_id"


def entity_from_row(
    kind: EntityKind,
    row: Mapping[str, Any],
    base: Optional[AvailabilityBase] = None,
) -> Entity:
    """
    Build a domain entity from a stored row.

    Args:
        kind: Which table the row comes from
        row: The raw row, in any legacy shape
        base: Owning base, required for exception rows

    Raises:
        MalformedTime: If the row's times do not parse
        InvalidInput: If an exception row comes without its base
    """
    kind = EntityKind(kind)
    entity_id = str(row["id"]) if row.get("id") is not None else None

    if kind is EntityKind.EXCEPTION:
        if base is None:
            raise InvalidInput("Exception rows need their base to be normalized")
        return AvailabilityException(
            id=entity_id,
            base_id=str(row.get(BASE_COLUMN) or row.get("base_id") or base.id),
            interval=normalize_exception(row, base.interval),
            reason=row.get("reason") or "",
        )

    interval, recurrence = normalize_rule(row)
    provider_id = str(row.get(PROVIDER_COLUMN) or row.get("provider_id") or "")

    if kind is EntityKind.BASE:
        return AvailabilityBase(
            id=entity_id,
            provider_id=provider_id,
            interval=interval,
            recurrence=recurrence,
        )

    return TimeOff(
        id=entity_id,
        provider_id=provider_id,
        interval=interval,
        recurrence=recurrence,
        reason=row.get("reason") or "",
    )


def row_from_entity(entity: Entity, strict: bool = True) -> Dict[str, Any]:
    """
    Serialize an entity into the column layout of its table.

    Args:
        entity: Entity to write
        strict: Reject rules the table columns cannot hold (a rule on
            several weekdays, a base over a date range). Without it they
            are written with an extra ``recurrence`` token or date range,
            as kept in the JSON data file.

    Raises:
        InvalidInput: In strict mode, for a rule the table cannot hold
    """
    row: Dict[str, Any] = {}
    if entity.id is not None:
        row["id"] = entity.id

    if isinstance(entity, AvailabilityException):
        row[BASE_COLUMN] = entity.base_id
        row["start_time"] = _time_column(entity.interval.start_minute)
        row["end_time"] = _time_column(entity.interval.end_minute)
        row["reason"] = entity.reason or None
        return row

    row[PROVIDER_COLUMN] = entity.provider_id
    row["start_time"] = _time_column(entity.interval.start_minute)
    row["end_time"] = _time_column(entity.interval.end_minute)
    row.update(_day_columns(entity, strict))

    if isinstance(entity, TimeOff):
        row["is_all_day"] = (
            entity.interval.start_minute == 0 and entity.interval.end_minute == MINUTES_PER_DAY
        )
        row["reason"] = entity.reason or None
    return row


def _day_columns(entity: Entity, strict: bool) -> Dict[str, Any]:
    table = TABLES[entity.kind]
    anchor = entity.interval.anchor

    if entity.recurrence is not None:
        days = sorted(entity.recurrence.days)
        if len(days) == 1:
            return {"day_of_week": days[0], "is_recurring": True, "specific_date": None}
        if strict:
            raise InvalidInput(
                f"{table} holds one weekday per row, got {from_rule(entity.recurrence)}"
            )
        return {
            "day_of_week": anchor.weekday,
            "is_recurring": True,
            "specific_date": None,
            "recurrence": from_rule(entity.recurrence),
        }

    columns: Dict[str, Any] = {
        "day_of_week": weekday_of(anchor.start_date),
        "is_recurring": False,
        "specific_date": anchor.start_date.isoformat(),
    }

    if isinstance(entity, TimeOff) or anchor.end_date != anchor.start_date:
        if strict and not isinstance(entity, TimeOff):
            raise InvalidInput(f"{table} holds one date per row, got {anchor}")
        columns["start_date"] = anchor.start_date.isoformat()
        columns["end_date"] = anchor.end_date.isoformat()

    return columns


def _time_column(minute: int) -> str:
    """Format a minute of day for a ``TIME`` column (1440 as 24:00:00)."""
    return f"{format_minutes(minute)}:00"
