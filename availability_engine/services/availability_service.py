"""
Application service for availability reads and guarded writes.

The service fetches a provider's entities through an injected store and
delegates every decision to the domain layer: ``HierarchicalResolver`` for
reads and the conflict guard for writes. Check-then-write sequences run
under a per-(provider, kind) lock, and every store call is bounded by a
time budget so a slow store surfaces as ``StoreTimeout`` instead of as
"no conflict".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Protocol, TypeVar

from pendulum import Date, DateTime

from ..domain.conflict_guard import Conflict, GuardResult, try_insert
from ..domain.exceptions import ConflictError, InvalidRange, NotFound, StoreTimeout
from ..domain.models import (
    AvailabilityBase,
    AvailabilityException,
    BaseWithExceptions,
    Entity,
    EntityKind,
    TimeInterval,
    TimeOff,
)
from ..domain.normalize import normalize_exception, normalize_rule
from ..domain.resolver import HierarchicalResolver
from ..domain.slots import split_into_slots
from .locks import KeyedLocks

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STORE_TIMEOUT_SECONDS = 8.0


class StoreProtocol(Protocol):
    """Protocol describing the store behaviour needed by the service."""

    async def list_by_provider(self, provider_id: str, kind: EntityKind) -> List[Entity]:
        """Return all entities of a kind owned by the provider."""

    async def insert(self, entity: Entity) -> Entity:
        """Persist a new entity and return it with its id assigned."""

    async def update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any]) -> Entity:
        """Apply a patch to a stored entity and return the result."""

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        """Delete an entity; deleting a base also deletes its exceptions."""


class AvailabilityService:
    """
    Orchestrates store access, availability resolution and the conflict guard.

    Dependency inversion toward a protocol makes it easy to plug in the REST
    store or the in-memory store used by tests and the CLI.
    """

    def __init__(
        self,
        store: StoreProtocol,
        timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS,
        locks: Optional[KeyedLocks] = None,
        slot_minutes: int = 30,
    ) -> None:
        self._store = store
        self._timeout_seconds = timeout_seconds
        self._locks = locks or KeyedLocks()
        self._slot_minutes = slot_minutes

    # Reads

    async def load_resolver(self, provider_id: str) -> HierarchicalResolver:
        """Fetch a provider's bases, exceptions and time-off into a resolver."""
        bases, exceptions, time_off = await asyncio.gather(
            self._list(provider_id, EntityKind.BASE),
            self._list(provider_id, EntityKind.EXCEPTION),
            self._list(provider_id, EntityKind.TIME_OFF),
        )
        return HierarchicalResolver(bases=bases, exceptions=exceptions, time_off=time_off)

    async def is_available(self, provider_id: str, instant: DateTime) -> bool:
        resolver = await self.load_resolver(provider_id)
        return resolver.is_available(instant)

    async def list_availability(self, provider_id: str, day: Date) -> List[TimeInterval]:
        resolver = await self.load_resolver(provider_id)
        return resolver.list_availability(day)

    async def list_slots(
        self,
        provider_id: str,
        day: Date,
        duration_minutes: Optional[int] = None,
    ) -> List[TimeInterval]:
        """Split a day's open intervals into bookable slots."""
        intervals = await self.list_availability(provider_id, day)
        return split_into_slots(intervals, duration_minutes or self._slot_minutes)

    async def hierarchical_view(self, provider_id: str) -> List[BaseWithExceptions]:
        resolver = await self.load_resolver(provider_id)
        return resolver.hierarchical_view()

    # Base availability

    async def check_base(self, provider_id: str, raw: Mapping[str, Any]) -> GuardResult:
        """Dry-run the guard for a base without writing anything."""
        candidate = self._build_base(provider_id, raw)
        existing = await self._list(provider_id, EntityKind.BASE)
        return try_insert(EntityKind.BASE, candidate, existing)

    async def add_base(self, provider_id: str, raw: Mapping[str, Any]) -> AvailabilityBase:
        candidate = self._build_base(provider_id, raw)

        async with self._locks.for_provider(provider_id, EntityKind.BASE):
            existing = await self._list(provider_id, EntityKind.BASE)
            self._raise_on_conflict(EntityKind.BASE, try_insert(EntityKind.BASE, candidate, existing))
            created = await self._call(self._store.insert(candidate))

        logger.info("Added base availability %s for provider %s", created.id, provider_id)
        return created

    async def update_base(
        self,
        provider_id: str,
        base_id: str,
        raw: Mapping[str, Any],
    ) -> AvailabilityBase:
        """
        Replace a base's interval and recurrence.

        Its exceptions must still fit the new window. They take their day
        scope from the base, so only the base row is written.
        """
        interval, recurrence = normalize_rule(raw)

        async with self._locks.for_provider(provider_id, EntityKind.BASE):
            async with self._locks.for_provider(provider_id, EntityKind.EXCEPTION):
                existing = await self._list(provider_id, EntityKind.BASE)
                current = _find(existing, base_id, "Base availability")
                candidate = replace(current, interval=interval, recurrence=recurrence)
                self._raise_on_conflict(
                    EntityKind.BASE, try_insert(EntityKind.BASE, candidate, existing)
                )

                for exception in await self._list(provider_id, EntityKind.EXCEPTION):
                    if exception.base_id != base_id:
                        continue
                    if not interval.contains(exception.interval_under(candidate)):
                        raise InvalidRange(
                            f"Exception {exception.id} would fall outside the updated base"
                        )

                updated = await self._call(
                    self._store.update(
                        EntityKind.BASE,
                        base_id,
                        {"interval": interval, "recurrence": recurrence},
                    )
                )

        logger.info("Updated base availability %s for provider %s", base_id, provider_id)
        return updated

    async def delete_base(self, provider_id: str, base_id: str) -> None:
        """Delete a base; the store cascades the delete to its exceptions."""
        async with self._locks.for_provider(provider_id, EntityKind.BASE):
            existing = await self._list(provider_id, EntityKind.BASE)
            _find(existing, base_id, "Base availability")
            await self._call(self._store.delete(EntityKind.BASE, base_id))

        logger.info("Deleted base availability %s for provider %s", base_id, provider_id)

    # Exceptions

    async def add_exception(
        self,
        provider_id: str,
        base_id: str,
        raw: Mapping[str, Any],
    ) -> AvailabilityException:
        async with self._locks.for_provider(provider_id, EntityKind.EXCEPTION):
            base = _find(
                await self._list(provider_id, EntityKind.BASE), base_id, "Base availability"
            )
            candidate = AvailabilityException(
                base_id=base.id,
                interval=normalize_exception(raw, base.interval),
                reason=str(raw.get("reason") or ""),
            )
            existing = await self._list(provider_id, EntityKind.EXCEPTION)
            self._raise_on_conflict(
                EntityKind.EXCEPTION,
                try_insert(EntityKind.EXCEPTION, candidate, existing, base=base),
            )
            created = await self._call(self._store.insert(candidate))

        logger.info("Added exception %s to base %s", created.id, base_id)
        return created

    async def update_exception(
        self,
        provider_id: str,
        exception_id: str,
        raw: Mapping[str, Any],
    ) -> AvailabilityException:
        async with self._locks.for_provider(provider_id, EntityKind.EXCEPTION):
            existing = await self._list(provider_id, EntityKind.EXCEPTION)
            current = _find(existing, exception_id, "Exception")
            base = _find(
                await self._list(provider_id, EntityKind.BASE),
                current.base_id,
                "Base availability",
            )
            candidate = replace(
                current,
                interval=normalize_exception(raw, base.interval),
                reason=str(raw.get("reason", current.reason) or ""),
            )
            self._raise_on_conflict(
                EntityKind.EXCEPTION,
                try_insert(EntityKind.EXCEPTION, candidate, existing, base=base),
            )
            updated = await self._call(
                self._store.update(
                    EntityKind.EXCEPTION,
                    exception_id,
                    {"interval": candidate.interval, "reason": candidate.reason},
                )
            )

        logger.info("Updated exception %s", exception_id)
        return updated

    async def delete_exception(self, provider_id: str, exception_id: str) -> None:
        async with self._locks.for_provider(provider_id, EntityKind.EXCEPTION):
            existing = await self._list(provider_id, EntityKind.EXCEPTION)
            _find(existing, exception_id, "Exception")
            await self._call(self._store.delete(EntityKind.EXCEPTION, exception_id))

        logger.info("Deleted exception %s", exception_id)

    # Time-off

    async def check_time_off(self, provider_id: str, raw: Mapping[str, Any]) -> GuardResult:
        """Dry-run the guard for a time-off entry without writing anything."""
        candidate = self._build_time_off(provider_id, raw)
        existing = await self._list(provider_id, EntityKind.TIME_OFF)
        return try_insert(EntityKind.TIME_OFF, candidate, existing)

    async def add_time_off(self, provider_id: str, raw: Mapping[str, Any]) -> TimeOff:
        candidate = self._build_time_off(provider_id, raw)

        async with self._locks.for_provider(provider_id, EntityKind.TIME_OFF):
            existing = await self._list(provider_id, EntityKind.TIME_OFF)
            self._raise_on_conflict(
                EntityKind.TIME_OFF, try_insert(EntityKind.TIME_OFF, candidate, existing)
            )
            created = await self._call(self._store.insert(candidate))

        logger.info("Added time-off %s for provider %s", created.id, provider_id)
        return created

    async def update_time_off(
        self,
        provider_id: str,
        time_off_id: str,
        raw: Mapping[str, Any],
    ) -> TimeOff:
        interval, recurrence = normalize_rule(raw)

        async with self._locks.for_provider(provider_id, EntityKind.TIME_OFF):
            existing = await self._list(provider_id, EntityKind.TIME_OFF)
            current = _find(existing, time_off_id, "Time-off")
            candidate = replace(
                current,
                interval=interval,
                recurrence=recurrence,
                reason=str(raw.get("reason", current.reason) or ""),
            )
            self._raise_on_conflict(
                EntityKind.TIME_OFF, try_insert(EntityKind.TIME_OFF, candidate, existing)
            )
            updated = await self._call(
                self._store.update(
                    EntityKind.TIME_OFF,
                    time_off_id,
                    {
                        "interval": candidate.interval,
                        "recurrence": candidate.recurrence,
                        "reason": candidate.reason,
                    },
                )
            )

        logger.info("Updated time-off %s for provider %s", time_off_id, provider_id)
        return updated

    async def delete_time_off(self, provider_id: str, time_off_id: str) -> None:
        async with self._locks.for_provider(provider_id, EntityKind.TIME_OFF):
            existing = await self._list(provider_id, EntityKind.TIME_OFF)
            _find(existing, time_off_id, "Time-off")
            await self._call(self._store.delete(EntityKind.TIME_OFF, time_off_id))

        logger.info("Deleted time-off %s for provider %s", time_off_id, provider_id)

    # Helpers

    @staticmethod
    def _build_base(provider_id: str, raw: Mapping[str, Any]) -> AvailabilityBase:
        interval, recurrence = normalize_rule(raw)
        return AvailabilityBase(provider_id=provider_id, interval=interval, recurrence=recurrence)

    @staticmethod
    def _build_time_off(provider_id: str, raw: Mapping[str, Any]) -> TimeOff:
        interval, recurrence = normalize_rule(raw)
        return TimeOff(
            provider_id=provider_id,
            interval=interval,
            recurrence=recurrence,
            reason=str(raw.get("reason") or ""),
        )

    @staticmethod
    def _raise_on_conflict(kind: EntityKind, result: GuardResult) -> None:
        if isinstance(result, Conflict):
            logger.warning("Rejected %s: overlaps %s", kind.value, result.with_id)
            raise ConflictError(with_id=result.with_id, kind=kind.value)

    async def _list(self, provider_id: str, kind: EntityKind) -> List[Entity]:
        return list(await self._call(self._store.list_by_provider(provider_id, kind)))

    async def _call(self, awaitable: Awaitable[T]) -> T:
        """Run a store call within the time budget."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning("Store call exceeded %.1fs budget", self._timeout_seconds)
            raise StoreTimeout(
                f"Store did not answer within {self._timeout_seconds:g} seconds"
            ) from exc


def _find(entities: List[Entity], entity_id: str, label: str) -> Entity:
    by_id: Dict[str, Entity] = {entity.id: entity for entity in entities}
    entity = by_id.get(entity_id)
    if entity is None:
        raise NotFound(f"{label} not found: {entity_id}")
    return entity
