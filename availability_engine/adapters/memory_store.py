"""
In-memory store for tests and local use without a database.
"""

import json
import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..domain.exceptions import AvailabilityError, NotFound
from ..domain.models import AvailabilityBase, Entity, EntityKind
from .rows import TABLES, entity_from_row, row_from_entity

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Dict-backed store implementing the StoreProtocol.

    Providers are only checked when a provider list is given; otherwise any
    provider id is accepted. Deleting a base cascades to its exceptions the
    way the database foreign key does.
    """

    def __init__(self, providers: Optional[Iterable[str]] = None):
        self._providers = set(providers) if providers is not None else None
        self._entities: Dict[EntityKind, Dict[str, Entity]] = {kind: {} for kind in EntityKind}

    @classmethod
    def load(cls, data_file: Path) -> "InMemoryStore":
        """
        Load entities from a JSON data file.

        Expected layout:
        {
            "providers": ["p-1"],
            "base_availability": [{...row...}],
            "availability_exceptions": [{...row...}],
            "time_off": [{...row...}]
        }

        Rows that fail to normalize are skipped with a warning.
        """
        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Data file {data_file} must contain a JSON object")

        store = cls(providers=data.get("providers"))

        for row in data.get(TABLES[EntityKind.BASE], []):
            store._load_row(EntityKind.BASE, row)
        for row in data.get(TABLES[EntityKind.TIME_OFF], []):
            store._load_row(EntityKind.TIME_OFF, row)
        for row in data.get(TABLES[EntityKind.EXCEPTION], []):
            base_id = str(row.get("base_availability_id") or row.get("base_id"))
            base = store._entities[EntityKind.BASE].get(base_id)
            if base is None:
                logger.warning("Skipping exception %s: base %s not found", row.get("id"), base_id)
                continue
            store._load_row(EntityKind.EXCEPTION, row, base=base)

        return store

    def save(self, data_file: Path) -> None:
        """Write all entities back to a JSON data file."""
        data: Dict[str, Any] = {}
        if self._providers is not None:
            data["providers"] = sorted(self._providers)
        for kind, table in TABLES.items():
            data[table] = [
                row_from_entity(entity, strict=False) for entity in self._entities[kind].values()
            ]

        with open(data_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def add_provider(self, provider_id: str) -> None:
        if self._providers is None:
            self._providers = set()
        self._providers.add(provider_id)

    async def list_by_provider(self, provider_id: str, kind: EntityKind) -> List[Entity]:
        self._require_provider(provider_id)
        kind = EntityKind(kind)

        if kind is EntityKind.EXCEPTION:
            base_ids = {
                base.id for base in self._entities[EntityKind.BASE].values()
                if base.provider_id == provider_id
            }
            return [
                exception for exception in self._entities[kind].values()
                if exception.base_id in base_ids
            ]

        return [
            entity for entity in self._entities[kind].values()
            if entity.provider_id == provider_id
        ]

    async def insert(self, entity: Entity) -> Entity:
        if entity.kind is EntityKind.EXCEPTION:
            if entity.base_id not in self._entities[EntityKind.BASE]:
                raise NotFound(f"Base availability not found: {entity.base_id}")
        else:
            self._require_provider(entity.provider_id)

        stored = replace(entity, id=entity.id or str(uuid.uuid4()))
        self._entities[stored.kind][stored.id] = stored
        return stored

    async def update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any]) -> Entity:
        current = self._get(kind, entity_id)
        updated = replace(current, **dict(patch))
        self._entities[updated.kind][entity_id] = updated
        return updated

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        entity = self._get(kind, entity_id)
        del self._entities[entity.kind][entity_id]

        if isinstance(entity, AvailabilityBase):
            orphaned = [
                exception_id
                for exception_id, exception in self._entities[EntityKind.EXCEPTION].items()
                if exception.base_id == entity_id
            ]
            for exception_id in orphaned:
                del self._entities[EntityKind.EXCEPTION][exception_id]

    def _get(self, kind: EntityKind, entity_id: str) -> Entity:
        entity = self._entities[EntityKind(kind)].get(entity_id)
        if entity is None:
            raise NotFound(f"{EntityKind(kind).value} not found: {entity_id}")
        return entity

    def _require_provider(self, provider_id: str) -> None:
        if self._providers is not None and provider_id not in self._providers:
            raise NotFound(f"Provider not found: {provider_id}")

    def _load_row(
        self,
        kind: EntityKind,
        row: Mapping[str, Any],
        base: Optional[AvailabilityBase] = None,
    ) -> None:
        try:
            entity = entity_from_row(kind, row, base=base)
        except (AvailabilityError, KeyError) as exc:
            logger.warning("Skipping %s row %s: %s", kind.value, row.get("id"), exc)
            return

        stored = replace(entity, id=entity.id or str(uuid.uuid4()))
        self._entities[kind][stored.id] = stored
