"""
PostgREST-style HTTP store for the availability tables.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

import requests

from ..domain.exceptions import NotFound, StoreTimeout, StoreUnavailable
from ..domain.models import AvailabilityBase, Entity, EntityKind
from .rows import BASE_COLUMN, PROVIDER_COLUMN, TABLES, entity_from_row, row_from_entity

logger = logging.getLogger(__name__)

PROVIDER_TABLE = "therapist_profiles"


class RestStore:
    """
    Store backed by a PostgREST endpoint (``/rest/v1/<table>``).

    Each call is a blocking ``requests`` call run in a worker thread so the
    service's time budget can cancel the wait. Row-level security and
    cascading deletes are the database's job.
    """

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 8.0):
        """
        Initialize the REST store.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: API key sent as ``apikey`` and bearer token
            timeout_seconds: Per-request socket timeout
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def list_by_provider(self, provider_id: str, kind: EntityKind) -> List[Entity]:
        return await asyncio.to_thread(self._list_by_provider, provider_id, EntityKind(kind))

    async def insert(self, entity: Entity) -> Entity:
        return await asyncio.to_thread(self._insert, entity)

    async def update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any]) -> Entity:
        return await asyncio.to_thread(self._update, EntityKind(kind), entity_id, dict(patch))

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        await asyncio.to_thread(self._delete, EntityKind(kind), entity_id)

    def _list_by_provider(self, provider_id: str, kind: EntityKind) -> List[Entity]:
        profiles = self._request("GET", PROVIDER_TABLE, params={"id": f"eq.{provider_id}", "select": "id"})
        if not profiles:
            raise NotFound(f"Provider not found: {provider_id}")

        if kind is EntityKind.TIME_OFF:
            rows = self._request(
                "GET", TABLES[kind], params={PROVIDER_COLUMN: f"eq.{provider_id}", "select": "*"}
            )
            return [entity_from_row(kind, row) for row in rows]

        bases = self._fetch_bases(provider_id)
        if kind is EntityKind.BASE:
            return list(bases.values())

        if not bases:
            return []

        id_list = ",".join(bases)
        rows = self._request(
            "GET", TABLES[kind], params={BASE_COLUMN: f"in.({id_list})", "select": "*"}
        )
        return [
            entity_from_row(kind, row, base=bases[str(row[BASE_COLUMN])])
            for row in rows
        ]

    def _fetch_bases(self, provider_id: str) -> Dict[str, AvailabilityBase]:
        rows = self._request(
            "GET",
            TABLES[EntityKind.BASE],
            params={PROVIDER_COLUMN: f"eq.{provider_id}", "select": "*"},
        )
        bases = [entity_from_row(EntityKind.BASE, row) for row in rows]
        return {base.id: base for base in bases}

    def _fetch_one(self, kind: EntityKind, entity_id: str) -> Dict[str, Any]:
        rows = self._request("GET", TABLES[kind], params={"id": f"eq.{entity_id}", "select": "*"})
        if not rows:
            raise NotFound(f"{kind.value} not found: {entity_id}")
        return rows[0]

    def _base_for(self, base_id: str) -> AvailabilityBase:
        return entity_from_row(EntityKind.BASE, self._fetch_one(EntityKind.BASE, base_id))

    def _insert(self, entity: Entity) -> Entity:
        row = row_from_entity(entity)
        row.pop("id", None)
        rows = self._request("POST", TABLES[entity.kind], json=row)
        if not rows:
            raise StoreUnavailable(f"Insert into {TABLES[entity.kind]} returned no row")

        base = self._base_for(entity.base_id) if entity.kind is EntityKind.EXCEPTION else None
        return entity_from_row(entity.kind, rows[0], base=base)

    def _update(self, kind: EntityKind, entity_id: str, patch: Dict[str, Any]) -> Entity:
        row = self._fetch_one(kind, entity_id)
        base: Optional[AvailabilityBase] = None
        if kind is EntityKind.EXCEPTION:
            base = self._base_for(str(row[BASE_COLUMN]))

        current = entity_from_row(kind, row, base=base)
        updated_row = row_from_entity(replace(current, **patch))
        updated_row.pop("id", None)

        rows = self._request("PATCH", TABLES[kind], params={"id": f"eq.{entity_id}"}, json=updated_row)
        if not rows:
            raise NotFound(f"{kind.value} not found: {entity_id}")
        return entity_from_row(kind, rows[0], base=base)

    def _delete(self, kind: EntityKind, entity_id: str) -> None:
        rows = self._request("DELETE", TABLES[kind], params={"id": f"eq.{entity_id}"})
        if not rows:
            raise NotFound(f"{kind.value} not found: {entity_id}")

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Send one request to the REST endpoint.

        Raises:
            StoreTimeout: If the request exceeded its timeout
            StoreUnavailable: On connection errors or error responses
        """
        url = f"{self.base_url}/rest/v1/{table}"

        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=json,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.warning("%s %s timed out after %.1fs", method, table, self.timeout_seconds)
            raise StoreTimeout(f"Store request to {table} timed out") from e
        except requests.exceptions.RequestException as e:
            logger.warning("%s %s failed: %s", method, table, e)
            raise StoreUnavailable(f"Store request to {table} failed: {e}") from e

        if not response.content:
            return []
        return response.json()
