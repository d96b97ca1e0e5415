"""
Tests for the JSON-backed in-memory store.
"""

import asyncio
import json

import pendulum
import pytest

from availability_engine.adapters.memory_store import InMemoryStore
from availability_engine.domain.exceptions import NotFound
from availability_engine.domain.models import (
    AvailabilityBase,
    DateSpan,
    EntityKind,
    TimeInterval,
    WeekdayAnchor,
)
from availability_engine.domain.recurrence import Weekly


@pytest.fixture
def data_file(tmp_path):
    """A data file mixing the legacy row shapes."""
    data = {
        "providers": ["p-1"],
        "base_availability": [
            {
                "id": "b-1",
                "therapist_id": "p-1",
                "start_time": "2024-01-08T09:00:00",
                "end_time": "2024-01-08T17:00:00",
                "recurrence": "weekly:Mon,Wed",
            },
            {
                "id": "b-2",
                "therapist_id": "p-1",
                "day_of_week": 1,
                "start_time": "18:00",
                "end_time": "20:00",
                "is_recurring": False,
                "specific_date": "2025-03-10",
            },
            {"id": "b-bad", "therapist_id": "p-1", "start_time": "late", "end_time": "later"},
        ],
        "availability_exceptions": [
            {"id": "e-1", "base_availability_id": "b-1", "start_time": "12:00:00", "end_time": "13:00:00"},
            {"id": "e-orphan", "base_availability_id": "b-404", "start_time": "12:00", "end_time": "13:00"},
        ],
        "time_off": [
            {
                "id": "t-1",
                "therapist_id": "p-1",
                "start_date": "2025-04-01",
                "end_date": "2025-04-03",
                "is_all_day": True,
                "reason": "Vacation",
            },
        ],
    }
    path = tmp_path / "availability.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _list(store, kind, provider_id="p-1"):
    return asyncio.run(store.list_by_provider(provider_id, kind))


class TestLoad:
    """Loading rows from a data file."""

    def test_rows_are_normalized(self, data_file):
        store = InMemoryStore.load(data_file)
        bases = {base.id: base for base in _list(store, EntityKind.BASE)}

        assert set(bases) == {"b-1", "b-2"}
        assert bases["b-1"].recurrence == Weekly.of(1, 3)
        assert bases["b-1"].interval.anchor == WeekdayAnchor(1)
        assert bases["b-2"].interval.anchor == DateSpan.single(pendulum.date(2025, 3, 10))

    def test_exceptions_without_base_are_skipped(self, data_file):
        store = InMemoryStore.load(data_file)
        exceptions = _list(store, EntityKind.EXCEPTION)

        assert [exception.id for exception in exceptions] == ["e-1"]
        assert exceptions[0].interval.anchor == WeekdayAnchor(1)

    def test_time_off_range(self, data_file):
        store = InMemoryStore.load(data_file)
        (entry,) = _list(store, EntityKind.TIME_OFF)

        assert entry.reason == "Vacation"
        assert entry.interval.anchor == DateSpan(pendulum.date(2025, 4, 1), pendulum.date(2025, 4, 3))
        assert (entry.interval.start_minute, entry.interval.end_minute) == (0, 1440)

    def test_save_and_reload_keeps_entities(self, data_file, tmp_path):
        store = InMemoryStore.load(data_file)
        target = tmp_path / "saved.json"

        store.save(target)
        reloaded = InMemoryStore.load(target)

        for kind in EntityKind:
            original = sorted(_list(store, kind), key=lambda entity: entity.id)
            assert sorted(_list(reloaded, kind), key=lambda entity: entity.id) == original


class TestWrites:
    """Insert, update and delete."""

    def _base(self):
        return AvailabilityBase(
            provider_id="p-1",
            interval=TimeInterval(anchor=WeekdayAnchor(2), start_minute=600, end_minute=660),
            recurrence=Weekly.of(2),
        )

    def test_insert_assigns_id(self):
        store = InMemoryStore(providers=["p-1"])
        created = asyncio.run(store.insert(self._base()))

        assert created.id
        assert _list(store, EntityKind.BASE) == [created]

    def test_insert_for_unknown_provider(self):
        store = InMemoryStore(providers=["p-1"])
        with pytest.raises(NotFound):
            asyncio.run(store.insert(AvailabilityBase(
                provider_id="p-2", interval=self._base().interval, recurrence=Weekly.of(2)
            )))

    def test_any_provider_without_provider_list(self):
        store = InMemoryStore()
        assert _list(store, EntityKind.BASE, provider_id="anyone") == []

    def test_update_and_delete(self):
        store = InMemoryStore(providers=["p-1"])
        created = asyncio.run(store.insert(self._base()))
        moved = created.interval.with_minutes(660, 720)

        updated = asyncio.run(store.update(EntityKind.BASE, created.id, {"interval": moved}))
        asyncio.run(store.delete(EntityKind.BASE, created.id))

        assert updated.interval == moved
        assert _list(store, EntityKind.BASE) == []
        with pytest.raises(NotFound):
            asyncio.run(store.delete(EntityKind.BASE, created.id))
