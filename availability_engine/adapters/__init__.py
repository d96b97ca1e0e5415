"""
Adapters layer - Store integrations at the persistence boundary.
"""

from .memory_store import InMemoryStore
from .rest_store import RestStore
from .rows import entity_from_row, row_from_entity

__all__ = ["InMemoryStore", "RestStore", "entity_from_row", "row_from_entity"]
