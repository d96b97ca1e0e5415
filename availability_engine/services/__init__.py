"""
Service layer helpers that orchestrate the store and domain logic.
"""

from .availability_service import AvailabilityService, StoreProtocol
from .locks import KeyedLocks

__all__ = ["AvailabilityService", "KeyedLocks", "StoreProtocol"]
