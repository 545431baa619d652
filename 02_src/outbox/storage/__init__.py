"""Storage module."""

from .state_store import DurableStateStore
from .storage import IKeyValueStore, IStorage, Storage

__all__ = ["IKeyValueStore", "IStorage", "Storage", "DurableStateStore"]
