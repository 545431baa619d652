"""Durable queue state on top of a key-value store."""

import asyncio
import json

from ..config import QueueSettings
from ..errors import PersistenceFailure
from ..logging_config import get_logger
from ..models import QueueSnapshot
from .storage import IKeyValueStore

logger = get_logger(__name__)


class DurableStateStore:
    """Reads and writes QueueSnapshots.

    The pending buffer and session id live under one key, dead letters
    under a second one. Save failures are logged and reported through the
    return value; the caller's in-memory state stays authoritative until
    the next successful save. A failed load yields an empty snapshot.
    """

    def __init__(
        self,
        kv_store: IKeyValueStore,
        settings: QueueSettings | None = None,
    ):
        settings = settings or QueueSettings()
        self._kv = kv_store
        self._pending_key = settings.pending_key
        self._dead_letters_key = settings.dead_letters_key
        self._lock = asyncio.Lock()

    async def save(self, snapshot: QueueSnapshot) -> bool:
        """Persist snapshot. Returns False (and logs) on failure."""
        pending = json.dumps(snapshot.pending_state())
        dead_letters = json.dumps(snapshot.dead_letter_state())

        async with self._lock:
            try:
                await self._kv.set(self._pending_key, pending)
                await self._kv.set(self._dead_letters_key, dead_letters)
            except Exception as e:
                failure = PersistenceFailure(f"Failed to save queue state: {e}")
                logger.warning(
                    str(failure),
                    exc_info=True,
                    extra={
                        "context": {
                            "pending": len(snapshot.pending_buffer),
                            "dead_letters": len(snapshot.dead_letters),
                        }
                    },
                )
                return False

        return True

    async def load(self) -> QueueSnapshot:
        """Read the last saved snapshot, or an empty one."""
        async with self._lock:
            try:
                raw_pending = await self._kv.get(self._pending_key)
                raw_dead_letters = await self._kv.get(self._dead_letters_key)
                return QueueSnapshot.from_state(
                    json.loads(raw_pending) if raw_pending else None,
                    json.loads(raw_dead_letters) if raw_dead_letters else None,
                )
            except Exception as e:
                logger.warning(
                    "Failed to load queue state, starting empty: %s", e, exc_info=True
                )
                return QueueSnapshot()

    async def clear(self) -> None:
        """Drop both state keys."""
        async with self._lock:
            await self._kv.delete(self._pending_key)
            await self._kv.delete(self._dead_letters_key)
