"""Dead-letter store for messages that exhausted their retry budget."""

from typing import Awaitable, Callable

from ..logging_config import get_logger
from ..models import DeadLetterEntry, PendingMessage

logger = get_logger(__name__)

PersistCallback = Callable[[], Awaitable[None]]
ResubmitCallback = Callable[[PendingMessage], Awaitable[None]]


class DeadLetterStore:
    """Failed messages kept for manual retry or deletion, newest first.

    Persistence and resubmission go through callbacks supplied by the
    flush engine, which stays the only writer of durable state.
    """

    def __init__(
        self,
        persist: PersistCallback,
        resubmit: ResubmitCallback,
        entries: list[DeadLetterEntry] | None = None,
    ):
        self._persist = persist
        self._resubmit = resubmit
        self._entries: list[DeadLetterEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return any(entry.id == entry_id for entry in self._entries)

    def get(self, entry_id: str) -> DeadLetterEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def get_all(self) -> list[DeadLetterEntry]:
        return self._entries.copy()

    def restore(self, entries: list[DeadLetterEntry]) -> None:
        """Replace contents from a loaded snapshot without persisting."""
        self._entries = list(entries)

    async def add(self, entries: list[DeadLetterEntry]) -> None:
        """Merge new entries to the front of the list and persist."""
        if not entries:
            return
        self._entries[:0] = entries
        await self._persist()

    def _take(self, entry_id: str) -> DeadLetterEntry | None:
        entry = self.get(entry_id)
        if entry is not None:
            self._entries.remove(entry)
        return entry

    async def remove(self, entry_id: str) -> DeadLetterEntry | None:
        """Delete one entry by id and persist. Returns the removed entry."""
        entry = self._take(entry_id)
        if entry is None:
            return None
        await self._persist()
        return entry

    async def retry(self, entry_id: str) -> PendingMessage | None:
        """Move an entry back into the live buffer with attempts reset."""
        # Resubmission persists buffer and dead letters in one save
        entry = self._take(entry_id)
        if entry is None:
            return None
        message = entry.to_pending()
        logger.info("Retrying dead letter %s", entry_id)
        try:
            await self._resubmit(message)
        except Exception:
            self._entries.insert(0, entry)
            raise
        return message
