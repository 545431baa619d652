"""MessageQueue: the entry point used by the chat surface."""

import asyncio
from typing import Protocol

from ..config import QueueSettings
from ..logging_config import get_logger
from ..models import DeadLetterEntry, PendingMessage
from ..remote import IRemoteWriter
from ..storage import DurableStateStore, IKeyValueStore
from ..tracker import ITracker
from .engine import FlushEngine, FlushState

logger = get_logger(__name__)


class IMessageQueue(Protocol):
    """Persisted, retrying delivery of chat messages to the remote store."""

    async def load(self) -> None:
        """Restore the last persisted state and resume delivery."""
        ...

    async def enqueue(self, role: str, content: str) -> PendingMessage:
        """Buffer a message for delivery. Does not wait for the remote write."""
        ...

    async def shutdown(self) -> asyncio.Task:
        """Cancel timers and start a best-effort final flush."""
        ...


class MessageQueue:
    """Facade over FlushEngine and its durable state."""

    def __init__(
        self,
        engine: FlushEngine,
        state_store: DurableStateStore,
        tracker: ITracker | None = None,
    ):
        self._engine = engine
        self._state_store = state_store
        self._tracker = tracker
        self._loaded = False

    async def load(self) -> None:
        """Restore buffer, session id and dead letters; restart the timer if needed."""
        if self._loaded:
            return

        snapshot = await self._state_store.load()
        self._engine.restore(snapshot)
        self._loaded = True

        logger.info(
            "Queue loaded",
            extra={
                "context": {
                    "pending": len(snapshot.pending_buffer),
                    "session_id": snapshot.session_id,
                    "dead_letters": len(snapshot.dead_letters),
                }
            },
        )

        if snapshot.pending_buffer:
            self._engine.ensure_ticking()

    async def enqueue(self, role: str, content: str) -> PendingMessage:
        """Buffer a message for delivery. Does not wait for the remote write."""
        message = PendingMessage.create(role, content)
        await self._engine.submit(message)
        return message

    async def flush_now(self) -> bool:
        """Force a flush and wait for its outcome."""
        return await self._engine.flush()

    async def shutdown(self) -> asyncio.Task:
        """Cancel timers and start a final flush.

        Delivery is not guaranteed: the returned task completes when the
        final flush settles and may be awaited by callers that need to know.
        """
        logger.info("Shutting down message queue")
        self._loaded = False
        return await self._engine.shutdown()

    def detach(self) -> None:
        """Cut a replaced queue off from storage."""
        self._engine.detach()

    async def start_conversation(self, session_id: str | None = None) -> None:
        """Start a fresh conversation, or resume an existing one by session id."""
        await self._engine.start_conversation(session_id)

    # Dead letters
    async def retry_dead_letter(self, entry_id: str) -> PendingMessage | None:
        """Put a dead letter back into delivery with a fresh retry budget."""
        message = await self._engine.dead_letters.retry(entry_id)
        if message is not None:
            await self._track("dead_letter_retried", {"message_id": entry_id})
        return message

    async def delete_dead_letter(self, entry_id: str) -> DeadLetterEntry | None:
        """Permanently drop a dead letter."""
        entry = await self._engine.dead_letters.remove(entry_id)
        if entry is not None:
            await self._track("dead_letter_deleted", {"message_id": entry_id})
        return entry

    # Read accessors
    @property
    def session_id(self) -> str | None:
        return self._engine.session_id

    @property
    def state(self) -> FlushState:
        return self._engine.state

    @property
    def pending_count(self) -> int:
        return len(self._engine.pending)

    @property
    def pending_messages(self) -> list[PendingMessage]:
        return self._engine.pending

    @property
    def dead_letter_count(self) -> int:
        return len(self._engine.dead_letters)

    @property
    def dead_letters(self) -> list[DeadLetterEntry]:
        return self._engine.dead_letters.get_all()

    @property
    def engine(self) -> FlushEngine:
        return self._engine

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker is None:
            return
        try:
            await self._tracker.track(
                event_type=event_type, actor="message_queue", data=data
            )
        except Exception as e:
            logger.warning("Failed to record trace event %s: %s", event_type, e)


def create_message_queue(
    writer: IRemoteWriter,
    kv_store: IKeyValueStore,
    settings: QueueSettings | None = None,
    tracker: ITracker | None = None,
) -> MessageQueue:
    """Build an independent queue around the given writer and persistence."""
    settings = settings or QueueSettings()
    state_store = DurableStateStore(kv_store, settings)
    engine = FlushEngine(writer, state_store, settings=settings, tracker=tracker)
    return MessageQueue(engine, state_store, tracker=tracker)
