"""FlushEngine implementation."""

import asyncio
from enum import Enum

from ..config import QueueSettings
from ..errors import ExhaustedRetries, QueueBusyError, TransientWriteFailure
from ..logging_config import get_logger
from ..models import DeadLetterEntry, PendingMessage, QueueSnapshot
from ..remote import IRemoteWriter
from ..storage import DurableStateStore
from ..tracker import ITracker
from .backoff import delay_ms
from .buffer import PendingBuffer
from .dead_letters import DeadLetterStore

logger = get_logger(__name__)


class FlushState(str, Enum):
    """Where the engine is in its delivery cycle."""

    IDLE = "idle"
    FLUSHING = "flushing"
    RETRY_SCHEDULED = "retry_scheduled"


class FlushEngine:
    """Owns the pending buffer and moves it to the remote writer.

    Flushes are single-flight: the `_flushing` flag is held across the
    writer await and a flush requested meanwhile is rejected. Until a
    session id is known, the first buffered message is sent alone through
    `insert_one`; afterwards the whole buffer goes out in one
    `insert_batch` tagged with that session id. Failed messages are put
    back at the front of the buffer and retried after a backoff delay, or
    dead-lettered once they exceed `max_attempts`.
    """

    def __init__(
        self,
        writer: IRemoteWriter,
        state_store: DurableStateStore,
        settings: QueueSettings | None = None,
        tracker: ITracker | None = None,
    ):
        self._writer = writer
        self._state_store = state_store
        self._settings = settings or QueueSettings()
        self._tracker = tracker

        self._buffer = PendingBuffer()
        self._session_id: str | None = None
        self._in_flight: list[PendingMessage] = []
        self._dead_letters = DeadLetterStore(
            persist=self.persist,
            resubmit=self.submit,
        )

        self._flushing = False
        self._follow_up = False
        self._closed = False
        self._detached = False
        self._tick_task: asyncio.Task | None = None
        self._retry_task: asyncio.Task | None = None
        self._retry_delay_ms: int | None = None
        self._background: set[asyncio.Task] = set()

    # State
    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def pending(self) -> list[PendingMessage]:
        return self._buffer.get_all()

    @property
    def dead_letters(self) -> DeadLetterStore:
        return self._dead_letters

    @property
    def state(self) -> FlushState:
        if self._flushing:
            return FlushState.FLUSHING
        if self._retry_task is not None and not self._retry_task.done():
            return FlushState.RETRY_SCHEDULED
        return FlushState.IDLE

    @property
    def retry_delay_ms(self) -> int | None:
        """Delay of the currently scheduled retry, if any."""
        if self.state is FlushState.RETRY_SCHEDULED:
            return self._retry_delay_ms
        return None

    @property
    def is_ticking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def snapshot(self) -> QueueSnapshot:
        """Current state to persist. Messages being written count as pending."""
        return QueueSnapshot(
            pending_buffer=self._in_flight + self._buffer.get_all(),
            session_id=self._session_id,
            dead_letters=self._dead_letters.get_all(),
        )

    def restore(self, snapshot: QueueSnapshot) -> None:
        """Adopt a loaded snapshot as the in-memory state."""
        self._buffer = PendingBuffer(snapshot.pending_buffer)
        self._in_flight = []
        self._session_id = snapshot.session_id
        self._dead_letters.restore(snapshot.dead_letters)
        self._closed = False

    async def persist(self) -> None:
        if self._detached:
            return
        await self._state_store.save(self.snapshot())

    def detach(self) -> None:
        """Stop writing state and trace events for a queue that was replaced.

        A flush still in flight may finish, but its outcome no longer
        reaches storage, which now belongs to the replacement.
        """
        self._detached = True
        self._closed = True
        self.cancel_timers()
        logger.info(
            "Flush engine detached",
            extra={"context": {"session_id": self._session_id}},
        )

    # Intake
    async def submit(self, message: PendingMessage) -> None:
        """Buffer a message, persist, and get it moving."""
        if (
            message.id in self._buffer
            or message.id in self._dead_letters
            or any(msg.id == message.id for msg in self._in_flight)
        ):
            raise ValueError(f"Message {message.id} is already queued")

        self._buffer.add(message)
        await self.persist()
        await self._track(
            "message_enqueued",
            {"message_id": message.id, "role": message.role},
        )

        if self._session_id is None:
            self.request_flush()
        else:
            self.ensure_ticking()

    async def start_conversation(self, session_id: str | None = None) -> None:
        """Switch to another conversation, or to a fresh one when session_id is None."""
        if self._flushing or self._buffer:
            raise QueueBusyError(
                "Cannot switch conversation while messages are pending"
            )

        previous = self._session_id
        self._session_id = session_id
        self._cancel_retry()
        await self.persist()
        logger.info("Conversation switched from %s to %s", previous, session_id)
        await self._track(
            "conversation_started",
            {"previous_session_id": previous, "session_id": session_id},
        )

    # Flushing
    async def flush(self) -> bool:
        """Run one flush attempt.

        Returns False when the attempt was rejected (already flushing) or
        there was nothing to send; True when a write was attempted.
        """
        if self._flushing:
            logger.debug("Flush already in progress, skipping")
            return False

        if not self._buffer:
            await self.persist()
            return False

        self._flushing = True
        try:
            if self._session_id is not None or await self._assign_session():
                session_id = self._session_id
                if session_id is not None and self._buffer:
                    await self._flush_batch(session_id)
        finally:
            self._flushing = False

        if self._follow_up:
            # Messages left behind by a dead-lettered head have no timer
            self._follow_up = False
            if self._buffer and not self._closed:
                self.request_flush()
        return True

    def request_flush(self) -> asyncio.Task:
        """Start a flush in the background and return its task."""
        return self._spawn(self.flush())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _assign_session(self) -> bool:
        """Send the first message alone to obtain a session id."""
        message = self._buffer.pop_first()
        if message is None:
            return False

        self._in_flight = [message]
        try:
            session_id = await self._writer.insert_one(message.to_row())
            if not session_id:
                raise TransientWriteFailure("Remote writer returned no session id")
        except Exception as e:
            self._in_flight = []
            await self._handle_failure([message], e)
            return False

        self._in_flight = []
        self._session_id = session_id
        await self.persist()
        logger.info(
            "Session assigned: %s",
            session_id,
            extra={"context": {"message_id": message.id, "session_id": session_id}},
        )
        await self._track(
            "session_assigned",
            {"session_id": session_id, "message_id": message.id},
        )
        return True

    async def _flush_batch(self, session_id: str) -> bool:
        """Send everything buffered in one insert tagged with the session id."""
        drained = self._buffer.drain()
        rows = [msg.to_row(session_id) for msg in drained]

        self._in_flight = drained
        try:
            await self._writer.insert_batch(rows, session_id)
        except Exception as e:
            self._in_flight = []
            await self._handle_failure(drained, e)
            return False

        self._in_flight = []
        self._cancel_retry()
        await self.persist()
        logger.debug("Delivered %d messages to session %s", len(drained), session_id)
        await self._track(
            "batch_delivered",
            {
                "session_id": session_id,
                "message_ids": [msg.id for msg in drained],
            },
        )
        return True

    async def _handle_failure(
        self, messages: list[PendingMessage], error: Exception
    ) -> None:
        """Count the failed attempt, requeue or dead-letter, schedule a retry."""
        max_attempts = self._settings.max_attempts
        for msg in messages:
            msg.attempts += 1

        retry = [msg for msg in messages if msg.attempts <= max_attempts]
        exhausted = [msg for msg in messages if msg.attempts > max_attempts]

        logger.warning(
            "Remote write failed for %d messages: %s",
            len(messages),
            error,
            exc_info=not isinstance(error, TransientWriteFailure),
            extra={
                "context": {
                    "session_id": self._session_id,
                    "message_ids": [msg.id for msg in messages],
                }
            },
        )

        self._buffer.prepend(retry)

        if exhausted:
            for msg in exhausted:
                logger.error(
                    str(ExhaustedRetries(msg.id, msg.attempts)),
                    extra={
                        "context": {
                            "message_id": msg.id,
                            "attempts": msg.attempts,
                            "session_id": self._session_id,
                        }
                    },
                )
            await self._dead_letters.add(
                [
                    DeadLetterEntry.from_message(msg, last_error=str(error))
                    for msg in exhausted
                ]
            )
        else:
            await self.persist()

        if retry:
            self._schedule_retry(max(msg.attempts for msg in retry))
        else:
            self._cancel_retry()
            if self._buffer:
                self._follow_up = True

        await self._track(
            "flush_failed",
            {
                "error": str(error),
                "requeued": [msg.id for msg in retry],
                "dead_lettered": [msg.id for msg in exhausted],
            },
        )
        for msg in exhausted:
            await self._track(
                "message_dead_lettered",
                {"message_id": msg.id, "attempts": msg.attempts},
            )

    # Timers
    def ensure_ticking(self) -> None:
        """Start the periodic flush timer if it is not running."""
        if self._closed or self.is_ticking:
            return
        self._tick_task = asyncio.create_task(self._tick_loop())

    async def _tick_loop(self) -> None:
        """Background timer for flushing buffered messages."""
        while True:
            try:
                await asyncio.sleep(self._settings.flush_interval)

                if self._buffer and not self._flushing:
                    # Shielded so cancelling the timer never aborts a write
                    await asyncio.shield(self.request_flush())

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Flush timer error: {e}", exc_info=True)

    def _schedule_retry(self, attempts: int) -> None:
        """Arm the retry timer, replacing any retry already scheduled."""
        if self._closed:
            return
        delay = delay_ms(
            attempts,
            self._settings.base_delay_ms,
            self._settings.max_delay_ms,
        )
        self._cancel_retry()
        self._retry_delay_ms = delay
        self._retry_task = asyncio.create_task(self._retry_after(delay / 1000))
        logger.debug("Retry scheduled in %d ms", delay)

    async def _retry_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        self._retry_task = None
        self.request_flush()

    def _cancel_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            self._retry_task.cancel()
        self._retry_task = None
        self._retry_delay_ms = None

    def cancel_timers(self) -> None:
        """Cancel the periodic tick and any scheduled retry."""
        if self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()
        self._tick_task = None
        self._cancel_retry()

    async def shutdown(self) -> asyncio.Task:
        """Stop timers and start one last flush without waiting for it."""
        self._closed = True
        self.cancel_timers()
        return self._spawn(self._final_flush())

    async def _final_flush(self) -> bool:
        """Let an in-flight flush settle, then try once more."""
        running = [t for t in self._background if t is not asyncio.current_task()]
        if running:
            await asyncio.wait(running)
        return await self.flush()

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker is None or self._detached:
            return
        try:
            await self._tracker.track(
                event_type=event_type, actor="flush_engine", data=data
            )
        except Exception as e:
            logger.warning("Failed to record trace event %s: %s", event_type, e)
