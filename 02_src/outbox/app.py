"""Application bootstrap and lifecycle management."""

import asyncio
import os
from typing import Protocol

from .config import QueueSettings, load_settings, resolve_db_path
from .logging_config import get_logger
from .queue import MessageQueue, create_message_queue
from .remote import IRemoteWriter, RestRemoteWriter
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)

SHUTDOWN_FLUSH_TIMEOUT = 5.0


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Drop all queued state and start over."""
        ...

    @property
    def storage(self) -> IStorage: ...

    @property
    def queue(self) -> MessageQueue: ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        writer: IRemoteWriter | None = None,
        settings: QueueSettings | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._settings = settings or load_settings()

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._writer: IRemoteWriter | None = writer
        self._owns_writer = writer is None
        self._queue: MessageQueue | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. Remote writer (no internal dependencies)
        if self._writer is None:
            self._writer = RestRemoteWriter(
                base_url=self._settings.remote_url,
                api_key=self._settings.remote_key,
                table=self._settings.remote_table,
                user_id=self._settings.user_id,
            )
        logger.info("Remote writer initialized")

        # 4. MessageQueue (depends on writer, Storage, Tracker)
        await self._start_queue()
        logger.info("All components initialized successfully")

    async def _start_queue(self) -> None:
        assert self._writer is not None and self._storage is not None
        self._queue = create_message_queue(
            self._writer,
            self._storage,
            settings=self._settings,
            tracker=self._tracker,
        )
        await self._queue.load()
        logger.info("MessageQueue loaded")

    async def _stop_queue(self) -> None:
        if not self._queue:
            return
        final_flush = await self._queue.shutdown()
        # Waits without cancelling: an in-flight write is allowed to finish
        _, still_running = await asyncio.wait(
            {final_flush}, timeout=SHUTDOWN_FLUSH_TIMEOUT
        )
        if still_running:
            logger.warning("Final flush still running after shutdown timeout")
            # Whatever it settles to must not overwrite the next queue's state
            self._queue.detach()

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        await self._stop_queue()
        if self._writer and self._owns_writer:
            aclose = getattr(self._writer, "aclose", None)
            if aclose:
                await aclose()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Drop all queued state and start over."""
        # 1. Stop the current queue
        await self._stop_queue()

        # 2. Clear storage
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

        # 3. Fresh queue on the empty state
        await self._start_queue()
        logger.info("Reset complete")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def queue(self) -> MessageQueue:
        """Get message queue instance."""
        if not self._queue:
            raise RuntimeError("Application not started")
        return self._queue
