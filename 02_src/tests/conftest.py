"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from outbox.errors import TransientWriteFailure  # noqa: E402


class FakeRemoteWriter:
    """In-memory remote writer with scriptable failures.

    `fail_insert_one` / `fail_insert_batch` count down the number of calls
    that should fail. When `gate` is set, writes wait on it before
    completing, which lets tests hold a flush in flight.
    """

    def __init__(self, session_id: str = "S1"):
        self.session_id = session_id
        self.fail_insert_one = 0
        self.fail_insert_batch = 0
        self.gate: asyncio.Event | None = None

        self.insert_one_calls: list[dict] = []
        self.insert_batch_calls: list[tuple[list[dict], str]] = []
        self.written: list[dict] = []

    async def insert_one(self, row: dict) -> str:
        self.insert_one_calls.append(row)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_insert_one > 0:
            self.fail_insert_one -= 1
            raise TransientWriteFailure("insert_one unavailable", status_code=503)
        self.written.append({**row, "session_id": self.session_id})
        return self.session_id

    async def insert_batch(self, rows: list[dict], session_id: str) -> None:
        self.insert_batch_calls.append((rows, session_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_insert_batch > 0:
            self.fail_insert_batch -= 1
            raise TransientWriteFailure("insert_batch unavailable", status_code=503)
        self.written.extend(rows)

    @property
    def written_contents(self) -> list[str]:
        return [row["content"] for row in self.written]


class BrokenKeyValueStore:
    """Key-value store whose every call fails."""

    async def get(self, key: str) -> str | None:
        raise OSError("disk unavailable")

    async def set(self, key: str, value: str) -> None:
        raise OSError("disk unavailable")

    async def delete(self, key: str) -> None:
        raise OSError("disk unavailable")


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from outbox.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from outbox.tracker import Tracker

    return Tracker(storage=storage)


@pytest.fixture
def writer():
    """Create fake remote writer."""
    return FakeRemoteWriter()


@pytest.fixture
def broken_kv():
    """Create a key-value store that always fails."""
    return BrokenKeyValueStore()


@pytest.fixture
def settings():
    """Queue settings with a fast tick and the production retry schedule."""
    from outbox.config import QueueSettings

    return QueueSettings(flush_interval=0.01)


@pytest.fixture
def state_store(storage, settings):
    """Create DurableStateStore over in-memory storage."""
    from outbox.storage import DurableStateStore

    return DurableStateStore(storage, settings)


async def _settle(engine) -> None:
    """Wait for every background flush the engine has started."""
    while engine._background:
        await asyncio.gather(*list(engine._background), return_exceptions=True)


@pytest.fixture
def settle():
    """Return a coroutine function that waits for background flushes."""
    return _settle


@pytest_asyncio.fixture
async def engine(writer, state_store, settings, tracker):
    """Create FlushEngine for testing."""
    from outbox.queue import FlushEngine

    fe = FlushEngine(writer, state_store, settings=settings, tracker=tracker)
    yield fe
    fe.cancel_timers()
    await _settle(fe)


@pytest_asyncio.fixture
async def queue(writer, storage, settings, tracker):
    """Create MessageQueue for testing."""
    from outbox.queue import create_message_queue

    mq = create_message_queue(writer, storage, settings=settings, tracker=tracker)
    yield mq
    mq.engine.cancel_timers()
    await _settle(mq.engine)
