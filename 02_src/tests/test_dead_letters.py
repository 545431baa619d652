"""Tests for DeadLetterStore."""

from unittest.mock import AsyncMock

import pytest

from outbox.models import DeadLetterEntry, PendingMessage
from outbox.queue.dead_letters import DeadLetterStore


def make_entry(entry_id: str) -> DeadLetterEntry:
    return DeadLetterEntry(
        id=entry_id,
        role="user",
        content=f"content {entry_id}",
        timestamp="2024-01-01T12:00:00+00:00",
        attempts=6,
        last_error="503",
    )


@pytest.fixture
def persist():
    return AsyncMock()


@pytest.fixture
def resubmit():
    return AsyncMock()


@pytest.fixture
def store(persist, resubmit):
    return DeadLetterStore(persist=persist, resubmit=resubmit)


class TestDeadLetterAdd:
    """Tests for DeadLetterStore.add()."""

    async def test_add_persists(self, store, persist):
        """Test that adding entries persists once."""
        await store.add([make_entry("d1")])

        assert len(store) == 1
        persist.assert_awaited_once()

    async def test_add_merges_to_front(self, store):
        """Test that newer failures are listed first."""
        await store.add([make_entry("d1")])
        await store.add([make_entry("d2"), make_entry("d3")])

        assert [e.id for e in store.get_all()] == ["d2", "d3", "d1"]

    async def test_add_nothing_is_noop(self, store, persist):
        """Test that an empty add does not persist."""
        await store.add([])
        persist.assert_not_awaited()


class TestDeadLetterRemove:
    """Tests for DeadLetterStore.remove()."""

    async def test_remove_existing(self, store, persist):
        """Test deleting an entry by id."""
        store.restore([make_entry("d1"), make_entry("d2")])

        removed = await store.remove("d1")

        assert removed is not None and removed.id == "d1"
        assert "d1" not in store
        assert [e.id for e in store.get_all()] == ["d2"]
        persist.assert_awaited_once()

    async def test_remove_unknown(self, store, persist):
        """Test deleting an unknown id returns None without persisting."""
        assert await store.remove("missing") is None
        persist.assert_not_awaited()


class TestDeadLetterRetry:
    """Tests for DeadLetterStore.retry()."""

    async def test_retry_resubmits_with_reset_attempts(self, store, resubmit):
        """Test that a retried entry re-enters delivery with a fresh budget."""
        store.restore([make_entry("d1")])

        message = await store.retry("d1")

        assert message is not None
        assert type(message) is PendingMessage
        assert message.id == "d1"
        assert message.content == "content d1"
        assert message.role == "user"
        assert message.attempts == 0
        assert len(store) == 0
        resubmit.assert_awaited_once_with(message)

    async def test_retry_unknown(self, store, resubmit):
        """Test retrying an unknown id does nothing."""
        assert await store.retry("missing") is None
        resubmit.assert_not_awaited()

    async def test_retry_removes_before_resubmitting(self, persist):
        """Test that the entry is gone from dead letters when resubmitted."""
        seen = []

        async def resubmit(message):
            seen.append(message.id in store)

        store = DeadLetterStore(persist=persist, resubmit=resubmit)
        store.restore([make_entry("d1")])

        await store.retry("d1")

        assert seen == [False]

    async def test_retry_keeps_entry_when_resubmit_fails(self, persist):
        """Test a rejected resubmission leaves the dead letter in place."""
        resubmit = AsyncMock(side_effect=ValueError("Message d1 is already queued"))
        store = DeadLetterStore(persist=persist, resubmit=resubmit)
        store.restore([make_entry("d1")])

        with pytest.raises(ValueError):
            await store.retry("d1")

        assert "d1" in store
        assert len(store) == 1


class TestDeadLetterRead:
    """Tests for read accessors."""

    def test_get(self, store):
        """Test looking an entry up by id."""
        store.restore([make_entry("d1")])
        entry = store.get("d1")
        assert entry is not None and entry.attempts == 6
        assert store.get("d2") is None

    def test_restore_does_not_persist(self, store, persist):
        """Test restoring from a snapshot."""
        store.restore([make_entry("d1")])
        assert len(store) == 1
        persist.assert_not_called()
