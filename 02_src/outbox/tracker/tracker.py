"""Tracker: records queue activity as TraceEvents."""

from typing import Protocol

from ..models import TraceEvent
from ..storage import IStorage


class ITracker(Protocol):
    """Records what the queue did, for display and debugging."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        ...


class Tracker:
    """Writes one TraceEvent per track() call."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        await self._storage.save_trace_event(
            TraceEvent.create(event_type=event_type, actor=actor, data=data)
        )
