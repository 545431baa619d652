"""Trace events: what the queue did, kept for display and debugging."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass
class TraceEvent:
    """A single queue observability event."""

    id: str
    event_type: str  # e.g. "session_assigned", "flush_failed"
    actor: str  # "flush_engine" or "message_queue"
    data: dict  # self-contained, no lookups needed to display it
    timestamp: datetime

    @classmethod
    def create(cls, event_type: str, actor: str, data: dict) -> "TraceEvent":
        return cls(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "actor": self.actor,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }
