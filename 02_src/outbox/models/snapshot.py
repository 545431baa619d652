"""Queue persistence snapshot."""

from dataclasses import dataclass, field
from typing import Any

from .messages import DeadLetterEntry, PendingMessage


@dataclass
class QueueSnapshot:
    """Everything needed to resume a queue after a restart."""

    pending_buffer: list[PendingMessage] = field(default_factory=list)
    session_id: str | None = None
    dead_letters: list[DeadLetterEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return (
            not self.pending_buffer
            and self.session_id is None
            and not self.dead_letters
        )

    def pending_state(self) -> dict[str, Any]:
        """Payload stored under the pending-state key."""
        return {
            "buffer": [msg.to_dict() for msg in self.pending_buffer],
            "session_id": self.session_id,
        }

    def dead_letter_state(self) -> list[dict[str, Any]]:
        """Payload stored under the dead-letters key."""
        return [entry.to_dict() for entry in self.dead_letters]

    @classmethod
    def from_state(
        cls,
        pending_state: dict[str, Any] | None,
        dead_letter_state: list[dict[str, Any]] | None,
    ) -> "QueueSnapshot":
        pending_state = pending_state or {}
        return cls(
            pending_buffer=[
                PendingMessage.from_dict(item)
                for item in pending_state.get("buffer", [])
            ],
            session_id=pending_state.get("session_id"),
            dead_letters=[
                DeadLetterEntry.from_dict(item) for item in dead_letter_state or []
            ],
        )
