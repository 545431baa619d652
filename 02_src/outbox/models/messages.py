"""Message-related data models."""

import uuid
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Literal

Role = Literal["user", "assistant"]
ROLES: tuple[str, ...] = ("user", "assistant")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PendingMessage:
    """A chat message waiting for delivery to the remote conversation store."""

    id: str
    role: Role
    content: str
    timestamp: str  # ISO-8601, client clock
    attempts: int = 0

    @classmethod
    def create(cls, role: str, content: str) -> "PendingMessage":
        """Build a fresh message with a new id and attempts=0."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        if not content or not content.strip():
            raise ValueError("Message content must not be empty")

        return cls(
            id=str(uuid.uuid4()),
            role=role,  # type: ignore[arg-type]
            content=content,
            timestamp=utc_now_iso(),
        )

    def to_row(self, session_id: str | None = None) -> dict[str, Any]:
        """Render the row handed to the remote writer."""
        row: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if session_id:
            row["session_id"] = session_id
        return row

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingMessage":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class DeadLetterEntry(PendingMessage):
    """A message that exhausted its retry budget, kept for manual action."""

    failed_at: str | None = None
    last_error: str | None = None

    @classmethod
    def from_message(
        cls, message: PendingMessage, last_error: str | None = None
    ) -> "DeadLetterEntry":
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            timestamp=message.timestamp,
            attempts=message.attempts,
            failed_at=utc_now_iso(),
            last_error=last_error,
        )

    def to_pending(self) -> PendingMessage:
        """Convert back into a deliverable message with a renewed retry budget."""
        return PendingMessage(
            id=self.id,
            role=self.role,
            content=self.content,
            timestamp=self.timestamp,
            attempts=0,
        )
