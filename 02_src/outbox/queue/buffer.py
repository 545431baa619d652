"""PendingBuffer implementation."""

from ..models import PendingMessage


class PendingBuffer:
    """Ordered in-memory list of messages awaiting delivery."""

    def __init__(self, messages: list[PendingMessage] | None = None):
        self._messages: list[PendingMessage] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return any(msg.id == message_id for msg in self._messages)

    def add(self, message: PendingMessage) -> None:
        """Append a message to the end of the buffer."""
        self._messages.append(message)

    def prepend(self, messages: list[PendingMessage]) -> None:
        """Put messages back at the front, keeping their relative order."""
        self._messages[:0] = messages

    def pop_first(self) -> PendingMessage | None:
        """Remove and return the oldest message."""
        if not self._messages:
            return None
        return self._messages.pop(0)

    def drain(self) -> list[PendingMessage]:
        """Take every message out, leaving the buffer empty."""
        drained = self._messages
        self._messages = []
        return drained

    def get_all(self) -> list[PendingMessage]:
        """Get all messages in buffer."""
        return self._messages.copy()

    def clear(self) -> None:
        """Clear the buffer."""
        self._messages.clear()
