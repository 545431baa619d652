"""Core data models for the chat outbox."""

from .messages import ROLES, DeadLetterEntry, PendingMessage, Role
from .snapshot import QueueSnapshot
from .tracing import TraceEvent

__all__ = [
    # Messages
    "Role",
    "ROLES",
    "PendingMessage",
    "DeadLetterEntry",
    # Persistence
    "QueueSnapshot",
    # Tracing
    "TraceEvent",
]
