"""Message queue module."""

from .backoff import delay_ms
from .buffer import PendingBuffer
from .dead_letters import DeadLetterStore
from .engine import FlushEngine, FlushState
from .facade import IMessageQueue, MessageQueue, create_message_queue

__all__ = [
    "delay_ms",
    "PendingBuffer",
    "DeadLetterStore",
    "FlushEngine",
    "FlushState",
    "IMessageQueue",
    "MessageQueue",
    "create_message_queue",
]
