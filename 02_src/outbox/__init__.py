"""Chat outbox: persisted, retrying delivery of chat messages."""

from .app import Application, IApplication
from .config import QueueSettings, load_settings
from .errors import (
    ExhaustedRetries,
    OutboxError,
    PersistenceFailure,
    QueueBusyError,
    TransientWriteFailure,
)
from .models import DeadLetterEntry, PendingMessage, QueueSnapshot, TraceEvent
from .queue import (
    DeadLetterStore,
    FlushEngine,
    FlushState,
    IMessageQueue,
    MessageQueue,
    PendingBuffer,
    create_message_queue,
    delay_ms,
)
from .remote import IRemoteWriter, RestRemoteWriter
from .storage import DurableStateStore, IKeyValueStore, IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    "QueueSettings",
    "load_settings",
    # Models
    "PendingMessage",
    "DeadLetterEntry",
    "QueueSnapshot",
    "TraceEvent",
    # Errors
    "OutboxError",
    "TransientWriteFailure",
    "PersistenceFailure",
    "ExhaustedRetries",
    "QueueBusyError",
    # Components
    "IKeyValueStore",
    "IStorage",
    "Storage",
    "DurableStateStore",
    "IRemoteWriter",
    "RestRemoteWriter",
    "ITracker",
    "Tracker",
    "PendingBuffer",
    "DeadLetterStore",
    "FlushEngine",
    "FlushState",
    "IMessageQueue",
    "MessageQueue",
    "create_message_queue",
    "delay_ms",
]
