"""Error taxonomy for the chat outbox."""


class OutboxError(Exception):
    """Base class for outbox errors."""


class TransientWriteFailure(OutboxError):
    """A remote insert failed (network or server error). Recovered by requeue."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceFailure(OutboxError):
    """The durable key-value store could not be read or written."""


class ExhaustedRetries(OutboxError):
    """A message failed more than the allowed number of delivery attempts."""

    def __init__(self, message_id: str, attempts: int):
        super().__init__(f"Message {message_id} failed after {attempts} attempts")
        self.message_id = message_id
        self.attempts = attempts


class QueueBusyError(OutboxError):
    """The queue has pending or in-flight messages for the current conversation."""
