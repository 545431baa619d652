"""Project-level configuration, queue constants and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "outbox.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Delivery policy
MAX_ATTEMPTS = 5
BASE_DELAY_MS = 2000
MAX_DELAY_MS = 60000
FLUSH_INTERVAL_SECONDS = 5.0
MAX_CONTENT_LENGTH = 500

# Durable state keys
STATE_KEY_PREFIX = "outbox"
PENDING_KEY_SUFFIX = "pending"
DEAD_LETTERS_KEY_SUFFIX = "dead_letters"

DEFAULT_REMOTE_TABLE = "ai_conversations"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass
class QueueSettings:
    """Tunables for one message queue instance."""

    flush_interval: float = FLUSH_INTERVAL_SECONDS
    max_attempts: int = MAX_ATTEMPTS
    base_delay_ms: int = BASE_DELAY_MS
    max_delay_ms: int = MAX_DELAY_MS
    state_key_prefix: str = STATE_KEY_PREFIX
    remote_url: str | None = None
    remote_key: str | None = None
    remote_table: str = DEFAULT_REMOTE_TABLE
    user_id: str | None = None

    @property
    def pending_key(self) -> str:
        return f"{self.state_key_prefix}:{PENDING_KEY_SUFFIX}"

    @property
    def dead_letters_key(self) -> str:
        return f"{self.state_key_prefix}:{DEAD_LETTERS_KEY_SUFFIX}"


def load_settings() -> QueueSettings:
    """Build QueueSettings from OUTBOX_* environment variables."""
    return QueueSettings(
        flush_interval=float(
            os.getenv("OUTBOX_FLUSH_INTERVAL", str(FLUSH_INTERVAL_SECONDS))
        ),
        max_attempts=int(os.getenv("OUTBOX_MAX_ATTEMPTS", str(MAX_ATTEMPTS))),
        base_delay_ms=int(os.getenv("OUTBOX_BASE_DELAY_MS", str(BASE_DELAY_MS))),
        max_delay_ms=int(os.getenv("OUTBOX_MAX_DELAY_MS", str(MAX_DELAY_MS))),
        state_key_prefix=os.getenv("OUTBOX_STATE_KEY_PREFIX", STATE_KEY_PREFIX),
        remote_url=os.getenv("OUTBOX_REMOTE_URL"),
        remote_key=os.getenv("OUTBOX_REMOTE_KEY"),
        remote_table=os.getenv("OUTBOX_REMOTE_TABLE", DEFAULT_REMOTE_TABLE),
        user_id=os.getenv("OUTBOX_USER_ID"),
    )
