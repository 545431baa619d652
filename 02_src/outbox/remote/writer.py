"""Remote conversation store writer over a PostgREST-style HTTP API."""

import os
from typing import Any, Protocol

import httpx

from ..errors import TransientWriteFailure
from ..logging_config import get_logger

logger = get_logger(__name__)


class IRemoteWriter(Protocol):
    """Insert-only access to the remote conversation store."""

    async def insert_one(self, row: dict[str, Any]) -> str:
        """Insert a single row and return the session id assigned to it."""
        ...

    async def insert_batch(self, rows: list[dict[str, Any]], session_id: str) -> None:
        """Insert rows tagged with session_id. All-or-nothing."""
        ...


class RestRemoteWriter:
    """Writes chat rows to a REST table (e.g. Supabase `ai_conversations`)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        table: str = "ai_conversations",
        user_id: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url or os.getenv("OUTBOX_REMOTE_URL")
        if not self._base_url:
            raise ValueError("OUTBOX_REMOTE_URL environment variable not set")

        self._api_key = api_key or os.getenv("OUTBOX_REMOTE_KEY")
        self._table = table
        self._user_id = user_id

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def _path(self) -> str:
        return f"/rest/v1/{self._table}"

    def _to_record(self, row: dict[str, Any], session_id: str | None = None) -> dict:
        """Map a queue row onto the table's columns."""
        record: dict[str, Any] = {
            "role": row["role"],
            "message": row["content"],
            "timestamp": row["timestamp"],
        }
        if self._user_id:
            record["user_id"] = self._user_id
        sid = session_id or row.get("session_id")
        if sid:
            record["session_id"] = sid
        return record

    async def _post(self, payload: Any, prefer: str) -> httpx.Response:
        try:
            response = await self._client.post(
                self._path, json=payload, headers={"Prefer": prefer}
            )
        except httpx.HTTPError as e:
            raise TransientWriteFailure(f"Remote write failed: {e}") from e

        if response.status_code >= 400:
            raise TransientWriteFailure(
                f"Remote write rejected: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def insert_one(self, row: dict[str, Any]) -> str:
        """Insert a single row and return its session id."""
        response = await self._post(self._to_record(row), "return=representation")

        try:
            data = response.json()
        except ValueError as e:
            raise TransientWriteFailure("Remote write returned invalid JSON") from e

        if isinstance(data, list):
            data = data[0] if data else {}
        session_id = data.get("session_id") if isinstance(data, dict) else None
        if not session_id:
            raise TransientWriteFailure("Remote write returned no session_id")

        logger.debug("Inserted first row, session_id=%s", session_id)
        return str(session_id)

    async def insert_batch(self, rows: list[dict[str, Any]], session_id: str) -> None:
        """Insert rows for an established session."""
        if not rows:
            return
        payload = [self._to_record(row, session_id) for row in rows]
        await self._post(payload, "return=minimal")
        logger.debug("Inserted %d rows for session %s", len(rows), session_id)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
