"""Observability API routes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import IApplication


class TraceEventResponse(BaseModel):
    """Response model for trace event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime


class QueueStatusResponse(BaseModel):
    """Response model for queue status."""

    state: str
    session_id: str | None
    pending: int
    dead_letters: int
    retry_in_ms: int | None = None


def _parse_after(after: str | None) -> datetime | None:
    if not after:
        return None
    try:
        return datetime.fromisoformat(after)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid after timestamp format")


def create_observability_router(app: IApplication) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/queue", response_model=QueueStatusResponse)
    async def get_queue_status() -> dict:
        """Current delivery state of the message queue."""
        queue = app.queue
        return {
            "state": queue.state.value,
            "session_id": queue.session_id,
            "pending": queue.pending_count,
            "dead_letters": queue.dead_letter_count,
            "retry_in_ms": queue.engine.retry_delay_ms,
        }

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        after: str | None = Query(None, description="ISO timestamp filter"),
        limit: int = Query(100, ge=1, le=1000),
        event_type: str | None = Query(
            None, description="Event type, or several separated by commas"
        ),
        actor: str | None = Query(None, description="flush_engine or message_queue"),
    ) -> list[dict]:
        """Queue activity, newest first."""
        after_dt = _parse_after(after)
        event_types = (
            [t.strip() for t in event_type.split(",") if t.strip()]
            if event_type
            else None
        )

        try:
            events = await app.storage.get_trace_events(
                after=after_dt,
                event_types=event_types,
                actor=actor,
                limit=limit,
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return [e.to_dict() for e in events]

    @router.get(
        "/messages/{message_id}/trace", response_model=list[TraceEventResponse]
    )
    async def get_message_trace(
        message_id: str, limit: int = Query(1000, ge=1, le=1000)
    ) -> list[dict]:
        """The latest `limit` events that mention one message, oldest first."""
        related = await app.storage.get_trace_events(
            message_id=message_id, limit=limit
        )
        if not related:
            raise HTTPException(status_code=404, detail="No events for message")
        return [e.to_dict() for e in reversed(related)]

    return router
