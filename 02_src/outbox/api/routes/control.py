"""Control API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import IApplication
from ...errors import QueueBusyError


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class ConversationRequest(BaseModel):
    """Start a new conversation, or resume one by session id."""

    session_id: str | None = None


class FlushResponse(BaseModel):
    """Response model for a forced flush."""

    attempted: bool
    pending: int


def create_control_router(app: IApplication) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system() -> dict:
        """Drop all queued state and start over."""
        try:
            await app.reset()
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/conversation", response_model=StatusResponse)
    async def start_conversation(request: ConversationRequest) -> dict:
        """Switch the queue to another conversation."""
        try:
            await app.queue.start_conversation(request.session_id)
            return {"status": "ok"}
        except QueueBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @router.post("/flush", response_model=FlushResponse)
    async def flush_queue() -> dict:
        """Force a flush and report what is left."""
        attempted = await app.queue.flush_now()
        return {"attempted": attempted, "pending": app.queue.pending_count}

    return router
