"""Dead-letter API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import IApplication


class DeadLetterResponse(BaseModel):
    """Response model for a dead-lettered message."""

    id: str
    role: str
    content: str
    timestamp: str
    attempts: int
    failed_at: str | None = None
    last_error: str | None = None


class RetryResponse(BaseModel):
    """Response model for a retried dead letter."""

    id: str
    status: str


def create_dead_letters_router(app: IApplication) -> APIRouter:
    """Create dead-letter router."""
    router = APIRouter(prefix="/api/dead-letters", tags=["dead-letters"])

    @router.get("", response_model=list[DeadLetterResponse])
    async def list_dead_letters() -> list[dict]:
        """List messages that exhausted their retry budget, newest first."""
        return [entry.to_dict() for entry in app.queue.dead_letters]

    @router.post("/{entry_id}/retry", response_model=RetryResponse)
    async def retry_dead_letter(entry_id: str) -> dict:
        """Requeue a dead letter with a fresh retry budget."""
        message = await app.queue.retry_dead_letter(entry_id)
        if message is None:
            raise HTTPException(status_code=404, detail="Dead letter not found")
        return {"id": message.id, "status": "queued"}

    @router.delete("/{entry_id}", status_code=204)
    async def delete_dead_letter(entry_id: str) -> None:
        """Permanently drop a dead letter."""
        entry = await app.queue.delete_dead_letter(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Dead letter not found")

    return router
