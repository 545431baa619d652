"""Messaging API routes."""

from typing import Literal

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...app import IApplication
from ...config import MAX_CONTENT_LENGTH


class MessageRequest(BaseModel):
    """Request model for queueing a message."""

    role: Literal["user", "assistant"] = "user"
    content: str = Field(min_length=1)


class MessageResponse(BaseModel):
    """Response model for a queued message."""

    id: str
    status: str
    timestamp: str


def create_messaging_router(app: IApplication) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api", tags=["messaging"])

    @router.post("/messages", response_model=MessageResponse, status_code=202)
    async def enqueue_message(request: MessageRequest) -> dict:
        """Queue a message for delivery; returns before the remote write."""
        if request.role == "user" and len(request.content) > MAX_CONTENT_LENGTH:
            raise HTTPException(
                status_code=422,
                detail=f"Message longer than {MAX_CONTENT_LENGTH} characters",
            )
        try:
            message = await app.queue.enqueue(request.role, request.content)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return {
            "id": message.id,
            "status": "queued",
            "timestamp": message.timestamp,
        }

    return router
