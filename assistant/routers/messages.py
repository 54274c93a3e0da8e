from typing import Optional

import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from assistant.models import MessageCategory, MessageType, Person
from assistant.routers.errors import http_error
from assistant.services.orchestrator import MeetingError, MeetingOrchestrator


class PostMessageRequest(BaseModel):
    content: str = Field(..., min_length=1)
    type: MessageType = MessageType.USER
    sender: Optional[Person] = None
    category: Optional[MessageCategory] = None


class FilterRequest(BaseModel):
    category: Optional[MessageCategory] = None


def create_messages_router(orchestrator: MeetingOrchestrator) -> APIRouter:
    router = APIRouter()
    logger = logging.getLogger("assistant.api.messages")

    @router.get("/api/messages")
    def list_messages(category: Optional[MessageCategory] = Query(None)) -> list[dict]:
        return [m.model_dump(mode="json") for m in orchestrator.filtered_messages(category)]

    @router.post("/api/messages")
    def post_message(payload: PostMessageRequest) -> dict:
        logger.info("Message posted: type=%s chars=%d", payload.type.value, len(payload.content))
        if payload.type == MessageType.USER and payload.category:
            raise HTTPException(status_code=400, detail="User messages cannot carry a category")
        try:
            message = orchestrator.add_message(
                payload.type, payload.content, sender=payload.sender, category=payload.category
            )
        except MeetingError as exc:
            raise http_error(exc) from exc
        # Assistant replies and proposed tasks are appended after the user message
        return {
            "message": message.model_dump(mode="json"),
            "messages": [m.model_dump(mode="json") for m in orchestrator.messages],
            "tasks": [t.model_dump(mode="json") for t in orchestrator.tasks],
        }

    @router.put("/api/messages/filter")
    def set_filter(payload: FilterRequest) -> dict:
        orchestrator.set_active_filter(payload.category)
        active = orchestrator.active_filter
        return {"active_filter": active.value if active else None}

    @router.get("/api/log")
    def project_log() -> list[dict]:
        return [m.model_dump(mode="json") for m in orchestrator.log_entries()]

    @router.get("/api/search")
    def search(q: str = Query("", description="Search query")) -> list[dict]:
        """Search the content of assistant messages in the current session."""
        return [m.model_dump(mode="json") for m in orchestrator.search(q)]

    return router
