from typing import Optional

import json
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from assistant.routers.errors import http_error
from assistant.services.orchestrator import MeetingError, MeetingOrchestrator
from assistant.services.persistence import GatewayError, PersistenceGateway


class StartMeetingRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    participants: list[str] = Field(default_factory=list)


def create_meetings_router(
    orchestrator: MeetingOrchestrator, gateway: PersistenceGateway
) -> APIRouter:
    router = APIRouter()
    logger = logging.getLogger("assistant.api.meetings")

    @router.get("/api/session")
    def session_state() -> dict:
        meeting = orchestrator.active_meeting
        active_filter = orchestrator.active_filter
        return {
            "active_meeting": meeting.model_dump(mode="json") if meeting else None,
            "busy": orchestrator.busy,
            "active_filter": active_filter.value if active_filter else None,
            "message_count": len(orchestrator.messages),
            "task_count": len(orchestrator.tasks),
        }

    @router.post("/api/meetings/start")
    def start_meeting(payload: StartMeetingRequest) -> dict:
        logger.info("Meeting start requested: title=%r", payload.title)
        try:
            meeting = orchestrator.start_meeting(
                payload.title, payload.description, payload.participants
            )
        except MeetingError as exc:
            raise http_error(exc) from exc
        return meeting.model_dump(mode="json")

    @router.post("/api/meetings/end")
    def end_meeting() -> dict:
        try:
            outcome = orchestrator.end_meeting()
        except MeetingError as exc:
            raise http_error(exc) from exc
        if outcome is None:
            return {"status": "idle", "meeting": None, "summary": None}
        return {
            "status": "ended",
            "meeting": outcome.meeting.model_dump(mode="json"),
            "summary": outcome.summary.model_dump(mode="json") if outcome.summary else None,
        }

    @router.get("/api/meetings")
    def list_meetings() -> list[dict]:
        try:
            meetings = gateway.list_meetings()
        except GatewayError as exc:
            logger.warning("Listing meetings failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return [meeting.model_dump(mode="json") for meeting in meetings]

    @router.get("/api/meetings/summaries")
    def meeting_summaries() -> list[dict]:
        try:
            entries = orchestrator.meeting_summaries()
        except MeetingError as exc:
            raise http_error(exc) from exc
        return [
            {
                "meeting": entry["meeting"].model_dump(mode="json"),
                "summary": entry["summary"].model_dump(mode="json") if entry["summary"] else None,
            }
            for entry in entries
        ]

    @router.get("/api/meetings/{meeting_id}/messages")
    def meeting_messages(meeting_id: str) -> list[dict]:
        try:
            meeting = gateway.get_meeting(meeting_id)
            if not meeting:
                raise HTTPException(status_code=404, detail="Meeting not found")
            messages = gateway.list_messages(meeting_id)
        except GatewayError as exc:
            logger.warning("Listing messages failed: meeting=%s error=%s", meeting_id, exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return [message.model_dump(mode="json") for message in messages]

    @router.get("/api/events")
    def events() -> StreamingResponse:
        logger.info("Events SSE connected")
        bus = orchestrator.events

        def event_stream():
            cursor = 0
            while True:
                # Block until events are available; wake every 5s for a heartbeat
                events, cursor = bus.wait_for_events(cursor, timeout=5.0)
                for event in events:
                    yield f"data: {json.dumps(event)}\n\n"
                if not events:
                    yield "data: {\"type\":\"heartbeat\"}\n\n"

        return StreamingResponse(event_stream(), media_type="text/event-stream")

    return router
