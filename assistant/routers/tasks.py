from datetime import datetime
from typing import Optional

import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from assistant.models import Person, TaskStatus
from assistant.routers.errors import http_error
from assistant.services.orchestrator import MeetingError, MeetingOrchestrator
from assistant.services.persistence import GatewayError, PersistenceGateway


class CreateTaskRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    assignee: Optional[Person] = None
    due_date: Optional[datetime] = None
    from_message_id: Optional[str] = None


class UpdateTaskStatusRequest(BaseModel):
    status: TaskStatus


def create_tasks_router(
    orchestrator: MeetingOrchestrator, gateway: PersistenceGateway
) -> APIRouter:
    router = APIRouter()
    logger = logging.getLogger("assistant.api.tasks")

    @router.get("/api/tasks")
    def list_tasks(meeting_id: Optional[str] = Query(None)) -> dict:
        """Tasks grouped by status; ``meeting_id`` reads a stored meeting instead."""
        if not meeting_id:
            grouped = orchestrator.tasks_by_status()
        else:
            try:
                if not gateway.get_meeting(meeting_id):
                    raise HTTPException(status_code=404, detail="Meeting not found")
                stored = gateway.list_tasks(meeting_id)
            except GatewayError as exc:
                logger.warning("Listing tasks failed: meeting=%s error=%s", meeting_id, exc)
                raise HTTPException(status_code=502, detail=str(exc)) from exc
            grouped = {status.value: [] for status in TaskStatus}
            for task in stored:
                grouped[task.status.value].append(task)
        return {
            status: [task.model_dump(mode="json") for task in tasks]
            for status, tasks in grouped.items()
        }

    @router.post("/api/tasks")
    def create_task(payload: CreateTaskRequest) -> dict:
        try:
            task = orchestrator.add_task(**payload.model_dump(exclude_none=True))
        except MeetingError as exc:
            raise http_error(exc) from exc
        return task.model_dump(mode="json")

    @router.patch("/api/tasks/{task_id}")
    def update_task_status(task_id: str, payload: UpdateTaskStatusRequest) -> dict:
        logger.info("Task status update: id=%s status=%s", task_id, payload.status.value)
        try:
            task = orchestrator.update_task_status(task_id, payload.status)
        except MeetingError as exc:
            raise http_error(exc) from exc
        return task.model_dump(mode="json")

    return router
