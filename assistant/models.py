"""Domain models shared by the orchestrator, the gateways and the API."""
from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

_logger = logging.getLogger("assistant.models")


class MeetingStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class MessageType(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageCategory(str, Enum):
    TASK = "task"
    DEFINITION = "definition"
    BLOCKER = "blocker"
    GENERAL = "general"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Person(BaseModel):
    """Message sender or task assignee."""
    id: str = ""
    name: str = ""
    avatar: str = ""


class Meeting(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: MeetingStatus = MeetingStatus.PLANNED
    participants: list[str] = Field(default_factory=list)
    created_at: datetime

    @field_validator("participants", mode="before")
    @classmethod
    def _null_participants(cls, value: Any) -> Any:
        return value or []


class Message(BaseModel):
    id: str
    meeting_id: str
    type: MessageType
    content: str
    timestamp: datetime
    sender: Optional[Person] = None
    category: Optional[MessageCategory] = None

    @model_validator(mode="after")
    def _category_only_on_assistant(self) -> "Message":
        if self.type == MessageType.USER and self.category is not None:
            raise ValueError("user messages cannot carry a category")
        return self


class Task(BaseModel):
    id: str
    meeting_id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    assignee: Optional[Person] = None
    due_date: Optional[datetime] = None
    created_at: datetime
    from_message_id: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value: Any) -> Any:
        return value or ""


def _coerce_person(value: Any) -> Any:
    if isinstance(value, str):
        name = value.strip()
        return Person(id=name, name=name) if name else None
    return value


def _coerce_due_date(value: Any) -> Any:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        _logger.warning("Dropping unparseable due date: %r", text[:80])
        return None


class TaskProposal(BaseModel):
    """Unsaved task candidate extracted from a message by the classifier."""
    title: str = Field(..., min_length=1)
    description: str = ""
    assignee: Optional[Person] = None
    due_date: Optional[datetime] = Field(None, validation_alias=AliasChoices("due_date", "dueDate"))

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value: Any) -> Any:
        return value or ""

    @field_validator("assignee", mode="before")
    @classmethod
    def _assignee_from_name(cls, value: Any) -> Any:
        return _coerce_person(value)

    @field_validator("due_date", mode="before")
    @classmethod
    def _parse_due_date(cls, value: Any) -> Any:
        return _coerce_due_date(value)


FALLBACK_RESPONSE = "He registrado tu mensaje."


class Classification(BaseModel):
    response: str = FALLBACK_RESPONSE
    category: MessageCategory = MessageCategory.GENERAL
    tasks: list[TaskProposal] = Field(default_factory=list)

    @field_validator("response", mode="before")
    @classmethod
    def _blank_response(cls, value: Any) -> Any:
        text = str(value or "").strip()
        return text or FALLBACK_RESPONSE

    @field_validator("category", mode="before")
    @classmethod
    def _unknown_category(cls, value: Any) -> Any:
        try:
            return MessageCategory(str(value).strip().lower())
        except ValueError:
            return MessageCategory.GENERAL

    @field_validator("tasks", mode="before")
    @classmethod
    def _drop_malformed_tasks(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        proposals: list[TaskProposal] = []
        for item in value:
            if not isinstance(item, dict):
                continue
            try:
                proposals.append(TaskProposal.model_validate(item))
            except ValueError as exc:
                _logger.warning("Dropping malformed task proposal: %s", exc)
        return proposals

    @classmethod
    def fallback(cls) -> "Classification":
        return cls()


class Notification(BaseModel):
    """Toast-style outcome of an orchestrator operation."""
    title: str
    description: str = ""
    variant: str = "default"
