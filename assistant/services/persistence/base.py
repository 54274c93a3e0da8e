from __future__ import annotations

import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from assistant.models import Meeting, MeetingStatus, Message, Task, TaskStatus


class GatewayError(RuntimeError):
    pass


def sanitize_filename(name: str) -> str:
    """Reduce an uploaded file name to a safe storage name."""
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", name or "")
    return cleaned or "recording.webm"


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class PersistenceGateway(ABC):
    """Record storage for meetings, messages and tasks plus audio objects.

    Implementations assign ids and timestamps and return canonical models.
    """

    @abstractmethod
    def create_meeting(
        self,
        title: str,
        description: Optional[str] = None,
        participants: Optional[list[str]] = None,
    ) -> Meeting:
        raise NotImplementedError

    @abstractmethod
    def update_meeting(self, meeting_id: str, **fields) -> Meeting:
        raise NotImplementedError

    @abstractmethod
    def list_meetings(self) -> list[Meeting]:
        """Return all meetings, newest first."""
        raise NotImplementedError

    @abstractmethod
    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        raise NotImplementedError

    @abstractmethod
    def add_message(self, meeting_id: str, fields: dict) -> Message:
        raise NotImplementedError

    @abstractmethod
    def list_messages(self, meeting_id: str) -> list[Message]:
        """Return a meeting's messages, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def add_task(self, meeting_id: str, fields: dict) -> Task:
        raise NotImplementedError

    @abstractmethod
    def list_tasks(self, meeting_id: Optional[str] = None) -> list[Task]:
        """Return tasks (all meetings when meeting_id is None), newest first."""
        raise NotImplementedError

    @abstractmethod
    def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        raise NotImplementedError

    @abstractmethod
    def upload_audio(self, filename: str, data: bytes) -> str:
        """Store an audio blob and return the path it can be fetched by."""
        raise NotImplementedError

    @abstractmethod
    def download_audio(self, path: str) -> bytes:
        raise NotImplementedError

    # ── Record builders shared by implementations ─────────────────────

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _meeting_record(
        self, title: str, description: Optional[str], participants: Optional[list[str]]
    ) -> dict:
        return {
            "id": self._new_id(),
            "title": title,
            "description": description,
            "participants": list(participants or []),
            "status": MeetingStatus.PLANNED.value,
            "created_at": self._now_iso(),
        }

    def _message_record(self, meeting_id: str, fields: dict) -> dict:
        sender = fields.get("sender")
        if hasattr(sender, "model_dump"):
            sender = sender.model_dump()
        return {
            "id": self._new_id(),
            "meeting_id": meeting_id,
            "type": _enum_value(fields["type"]),
            "content": fields.get("content", ""),
            "timestamp": self._now_iso(),
            "sender": sender,
            "category": _enum_value(fields.get("category")),
        }

    def _task_record(self, meeting_id: str, fields: dict) -> dict:
        assignee = fields.get("assignee")
        if hasattr(assignee, "model_dump"):
            assignee = assignee.model_dump()
        due_date = fields.get("due_date")
        if isinstance(due_date, datetime):
            due_date = due_date.isoformat()
        return {
            "id": self._new_id(),
            "meeting_id": meeting_id,
            "title": fields["title"],
            "description": fields.get("description") or "",
            "status": _enum_value(fields.get("status") or TaskStatus.PENDING),
            "assignee": assignee,
            "due_date": due_date,
            "created_at": self._now_iso(),
            "from_message_id": fields.get("from_message_id"),
        }

    @staticmethod
    def _meeting_update_fields(fields: dict) -> dict:
        allowed = ("title", "description", "status", "participants")
        unknown = set(fields) - set(allowed)
        if unknown:
            raise GatewayError(f"Unknown meeting fields: {sorted(unknown)}")
        return {key: _enum_value(value) for key, value in fields.items()}
