from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional

from assistant.models import Meeting, Message, Task, TaskStatus
from assistant.services.persistence.base import GatewayError, PersistenceGateway, sanitize_filename


class JsonMeetingStore(PersistenceGateway):
    """Local persistence: one JSON document per meeting.

    Each document holds the meeting fields plus its ``messages`` and
    ``tasks`` arrays. Files are named ``<local created_at>__<id>.json`` so a
    directory listing sorts chronologically.
    """

    SCHEMA_VERSION = 1

    def __init__(self, meetings_dir: str, uploads_dir: str) -> None:
        self._meetings_dir = meetings_dir
        self._uploads_dir = uploads_dir
        self._lock = threading.RLock()
        self._logger = logging.getLogger("assistant.meetings")
        os.makedirs(self._meetings_dir, exist_ok=True)
        os.makedirs(self._uploads_dir, exist_ok=True)

    def _list_meeting_paths(self) -> list[str]:
        try:
            names = os.listdir(self._meetings_dir)
        except OSError as exc:
            self._logger.warning("Failed to list meetings dir: %s", exc)
            return []
        return sorted(
            os.path.join(self._meetings_dir, name)
            for name in names
            if name.endswith(".json")
        )

    def _find_meeting_path(self, meeting_id: str) -> Optional[str]:
        suffix = f"__{meeting_id}.json"
        for path in self._list_meeting_paths():
            if os.path.basename(path).endswith(suffix):
                return path
        return None

    @staticmethod
    def _format_local_filename_dt(created_at: str) -> str:
        dt = datetime.fromisoformat(created_at)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        # Example: 20260211T093012-0800
        return dt.astimezone().strftime("%Y%m%dT%H%M%S%z")

    def _meeting_path_for_new(self, created_at: str, meeting_id: str) -> str:
        filename = f"{self._format_local_filename_dt(created_at)}__{meeting_id}.json"
        return os.path.join(self._meetings_dir, filename)

    def _read_meeting_file(self, path: str) -> Optional[dict]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.warning("Failed to read meeting file: %s error=%s", path, exc)
        return None

    def _write_meeting_file(self, path: str, document: dict) -> None:
        temp_path = f"{path}.tmp"
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
        except OSError as exc:
            raise GatewayError(f"Failed to write meeting file {path}") from exc

    def _load_document(self, meeting_id: str) -> tuple[str, dict]:
        path = self._find_meeting_path(meeting_id)
        document = self._read_meeting_file(path) if path else None
        if not path or document is None:
            raise GatewayError(f"Meeting not found: {meeting_id}")
        document.setdefault("messages", [])
        document.setdefault("tasks", [])
        return path, document

    @staticmethod
    def _meeting_from_document(document: dict) -> Meeting:
        return Meeting.model_validate(
            {key: value for key, value in document.items() if key not in ("messages", "tasks")}
        )

    # ── Meetings ──────────────────────────────────────────────────────

    def create_meeting(
        self,
        title: str,
        description: Optional[str] = None,
        participants: Optional[list[str]] = None,
    ) -> Meeting:
        record = self._meeting_record(title, description, participants)
        document = {
            **record,
            "schema_version": self.SCHEMA_VERSION,
            "messages": [],
            "tasks": [],
        }
        with self._lock:
            path = self._meeting_path_for_new(record["created_at"], record["id"])
            self._write_meeting_file(path, document)
        self._logger.info("Meeting created: id=%s title=%r", record["id"], title)
        return self._meeting_from_document(document)

    def update_meeting(self, meeting_id: str, **fields) -> Meeting:
        updates = self._meeting_update_fields(fields)
        with self._lock:
            path, document = self._load_document(meeting_id)
            document.update(updates)
            self._write_meeting_file(path, document)
        self._logger.info("Meeting updated: id=%s fields=%s", meeting_id, sorted(updates))
        return self._meeting_from_document(document)

    def list_meetings(self) -> list[Meeting]:
        with self._lock:
            meetings = [
                self._meeting_from_document(document)
                for document in map(self._read_meeting_file, self._list_meeting_paths())
                if document
            ]
        return sorted(meetings, key=lambda m: m.created_at, reverse=True)

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        with self._lock:
            path = self._find_meeting_path(meeting_id)
            document = self._read_meeting_file(path) if path else None
        return self._meeting_from_document(document) if document else None

    # ── Messages ──────────────────────────────────────────────────────

    def add_message(self, meeting_id: str, fields: dict) -> Message:
        record = self._message_record(meeting_id, fields)
        message = Message.model_validate(record)
        with self._lock:
            path, document = self._load_document(meeting_id)
            document["messages"].append(record)
            self._write_meeting_file(path, document)
        return message

    def list_messages(self, meeting_id: str) -> list[Message]:
        with self._lock:
            _, document = self._load_document(meeting_id)
        messages = [Message.model_validate(item) for item in document["messages"]]
        return sorted(messages, key=lambda m: m.timestamp)

    # ── Tasks ─────────────────────────────────────────────────────────

    def add_task(self, meeting_id: str, fields: dict) -> Task:
        record = self._task_record(meeting_id, fields)
        task = Task.model_validate(record)
        with self._lock:
            path, document = self._load_document(meeting_id)
            document["tasks"].append(record)
            self._write_meeting_file(path, document)
        return task

    def list_tasks(self, meeting_id: Optional[str] = None) -> list[Task]:
        with self._lock:
            if meeting_id:
                documents = [self._load_document(meeting_id)[1]]
            else:
                documents = [
                    document
                    for document in map(self._read_meeting_file, self._list_meeting_paths())
                    if document
                ]
        tasks = [
            Task.model_validate(item)
            for document in documents
            for item in document.get("tasks", [])
        ]
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        status_value = TaskStatus(status).value
        with self._lock:
            for path in self._list_meeting_paths():
                document = self._read_meeting_file(path)
                if not document:
                    continue
                for item in document.get("tasks", []):
                    if item.get("id") != task_id:
                        continue
                    item["status"] = status_value
                    self._write_meeting_file(path, document)
                    return Task.model_validate(item)
        raise GatewayError(f"Task not found: {task_id}")

    # ── Audio ─────────────────────────────────────────────────────────

    def upload_audio(self, filename: str, data: bytes) -> str:
        _, ext = os.path.splitext(sanitize_filename(filename))
        target_path = os.path.join(self._uploads_dir, f"{uuid.uuid4().hex}{ext.lower()}")
        try:
            with open(target_path, "wb") as output:
                output.write(data)
        except OSError as exc:
            raise GatewayError("Audio upload failed") from exc
        self._logger.info("Audio stored: %s (%d bytes)", target_path, len(data))
        return target_path

    def download_audio(self, path: str) -> bytes:
        uploads_root = os.path.realpath(self._uploads_dir)
        resolved = os.path.realpath(path)
        if os.path.commonpath([uploads_root, resolved]) != uploads_root:
            raise GatewayError(f"Audio path outside uploads dir: {path}")
        try:
            with open(resolved, "rb") as f:
                return f.read()
        except OSError as exc:
            raise GatewayError(f"Audio not found: {path}") from exc
