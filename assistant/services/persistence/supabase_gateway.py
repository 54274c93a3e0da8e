"""Persistence on a Supabase project via its PostgREST and storage endpoints."""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Optional

import requests

from assistant.models import Meeting, Message, Task, TaskStatus
from assistant.services.persistence.base import GatewayError, PersistenceGateway, sanitize_filename


class SupabaseGateway(PersistenceGateway):
    """Tables ``meetings``, ``messages`` and ``tasks``; audio in a storage bucket.

    ``sender`` and ``assignee`` columns hold JSON-encoded strings.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        audio_bucket: str = "audio-recordings",
        timeout: int = 30,
    ) -> None:
        if not url or not api_key:
            raise GatewayError("Supabase url and key are required")
        self._base_url = url.rstrip("/")
        self._api_key = api_key
        self._bucket = audio_bucket
        self._timeout = timeout
        self._logger = logging.getLogger("assistant.supabase")

    def _headers(self, **extra: str) -> dict:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }
        headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json_body: Any = None,
        data: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                params=params,
                json=json_body,
                data=data,
                headers=headers or self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError("Failed to reach Supabase") from exc

        if response.status_code >= 300:
            self._logger.error(
                "Supabase error: %s %s -> %s %s",
                method, path, response.status_code, response.text[:500],
            )
            raise GatewayError(f"Supabase error: {response.status_code}")
        return response

    def _rest(self, method: str, table: str, *, params: Optional[dict] = None, body: Any = None) -> list:
        headers = self._headers(**{
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        })
        response = self._request(
            method, f"/rest/v1/{table}", params=params, json_body=body, headers=headers
        )
        rows = response.json()
        if not isinstance(rows, list):
            raise GatewayError(f"Unexpected Supabase response for {table}")
        return rows

    @staticmethod
    def _first(rows: list, what: str) -> dict:
        if not rows:
            raise GatewayError(f"{what} not found")
        return rows[0]

    @staticmethod
    def _encode_json_column(value: Any) -> Optional[str]:
        return json.dumps(value) if value else None

    @staticmethod
    def _decode_json_column(row: dict, column: str) -> dict:
        value = row.get(column)
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                value = None
        return {**row, column: value or None}

    # ── Meetings ──────────────────────────────────────────────────────

    def create_meeting(
        self,
        title: str,
        description: Optional[str] = None,
        participants: Optional[list[str]] = None,
    ) -> Meeting:
        record = self._meeting_record(title, description, participants)
        rows = self._rest("POST", "meetings", body=[record])
        return Meeting.model_validate(self._first(rows, "Created meeting"))

    def update_meeting(self, meeting_id: str, **fields) -> Meeting:
        updates = self._meeting_update_fields(fields)
        rows = self._rest("PATCH", "meetings", params={"id": f"eq.{meeting_id}"}, body=updates)
        return Meeting.model_validate(self._first(rows, f"Meeting {meeting_id}"))

    def list_meetings(self) -> list[Meeting]:
        rows = self._rest("GET", "meetings", params={"select": "*", "order": "created_at.desc"})
        return [Meeting.model_validate(row) for row in rows]

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        rows = self._rest("GET", "meetings", params={"select": "*", "id": f"eq.{meeting_id}"})
        return Meeting.model_validate(rows[0]) if rows else None

    # ── Messages ──────────────────────────────────────────────────────

    def add_message(self, meeting_id: str, fields: dict) -> Message:
        record = self._message_record(meeting_id, fields)
        record["sender"] = self._encode_json_column(record["sender"])
        rows = self._rest("POST", "messages", body=[record])
        row = self._first(rows, "Created message")
        return Message.model_validate(self._decode_json_column(row, "sender"))

    def list_messages(self, meeting_id: str) -> list[Message]:
        rows = self._rest(
            "GET",
            "messages",
            params={"select": "*", "meeting_id": f"eq.{meeting_id}", "order": "timestamp.asc"},
        )
        return [Message.model_validate(self._decode_json_column(row, "sender")) for row in rows]

    # ── Tasks ─────────────────────────────────────────────────────────

    def add_task(self, meeting_id: str, fields: dict) -> Task:
        record = self._task_record(meeting_id, fields)
        record["assignee"] = self._encode_json_column(record["assignee"])
        rows = self._rest("POST", "tasks", body=[record])
        row = self._first(rows, "Created task")
        return Task.model_validate(self._decode_json_column(row, "assignee"))

    def list_tasks(self, meeting_id: Optional[str] = None) -> list[Task]:
        params = {"select": "*", "order": "created_at.desc"}
        if meeting_id:
            params["meeting_id"] = f"eq.{meeting_id}"
        rows = self._rest("GET", "tasks", params=params)
        return [Task.model_validate(self._decode_json_column(row, "assignee")) for row in rows]

    def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        rows = self._rest(
            "PATCH",
            "tasks",
            params={"id": f"eq.{task_id}"},
            body={"status": TaskStatus(status).value},
        )
        row = self._first(rows, f"Task {task_id}")
        return Task.model_validate(self._decode_json_column(row, "assignee"))

    # ── Audio ─────────────────────────────────────────────────────────

    def upload_audio(self, filename: str, data: bytes) -> str:
        name = f"recording-{uuid.uuid4().hex}-{sanitize_filename(filename)}"
        self._request(
            "POST",
            f"/storage/v1/object/{self._bucket}/{name}",
            data=data,
            headers=self._headers(**{"Content-Type": "application/octet-stream"}),
        )
        self._logger.info("Audio uploaded to bucket=%s name=%s", self._bucket, name)
        return name

    def download_audio(self, path: str) -> bytes:
        response = self._request("GET", f"/storage/v1/object/{self._bucket}/{path}")
        return response.content
