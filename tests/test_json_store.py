"""JsonMeetingStore: one JSON document per meeting under the meetings dir."""

import json
import os

import pytest

from assistant.models import MeetingStatus, MessageCategory, MessageType, Person, TaskStatus
from assistant.services.persistence import GatewayError, JsonMeetingStore, sanitize_filename


class TestMeetings:
    def test_create_writes_timestamped_file(self, store, ctx):
        meeting = store.create_meeting("Standup", "Daily", ["Ana"])

        names = os.listdir(ctx.meetings_dir)
        assert len(names) == 1
        assert names[0].endswith(f"__{meeting.id}.json")
        with open(os.path.join(ctx.meetings_dir, names[0]), encoding="utf-8") as f:
            document = json.load(f)
        assert document["title"] == "Standup"
        assert document["status"] == "planned"
        assert document["messages"] == [] and document["tasks"] == []

    def test_update_and_reload_from_new_instance(self, store, ctx):
        meeting = store.create_meeting("Standup")
        store.update_meeting(meeting.id, status=MeetingStatus.IN_PROGRESS)

        reopened = JsonMeetingStore(ctx.meetings_dir, ctx.uploads_dir)
        assert reopened.get_meeting(meeting.id).status == MeetingStatus.IN_PROGRESS

    def test_update_rejects_unknown_fields(self, store):
        meeting = store.create_meeting("Standup")
        with pytest.raises(GatewayError):
            store.update_meeting(meeting.id, owner="someone")

    def test_update_missing_meeting_raises(self, store):
        with pytest.raises(GatewayError):
            store.update_meeting("missing", status=MeetingStatus.COMPLETED)

    def test_list_meetings_newest_first(self, store):
        first = store.create_meeting("Primera")
        second = store.create_meeting("Segunda")

        assert [m.id for m in store.list_meetings()] == [second.id, first.id]

    def test_get_missing_meeting_returns_none(self, store):
        assert store.get_meeting("missing") is None


class TestMessagesAndTasks:
    def test_messages_round_trip_in_order(self, store):
        meeting = store.create_meeting("Standup")
        store.add_message(meeting.id, {
            "type": MessageType.USER,
            "content": "Hola",
            "sender": Person(id="u1", name="Ana"),
        })
        store.add_message(meeting.id, {
            "type": MessageType.ASSISTANT,
            "content": "Entendido",
            "category": MessageCategory.GENERAL,
        })

        messages = store.list_messages(meeting.id)
        assert [m.content for m in messages] == ["Hola", "Entendido"]
        assert messages[0].sender.name == "Ana"
        assert messages[1].category == MessageCategory.GENERAL

    def test_add_message_to_missing_meeting_raises(self, store):
        with pytest.raises(GatewayError):
            store.add_message("missing", {"type": "user", "content": "Hola"})

    def test_tasks_found_across_meeting_files(self, store):
        first = store.create_meeting("Primera")
        second = store.create_meeting("Segunda")
        store.add_task(first.id, {"title": "Tarea A"})
        task_b = store.add_task(second.id, {"title": "Tarea B", "assignee": Person(name="Juan")})

        assert {t.title for t in store.list_tasks()} == {"Tarea A", "Tarea B"}
        assert [t.title for t in store.list_tasks(first.id)] == ["Tarea A"]

        updated = store.update_task_status(task_b.id, TaskStatus.IN_PROGRESS)
        assert updated.status == TaskStatus.IN_PROGRESS
        assert store.list_tasks(second.id)[0].status == TaskStatus.IN_PROGRESS
        assert store.list_tasks(second.id)[0].assignee.name == "Juan"

    def test_update_missing_task_raises(self, store):
        store.create_meeting("Standup")
        with pytest.raises(GatewayError):
            store.update_task_status("missing", TaskStatus.COMPLETED)

    def test_unreadable_file_is_skipped(self, store, ctx):
        store.create_meeting("Standup")
        with open(os.path.join(ctx.meetings_dir, "broken__x.json"), "w", encoding="utf-8") as f:
            f.write("{not json")

        assert [m.title for m in store.list_meetings()] == ["Standup"]


class TestAudio:
    def test_upload_and_download(self, store, ctx):
        path = store.upload_audio("grabación 1.webm", b"RIFF....")

        assert os.path.dirname(path) == ctx.uploads_dir
        assert path.endswith(".webm")
        assert store.download_audio(path) == b"RIFF...."

    @pytest.mark.parametrize("name, expected", [
        ("grabación 1.webm", "grabaci_n_1.webm"),
        ("../../clip.wav", ".._.._clip.wav"),
        ("", "recording.webm"),
    ])
    def test_sanitize_filename(self, name, expected):
        assert sanitize_filename(name) == expected

    def test_download_outside_uploads_dir_rejected(self, store, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("x")

        with pytest.raises(GatewayError):
            store.download_audio(str(outside))
