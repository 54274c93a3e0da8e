"""HTTP API through FastAPI's TestClient, with the AI service mocked."""

import os

import pytest
from fastapi.testclient import TestClient

from assistant.main import build_app
from assistant.models import Classification
from assistant.services.llm import LLMProviderError
from assistant.services.persistence import GatewayError
from assistant.services.speech import SpeechProviderError


@pytest.fixture
def client(ctx, store, mock_ai, orchestrator) -> TestClient:
    app = build_app(ctx, store, mock_ai, orchestrator, version="v-test")
    return TestClient(app)


def _start(client, title="Standup") -> dict:
    response = client.post("/api/meetings/start", json={"title": title, "participants": ["Ana"]})
    assert response.status_code == 200
    return response.json()


class TestHealthAndSession:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.json() == {"status": "ok", "version": "v-test"}
        assert response.headers["Cache-Control"].startswith("no-cache")

    def test_session_without_meeting(self, client):
        body = client.get("/api/session").json()
        assert body["active_meeting"] is None
        assert body["busy"] is False
        assert body["message_count"] == 0


class TestMeetingsApi:
    def test_start_and_end(self, client):
        meeting = _start(client)
        assert meeting["status"] == "in-progress"
        assert client.get("/api/session").json()["active_meeting"]["id"] == meeting["id"]

        ended = client.post("/api/meetings/end").json()
        assert ended["status"] == "ended"
        assert ended["meeting"]["status"] == "completed"
        assert ended["summary"]["content"] == "Resumen de la reunión."

        summaries = client.get("/api/meetings/summaries").json()
        assert summaries[0]["meeting"]["id"] == meeting["id"]

    def test_end_without_meeting_is_idle(self, client):
        assert client.post("/api/meetings/end").json()["status"] == "idle"

    def test_end_with_failing_summary_is_502(self, client, mock_ai):
        _start(client)
        mock_ai.summarize.side_effect = LLMProviderError("no model")

        assert client.post("/api/meetings/end").status_code == 502
        assert client.get("/api/session").json()["active_meeting"] is None

    def test_blank_title_is_422(self, client):
        assert client.post("/api/meetings/start", json={"title": ""}).status_code == 422

    def test_list_meetings_and_messages(self, client):
        meeting = _start(client)
        client.post("/api/messages", json={"content": "Hola"})

        meetings = client.get("/api/meetings").json()
        assert [m["id"] for m in meetings] == [meeting["id"]]
        messages = client.get(f"/api/meetings/{meeting['id']}/messages").json()
        assert [m["type"] for m in messages] == ["user", "assistant"]

    def test_unknown_meeting_messages_404(self, client):
        assert client.get("/api/meetings/missing/messages").status_code == 404

    def test_gateway_failure_is_502(self, client, store, monkeypatch):
        def broken(*args, **kwargs):
            raise GatewayError("down")

        monkeypatch.setattr(store, "create_meeting", broken)
        assert client.post("/api/meetings/start", json={"title": "Standup"}).status_code == 502


class TestMessagesApi:
    def test_post_without_meeting_is_409(self, client):
        assert client.post("/api/messages", json={"content": "Hola"}).status_code == 409

    def test_post_user_message_returns_reply_and_tasks(self, client, mock_ai):
        mock_ai.classify.return_value = Classification.model_validate({
            "response": "Tarea registrada",
            "category": "task",
            "tasks": [{"title": "Revisar PR", "assignee": "Juan"}],
        })
        _start(client)

        body = client.post("/api/messages", json={"content": "Juan revisa el PR"}).json()

        assert body["message"]["type"] == "user"
        assert [m["type"] for m in body["messages"]] == ["user", "assistant"]
        assert body["tasks"][0]["from_message_id"] == body["message"]["id"]

    def test_user_message_with_category_is_400(self, client):
        _start(client)
        response = client.post("/api/messages", json={"content": "Hola", "category": "task"})
        assert response.status_code == 400

    def test_filter_and_log(self, client):
        _start(client)
        client.post("/api/messages", json={"content": "Hola"})
        client.post(
            "/api/messages",
            json={"type": "assistant", "content": "CI bloqueado", "category": "blocker"},
        )

        assert len(client.get("/api/messages").json()) == 3
        assert len(client.get("/api/messages", params={"category": "blocker"}).json()) == 1

        assert client.put("/api/messages/filter", json={"category": "blocker"}).json() == {
            "active_filter": "blocker"
        }
        assert [m["content"] for m in client.get("/api/log").json()] == ["CI bloqueado"]

        client.put("/api/messages/filter", json={"category": None})
        assert len(client.get("/api/log").json()) == 2

    def test_invalid_category_is_422(self, client):
        assert client.get("/api/messages", params={"category": "urgent"}).status_code == 422

    def test_search(self, client):
        _start(client)
        client.post("/api/messages", json={"content": "Hola"})

        assert len(client.get("/api/search", params={"q": "entendido"}).json()) == 1
        assert client.get("/api/search", params={"q": ""}).json() == []


class TestTasksApi:
    def test_create_and_update(self, client):
        meeting = _start(client)
        task = client.post(
            "/api/tasks",
            json={"title": "Revisar PR", "assignee": {"id": "juan", "name": "Juan"}},
        ).json()
        assert task["status"] == "pending"

        updated = client.patch(f"/api/tasks/{task['id']}", json={"status": "in-progress"}).json()
        assert updated["status"] == "in-progress"

        grouped = client.get("/api/tasks").json()
        assert [t["id"] for t in grouped["in-progress"]] == [task["id"]]

        history = client.get("/api/tasks", params={"meeting_id": meeting["id"]}).json()
        assert [t["id"] for t in history["in-progress"]] == [task["id"]]

    def test_tasks_of_unknown_meeting_404(self, client):
        assert client.get("/api/tasks", params={"meeting_id": "missing"}).status_code == 404

    def test_create_without_meeting_is_409(self, client):
        assert client.post("/api/tasks", json={"title": "Revisar PR"}).status_code == 409

    def test_bad_message_reference_is_400(self, client):
        _start(client)
        response = client.post("/api/tasks", json={"title": "Revisar PR", "from_message_id": "nope"})
        assert response.status_code == 400

    def test_unknown_task_is_502(self, client):
        _start(client)
        assert client.patch("/api/tasks/missing", json={"status": "completed"}).status_code == 502


class TestSpeechApi:
    def test_transcribe_and_post(self, client, mock_ai, ctx):
        _start(client)
        response = client.post(
            "/api/speech/transcribe",
            files={"file": ("clip.webm", b"audio-bytes", "audio/webm")},
            data={"post_as_message": "true"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["text"] == "Texto transcrito"
        assert body["audio_path"].startswith(ctx.uploads_dir)
        assert body["message"]["content"] == "Texto transcrito"
        mock_ai.transcribe.assert_called_once_with(b"audio-bytes", mime_type="audio/webm")

    def test_transcribe_without_posting(self, client):
        response = client.post(
            "/api/speech/transcribe",
            files={"file": ("clip.webm", b"audio-bytes", "audio/webm")},
        )
        assert response.json()["message"] is None

    def test_transcription_failure_is_502(self, client, mock_ai):
        mock_ai.transcribe.side_effect = SpeechProviderError("empty")
        response = client.post(
            "/api/speech/transcribe",
            files={"file": ("clip.webm", b"audio-bytes", "audio/webm")},
        )
        assert response.status_code == 502

    def test_post_without_meeting_is_409_before_upload(self, client, mock_ai, ctx):
        response = client.post(
            "/api/speech/transcribe",
            files={"file": ("clip.webm", b"audio-bytes", "audio/webm")},
            data={"post_as_message": "true"},
        )

        assert response.status_code == 409
        mock_ai.transcribe.assert_not_called()
        assert os.listdir(ctx.uploads_dir) == []

    def test_empty_upload_is_400(self, client):
        response = client.post(
            "/api/speech/transcribe",
            files={"file": ("clip.webm", b"", "audio/webm")},
        )
        assert response.status_code == 400

    def test_speak(self, client, mock_ai):
        body = client.post("/api/speech/speak", json={"text": "Hola"}).json()
        assert body == {"audio": "UklGRg==", "mime_type": "audio/mpeg"}
        mock_ai.speak.assert_called_once_with("Hola", voice_id=None)


class TestSettingsApi:
    def test_models_round_trip(self, client, ctx):
        response = client.post("/api/settings/models", json={
            "selected_model": "anthropic:claude-3-5-sonnet-latest",
            "providers": {"anthropic": {"api_key": "ak"}},
        })
        assert response.json() == {"status": "ok"}

        body = client.get("/api/settings/models").json()
        assert body["selected_model"] == "anthropic:claude-3-5-sonnet-latest"
        assert body["providers"]["anthropic"]["api_key"] == "ak"
        assert ctx.read_config()["models"]["selected_model"].startswith("anthropic:")

    @pytest.mark.parametrize("selected", ["gpt-4o", "mistral:large"])
    def test_invalid_model_is_400(self, client, selected):
        response = client.post("/api/settings/models", json={"selected_model": selected})
        assert response.status_code == 400

    def test_persistence_requires_supabase_credentials(self, client):
        response = client.post("/api/settings/persistence", json={"backend": "supabase"})
        assert response.status_code == 400

        response = client.post("/api/settings/persistence", json={
            "backend": "supabase",
            "supabase_url": "https://proj.supabase.co",
            "supabase_key": "anon",
        })
        assert response.json()["restart_required"] is True
        assert client.get("/api/settings/persistence").json()["backend"] == "supabase"

    def test_speech_settings(self, client):
        client.post("/api/settings/speech", json={"transcription_provider": "openai"})
        body = client.get("/api/settings/speech").json()
        assert body["transcription_provider"] == "openai"
        assert body["voice_id"] == "CwhRBWXzGAHq8TQ4Fs17"
