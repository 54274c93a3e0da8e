"""
Shared fixtures for the meeting assistant tests.

Provides:
- AppContext rooted in a temporary directory
- JsonMeetingStore on disk (tmp_path)
- Mock AIService (bypasses every LLM and speech API)
- Orchestrator wired to the store, the mock AI and a fresh EventBus
"""

from unittest.mock import MagicMock

import pytest

from assistant.context import AppContext
from assistant.models import Classification
from assistant.services.ai_service import AIService
from assistant.services.events import EventBus
from assistant.services.orchestrator import MeetingOrchestrator
from assistant.services.persistence import JsonMeetingStore


@pytest.fixture
def ctx(tmp_path) -> AppContext:
    data_dir = tmp_path / "data"
    context = AppContext(
        cwd=str(tmp_path),
        data_dir=str(data_dir),
        default_data_dir=str(data_dir),
        config_path=str(data_dir / "config.json"),
    )
    context.ensure_dirs()
    return context


@pytest.fixture
def store(ctx) -> JsonMeetingStore:
    return JsonMeetingStore(ctx.meetings_dir, ctx.uploads_dir)


@pytest.fixture
def mock_ai() -> MagicMock:
    """AIService stand-in: every message is 'general' with no tasks."""
    ai = MagicMock(spec=AIService)
    ai.classify.return_value = Classification(response="Entendido.", category="general", tasks=[])
    ai.summarize.return_value = {"summary": "Resumen de la reunión."}
    ai.transcribe.return_value = "Texto transcrito"
    ai.speak.return_value = "UklGRg=="
    return ai


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def orchestrator(store, mock_ai, events) -> MeetingOrchestrator:
    return MeetingOrchestrator(store, mock_ai, events)


@pytest.fixture
def notifications(events):
    """Callable returning every notification payload published so far."""
    def _collect() -> list[dict]:
        published, _ = events.get_events_since(0)
        return [event["data"] for event in published if event["type"] == "notification"]
    return _collect
