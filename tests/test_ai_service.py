"""AIService provider resolution from config.json and result normalization."""

import base64
from unittest.mock import patch

import pytest

from assistant.models import FALLBACK_RESPONSE, MessageCategory
from assistant.services.ai_service import EMPTY_SUMMARY, AIService
from assistant.services.llm import (
    AnthropicProvider,
    GeminiProvider,
    GrokProvider,
    LLMProviderError,
    OpenAIProvider,
)
from assistant.services.speech import (
    ElevenLabsSynthesizer,
    GeminiTranscriber,
    OpenAITranscriber,
    SpeechProviderError,
)


@pytest.fixture
def service(ctx) -> AIService:
    ctx.update_config_section("models", {"selected_model": "openai:gpt-4o"})
    ctx.update_config_section("providers", {
        "openai": {"api_key": "sk-test", "base_url": ""},
        "anthropic": {"api_key": "ak"},
        "gemini": {"api_key": "gk"},
        "grok": {"api_key": "xk"},
        "lmstudio": {"base_url": "http://localhost:1234"},
    })
    return AIService(ctx)


class TestProviderResolution:
    def test_selected_model(self, service):
        provider = service._get_provider()
        assert isinstance(provider, OpenAIProvider)
        assert provider._model == "gpt-4o"

    @pytest.mark.parametrize("override, expected", [
        ("anthropic:claude-3-5-sonnet-latest", AnthropicProvider),
        ("gemini:gemini-1.5-flash", GeminiProvider),
        ("grok:grok-2", GrokProvider),
        ("lmstudio:local-model", OpenAIProvider),
    ])
    def test_override(self, service, override, expected):
        assert isinstance(service._get_provider(override), expected)

    def test_provider_only_override_keeps_selected_model(self, service):
        provider = service._get_provider("anthropic")
        assert isinstance(provider, AnthropicProvider)
        assert provider._model == "gpt-4o"

    def test_missing_selection_raises(self, ctx):
        with pytest.raises(LLMProviderError):
            AIService(ctx)._get_provider()

    def test_malformed_selection_raises(self, ctx):
        ctx.update_config_section("models", {"selected_model": "gpt-4o"})
        with pytest.raises(LLMProviderError):
            AIService(ctx)._get_provider()

    def test_missing_api_key_raises(self, service, ctx):
        ctx.update_config_section("providers", {"openai": {"api_key": ""}})
        with pytest.raises(LLMProviderError):
            service._get_provider()

    def test_unknown_provider_raises(self, service):
        with pytest.raises(LLMProviderError):
            service._get_provider("mistral:large")

    def test_config_changes_apply_without_restart(self, service, ctx):
        ctx.update_config_section("models", {"selected_model": "grok:grok-2"})
        assert isinstance(service._get_provider(), GrokProvider)


class TestOperations:
    def test_classify_validates_provider_output(self, service):
        raw = {"response": "Bloqueo anotado", "category": "blocker", "tasks": [{"title": "Arreglar CI"}]}
        with patch.object(OpenAIProvider, "classify", return_value=raw):
            classification = service.classify("El CI falla")

        assert classification.category == MessageCategory.BLOCKER
        assert classification.tasks[0].title == "Arreglar CI"

    def test_classify_blank_text_skips_provider(self, service):
        with patch.object(OpenAIProvider, "classify") as mock_classify:
            classification = service.classify("   ")

        mock_classify.assert_not_called()
        assert classification.response == FALLBACK_RESPONSE

    def test_blank_summary_replaced(self, service):
        with patch.object(OpenAIProvider, "summarize_conversation", return_value=""):
            assert service.summarize([]) == {"summary": EMPTY_SUMMARY}

    def test_summary_passes_transcript(self, service):
        transcript = [{"role": "user", "content": "Hola"}]
        with patch.object(OpenAIProvider, "summarize_conversation", return_value="Resumen") as mock_sum:
            assert service.summarize(transcript) == {"summary": "Resumen"}
        mock_sum.assert_called_once_with(transcript)


class TestSpeech:
    def test_default_transcriber_is_gemini(self, service):
        assert isinstance(service._get_transcriber(), GeminiTranscriber)

    def test_openai_transcriber_from_config(self, service, ctx):
        ctx.update_config_section("speech", {"transcription_provider": "openai"})
        assert isinstance(service._get_transcriber(), OpenAITranscriber)

    def test_transcriber_missing_key_is_speech_error(self, service, ctx):
        ctx.update_config_section("providers", {})
        with pytest.raises(SpeechProviderError):
            service._get_transcriber()

    def test_empty_audio_rejected(self, service):
        with pytest.raises(SpeechProviderError):
            service.transcribe(b"")

    def test_empty_transcription_raises(self, service):
        with patch.object(GeminiTranscriber, "transcribe", return_value=""):
            with pytest.raises(SpeechProviderError):
                service.transcribe(b"audio")

    def test_speak_requires_elevenlabs_key(self, service):
        with pytest.raises(SpeechProviderError):
            service.speak("Hola")

    def test_speak_returns_base64(self, service, ctx):
        ctx.update_config_section("speech", {"elevenlabs_api_key": "el", "voice_id": "v1"})
        with patch.object(ElevenLabsSynthesizer, "synthesize", return_value=b"mp3") as mock_synth:
            encoded = service.speak("Hola")

        assert base64.b64decode(encoded) == b"mp3"
        mock_synth.assert_called_once_with("Hola", voice_id=None)
