import base64
import logging
from typing import Optional

from assistant.context import AppContext
from assistant.models import Classification
from assistant.services.llm import (
    AnthropicProvider,
    GeminiProvider,
    GrokProvider,
    LLMProvider,
    LLMProviderError,
    OpenAIProvider,
)
from assistant.services.speech import (
    DEFAULT_VOICE_ID,
    ElevenLabsSynthesizer,
    GeminiTranscriber,
    OpenAITranscriber,
    SpeechProviderError,
    SpeechSynthesisProvider,
    TranscriptionProvider,
)

EMPTY_SUMMARY = "No se pudo generar un resumen."


class AIService:
    """Summaries, message classification, transcription and speech.

    Reads model selection from config.json on every call:
    - models.selected_model: format "provider:model_id" (e.g., "openai:gpt-4o")
    - providers.<provider>: api_key and base_url for each LLM provider
    - speech: transcription provider/model and ElevenLabs credentials
    """

    def __init__(self, ctx: AppContext) -> None:
        self._ctx = ctx
        self._logger = logging.getLogger("assistant.ai")

    def _get_selected_model(self) -> tuple[str, str]:
        """Get the selected model from config as (provider_name, model_id).

        Raises:
            LLMProviderError if no model is selected
        """
        selected = self._ctx.read_config().get("models", {}).get("selected_model", "")
        if not selected:
            raise LLMProviderError(
                "No AI model selected. Configure models.selected_model in settings."
            )
        if ":" not in selected:
            raise LLMProviderError(
                f"Invalid model format '{selected}'. Expected 'provider:model_id'."
            )
        provider, model_id = selected.split(":", 1)
        return provider.lower(), model_id

    def _get_provider_config(self, provider_name: str) -> dict:
        return self._ctx.read_config().get("providers", {}).get(provider_name, {})

    def _require_api_key(self, provider_name: str, label: str) -> str:
        api_key = self._get_provider_config(provider_name).get("api_key", "")
        if not api_key:
            raise LLMProviderError(f"Missing {label} API key. Configure it in settings.")
        return api_key

    def _get_provider(self, override: Optional[str] = None) -> LLMProvider:
        """Get an LLM provider instance for the selected (or overridden) model.

        Args:
            override: Optional override in format "provider:model" or just "provider"
        """
        if override:
            if ":" in override:
                provider_name, model_id = override.split(":", 1)
            else:
                provider_name = override
                _, model_id = self._get_selected_model()
            provider_name = provider_name.lower()
        else:
            provider_name, model_id = self._get_selected_model()

        base_url = self._get_provider_config(provider_name).get("base_url", "")

        if provider_name == "openai":
            api_key = self._require_api_key("openai", "OpenAI")
            return OpenAIProvider(api_key=api_key, model=model_id, base_url=base_url or None)
        if provider_name == "anthropic":
            return AnthropicProvider(api_key=self._require_api_key("anthropic", "Anthropic"), model=model_id)
        if provider_name == "gemini":
            return GeminiProvider(api_key=self._require_api_key("gemini", "Gemini"), model=model_id)
        if provider_name == "grok":
            api_key = self._require_api_key("grok", "Grok")
            return GrokProvider(api_key=api_key, model=model_id, base_url=base_url or None)
        if provider_name == "lmstudio":
            return OpenAIProvider(
                api_key="lmstudio",
                model=model_id,
                base_url=base_url or "http://127.0.0.1:1234",
            )
        raise LLMProviderError(f"Unknown provider: {provider_name}")

    def _speech_config(self) -> dict:
        return self._ctx.read_config().get("speech", {})

    def _get_transcriber(self) -> TranscriptionProvider:
        speech = self._speech_config()
        provider_name = (speech.get("transcription_provider") or "gemini").lower()
        model = speech.get("transcription_model") or ""
        try:
            if provider_name == "gemini":
                api_key = self._require_api_key("gemini", "Gemini")
                return GeminiTranscriber(api_key=api_key, model=model or "gemini-1.5-pro")
            if provider_name == "openai":
                api_key = self._require_api_key("openai", "OpenAI")
                base_url = self._get_provider_config("openai").get("base_url", "")
                return OpenAITranscriber(api_key=api_key, model=model or "whisper-1", base_url=base_url or None)
        except LLMProviderError as exc:
            raise SpeechProviderError(str(exc)) from exc
        raise SpeechProviderError(f"Unknown transcription provider: {provider_name}")

    def _get_synthesizer(self) -> SpeechSynthesisProvider:
        speech = self._speech_config()
        api_key = speech.get("elevenlabs_api_key", "")
        if not api_key:
            raise SpeechProviderError("Missing ElevenLabs API key. Configure it in settings.")
        return ElevenLabsSynthesizer(api_key=api_key, default_voice_id=speech.get("voice_id") or DEFAULT_VOICE_ID)

    # ── Operations ────────────────────────────────────────────────────

    def classify(self, text: str, provider_override: Optional[str] = None) -> Classification:
        """Classify a user message; unparseable model output yields the fallback."""
        if not text.strip():
            return Classification.fallback()
        provider = self._get_provider(provider_override)
        self._logger.info("Classification using provider=%s", provider.__class__.__name__)
        return Classification.model_validate(provider.classify(text))

    def summarize(self, transcript: list[dict], provider_override: Optional[str] = None) -> dict:
        """Summarize a role-tagged transcript. An empty transcript is still sent."""
        provider = self._get_provider(provider_override)
        self._logger.info(
            "Summarization using provider=%s messages=%d",
            provider.__class__.__name__, len(transcript),
        )
        summary = provider.summarize_conversation(transcript)
        return {"summary": summary or EMPTY_SUMMARY}

    def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        if not audio:
            raise SpeechProviderError("Audio is empty")
        transcriber = self._get_transcriber()
        self._logger.info(
            "Transcription using provider=%s bytes=%d", transcriber.__class__.__name__, len(audio)
        )
        text = transcriber.transcribe(audio, mime_type=mime_type)
        if not text:
            raise SpeechProviderError("Transcription came back empty")
        return text

    def speak(self, text: str, voice_id: Optional[str] = None) -> str:
        """Synthesize speech and return it base64-encoded."""
        audio = self._get_synthesizer().synthesize(text, voice_id=voice_id)
        return base64.b64encode(audio).decode("ascii")
