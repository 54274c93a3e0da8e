from assistant.services.speech.base import (
    SpeechProviderError,
    SpeechSynthesisProvider,
    TranscriptionProvider,
)
from assistant.services.speech.elevenlabs import DEFAULT_VOICE_ID, ElevenLabsSynthesizer
from assistant.services.speech.gemini_transcriber import GeminiTranscriber
from assistant.services.speech.openai_transcriber import OpenAITranscriber

__all__ = [
    "SpeechProviderError",
    "SpeechSynthesisProvider",
    "TranscriptionProvider",
    "DEFAULT_VOICE_ID",
    "ElevenLabsSynthesizer",
    "GeminiTranscriber",
    "OpenAITranscriber",
]
