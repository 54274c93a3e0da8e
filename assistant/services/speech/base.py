from __future__ import annotations

from abc import ABC, abstractmethod


class SpeechProviderError(RuntimeError):
    pass


class TranscriptionProvider(ABC):
    @abstractmethod
    def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        """Return the plain-text transcription of an audio blob."""
        raise NotImplementedError


class SpeechSynthesisProvider(ABC):
    @abstractmethod
    def synthesize(self, text: str, voice_id: str | None = None) -> bytes:
        """Return encoded audio (mp3) for ``text``."""
        raise NotImplementedError
