from __future__ import annotations

import logging
import mimetypes
from typing import Optional

import requests

from assistant.services.speech.base import SpeechProviderError, TranscriptionProvider


class OpenAITranscriber(TranscriptionProvider):
    """Whisper transcription through ``/v1/audio/transcriptions``."""

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        base_url: Optional[str] = None,
        language: Optional[str] = "es",
        timeout: int = 120,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = (base_url or "https://api.openai.com").rstrip("/")
        self._language = language
        self._timeout = timeout
        self._logger = logging.getLogger("assistant.speech.openai")

    def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        ext = mimetypes.guess_extension(mime_type.split(";")[0]) or ".webm"
        data = {"model": self._model, "response_format": "json"}
        if self._language:
            data["language"] = self._language
        try:
            response = requests.post(
                f"{self._base_url}/v1/audio/transcriptions",
                headers={"Authorization": f"Bearer {self._api_key}"},
                data=data,
                files={"file": (f"audio{ext}", audio, mime_type)},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SpeechProviderError("Failed to reach OpenAI") from exc

        if response.status_code != 200:
            self._logger.error("OpenAI transcription error: %s - %s", response.status_code, response.text[:500])
            raise SpeechProviderError(f"OpenAI error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise SpeechProviderError("OpenAI returned a non-JSON body") from exc
        return str(data.get("text", "")).strip()
