"""Speech-to-text by sending inline audio to a Gemini model."""
from __future__ import annotations

import base64
import logging

import requests

from assistant.services.llm.base import LLMProviderError
from assistant.services.llm.gemini_provider import (
    GEMINI_BASE_URL,
    extract_gemini_text,
    gemini_model_path,
)
from assistant.services.speech.base import SpeechProviderError, TranscriptionProvider


class GeminiTranscriber(TranscriptionProvider):
    PROMPT = (
        "Transcribe el siguiente audio. Responde solo con la transcripción, "
        "sin añadir ningún texto adicional."
    )

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-pro",
        base_url: str = GEMINI_BASE_URL,
        timeout: int = 120,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._logger = logging.getLogger("assistant.speech.gemini")

    def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        url = f"{self._base_url}/v1beta/{gemini_model_path(self._model)}:generateContent"
        request_body = {
            "contents": [
                {
                    "parts": [
                        {"text": self.PROMPT},
                        {
                            "inlineData": {
                                "mimeType": mime_type,
                                "data": base64.b64encode(audio).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {"temperature": 0.0, "maxOutputTokens": 2048},
        }
        try:
            response = requests.post(
                url,
                headers={"Content-Type": "application/json", "x-goog-api-key": self._api_key},
                json=request_body,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SpeechProviderError("Failed to reach Gemini API") from exc

        if response.status_code != 200:
            self._logger.error("Gemini transcription error: %s - %s", response.status_code, response.text[:500])
            raise SpeechProviderError(f"Gemini error: {response.status_code}")

        try:
            return extract_gemini_text(response.json())
        except (LLMProviderError, ValueError) as exc:
            raise SpeechProviderError(str(exc)) from exc
