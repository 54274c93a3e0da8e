"""ElevenLabs text-to-speech."""
from __future__ import annotations

import logging
from typing import Optional

import requests

from assistant.services.speech.base import SpeechProviderError, SpeechSynthesisProvider

DEFAULT_VOICE_ID = "CwhRBWXzGAHq8TQ4Fs17"


class ElevenLabsSynthesizer(SpeechSynthesisProvider):
    API_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

    def __init__(
        self,
        api_key: str,
        default_voice_id: Optional[str] = None,
        model_id: str = "eleven_multilingual_v2",
        stability: float = 0.5,
        similarity_boost: float = 0.75,
        timeout: int = 60,
    ) -> None:
        self._api_key = api_key
        self._default_voice_id = default_voice_id or DEFAULT_VOICE_ID
        self._model_id = model_id
        self._voice_settings = {"stability": stability, "similarity_boost": similarity_boost}
        self._timeout = timeout
        self._logger = logging.getLogger("assistant.speech.elevenlabs")

    def synthesize(self, text: str, voice_id: Optional[str] = None) -> bytes:
        if not text.strip():
            raise SpeechProviderError("No text provided")
        url = self.API_URL.format(voice_id=voice_id or self._default_voice_id)
        try:
            response = requests.post(
                url,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "audio/mpeg",
                    "xi-api-key": self._api_key,
                },
                json={
                    "text": text,
                    "model_id": self._model_id,
                    "voice_settings": self._voice_settings,
                },
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SpeechProviderError("Failed to reach ElevenLabs") from exc

        if response.status_code != 200:
            self._logger.error("ElevenLabs error: %s - %s", response.status_code, response.text[:500])
            raise SpeechProviderError(f"ElevenLabs error: {response.status_code}")

        return response.content
