"""Gemini LLM provider using Google's Generative AI API."""
from __future__ import annotations

import requests

from assistant.services.llm.base import BaseLLMProvider, LLMProviderError

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"


def gemini_model_path(model: str) -> str:
    # Model names may or may not carry the "models/" prefix
    return model if model.startswith("models/") else f"models/{model}"


def extract_gemini_text(data: dict) -> str:
    """Join the text parts of the first candidate in a generateContent response."""
    candidates = data.get("candidates", [])
    if not candidates:
        raise LLMProviderError("Gemini response missing candidates")
    parts = candidates[0].get("content", {}).get("parts", [])
    if not parts:
        raise LLMProviderError("Gemini response missing parts")
    return "".join(part.get("text", "") for part in parts).strip()


class GeminiProvider(BaseLLMProvider):
    """LLM provider for Google Gemini models."""

    def __init__(self, api_key: str, model: str, base_url: str = GEMINI_BASE_URL) -> None:
        super().__init__(logger_name="assistant.llm.gemini")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")

    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: int = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Make a call to the Gemini API and return the response text."""
        url = f"{self._base_url}/v1beta/{gemini_model_path(self._model)}:generateContent"
        generation_config = {"temperature": temperature, "maxOutputTokens": 2048}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        request_body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_prompt:
            request_body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        try:
            response = requests.post(
                url,
                headers={"Content-Type": "application/json", "x-goog-api-key": self._api_key},
                json=request_body,
                timeout=timeout,
            )
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach Gemini API") from exc

        if response.status_code != 200:
            self._logger.error("Gemini error: %s - %s", response.status_code, response.text[:500])
            raise LLMProviderError(f"Gemini error: {response.status_code}")

        return extract_gemini_text(self._json_body(response, "Gemini"))
