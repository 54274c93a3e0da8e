from __future__ import annotations

from typing import Optional

import requests

from assistant.services.llm.base import BaseLLMProvider, LLMProviderError


class OpenAIProvider(BaseLLMProvider):
    """LLM provider for OpenAI and OpenAI-compatible APIs."""

    DEFAULT_BASE_URL = "https://api.openai.com"

    def __init__(
        self, api_key: str, model: str, base_url: Optional[str] = None
    ) -> None:
        super().__init__(logger_name="assistant.llm.openai")
        self._api_key = api_key
        self._model = model
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")

    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: int = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Make a call to the chat completions endpoint and return the response text."""
        request_body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt or "You are a helpful assistant."},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
        }
        if json_mode:
            request_body["response_format"] = {"type": "json_object"}

        try:
            response = requests.post(
                f"{self._base_url}/v1/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json=request_body,
                timeout=timeout,
            )
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach OpenAI") from exc

        if response.status_code != 200:
            self._logger.error("OpenAI error: %s - %s", response.status_code, response.text[:500])
            raise LLMProviderError(f"OpenAI error: {response.status_code}")

        choices = self._json_body(response, "OpenAI").get("choices", [])
        if not choices:
            raise LLMProviderError("OpenAI response missing choices")
        content = choices[0].get("message", {}).get("content") or ""
        return str(content).strip()
