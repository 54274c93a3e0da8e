from __future__ import annotations

import requests

from assistant.services.llm.base import BaseLLMProvider, LLMProviderError


class AnthropicProvider(BaseLLMProvider):
    API_URL = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, model: str, max_tokens: int = 1024) -> None:
        super().__init__(logger_name="assistant.llm.anthropic")
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens

    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: int = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        # No native JSON mode; the classify prompt already asks for bare JSON.
        request_body = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request_body["system"] = system_prompt

        try:
            response = requests.post(
                self.API_URL,
                headers={
                    "x-api-key": self._api_key,
                    "anthropic-version": "2023-06-01",
                    "content-type": "application/json",
                },
                json=request_body,
                timeout=timeout,
            )
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach Anthropic") from exc

        if response.status_code != 200:
            self._logger.error("Anthropic error: %s - %s", response.status_code, response.text[:500])
            raise LLMProviderError(f"Anthropic error: {response.status_code}")

        content_blocks = self._json_body(response, "Anthropic").get("content", [])
        if not content_blocks:
            raise LLMProviderError("Anthropic response missing content")
        return "".join(
            block.get("text", "") for block in content_blocks if block.get("type", "text") == "text"
        ).strip()
