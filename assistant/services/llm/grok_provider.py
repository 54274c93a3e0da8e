"""Grok LLM provider using xAI's OpenAI-compatible API."""
from __future__ import annotations

import logging
from typing import Optional

from assistant.services.llm.openai_provider import OpenAIProvider


class GrokProvider(OpenAIProvider):
    """xAI Grok: OpenAI-compatible API on a different default base URL."""

    DEFAULT_BASE_URL = "https://api.x.ai"

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None) -> None:
        super().__init__(api_key=api_key, model=model, base_url=base_url)
        self._logger = logging.getLogger("assistant.llm.grok")
