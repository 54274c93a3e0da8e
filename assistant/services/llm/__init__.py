from assistant.services.llm.base import BaseLLMProvider, LLMProvider, LLMProviderError
from assistant.services.llm.openai_provider import OpenAIProvider
from assistant.services.llm.anthropic_provider import AnthropicProvider
from assistant.services.llm.gemini_provider import GeminiProvider
from assistant.services.llm.grok_provider import GrokProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProvider",
    "LLMProviderError",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "GrokProvider",
]
