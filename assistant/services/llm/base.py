from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod

from assistant.models import FALLBACK_RESPONSE, MessageCategory


class LLMProviderError(RuntimeError):
    pass


class LLMProvider(ABC):
    @abstractmethod
    def classify(self, text: str) -> dict:
        """Return ``{"response", "category", "tasks"}`` for a user message."""
        raise NotImplementedError

    @abstractmethod
    def summarize_conversation(self, transcript: list[dict]) -> str:
        """Summarize a role-tagged transcript (``{"role", "content"}`` items)."""
        raise NotImplementedError


class BaseLLMProvider(LLMProvider):
    """Base implementation with shared prompts, JSON parsing, and response handling.

    Subclasses only need to implement _call_api() for their specific API client.
    """

    # Shared prompts - single source of truth
    PROMPTS = {
        "classify_system": (
            "Eres un asistente de reuniones que analiza el contenido de mensajes para "
            "detectar información importante.\n\n"
            "Analiza el mensaje y determina si contiene:\n"
            "1. Tareas o acciones a realizar\n"
            "2. Definiciones o aclaraciones de conceptos\n"
            "3. Bloqueantes o problemas a resolver\n\n"
            "Devuelve SOLO un objeto JSON válido, sin bloques markdown, con las claves:\n"
            '- "response": una respuesta explicativa y útil al mensaje\n'
            '- "category": una de "task", "definition", "blocker" o "general"\n'
            '- "tasks": lista de tareas detectadas, cada una con "title", "description", '
            '"assignee" (nombre, si se menciona) y "due_date" (fecha ISO 8601, si se menciona)\n\n'
            "Responde en español y sé conciso."
        ),
        "summarize_system": (
            "Eres un asistente especializado en resumir reuniones.\n"
            "Genera un resumen conciso y estructurado de la reunión, destacando:\n"
            "1. Temas principales discutidos\n"
            "2. Decisiones tomadas\n"
            "3. Tareas asignadas (si las hay)\n"
            "4. Puntos pendientes para futuras reuniones\n\n"
            "Responde en español."
        ),
        "summarize": "Conversación de la reunión:\n{transcript}",
    }

    EMPTY_TRANSCRIPT = "(la reunión no tiene mensajes)"

    def __init__(self, logger_name: str = "assistant.llm") -> None:
        self._logger = logging.getLogger(logger_name)

    @abstractmethod
    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: int = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Make an API call and return the raw response text.

        Args:
            prompt: The user prompt to send
            temperature: Sampling temperature (0.0-1.0)
            timeout: Request timeout in seconds
            system_prompt: Optional system prompt
            json_mode: Request JSON-formatted response if supported

        Returns:
            The response text content
        """
        raise NotImplementedError

    @staticmethod
    def _json_body(response, vendor: str) -> dict:
        """Decode a 200 response body, failing as a provider error if it is not a JSON object."""
        try:
            data = response.json()
        except ValueError as exc:
            raise LLMProviderError(f"{vendor} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise LLMProviderError(f"{vendor} returned an unexpected body")
        return data

    @staticmethod
    def _strip_markdown_code_blocks(text: str) -> str:
        """Remove markdown code block wrappers from text."""
        text = text.strip()
        if not text.startswith("```"):
            return text
        lines = [line for line in text.split("\n") if not line.startswith("```")]
        return "\n".join(lines).strip()

    @classmethod
    def render_transcript(cls, transcript: list[dict]) -> str:
        lines = [
            f"[{item.get('role', 'user')}] {str(item.get('content', '')).strip()}"
            for item in transcript
        ]
        return "\n".join(lines) if lines else cls.EMPTY_TRANSCRIPT

    def classify(self, text: str) -> dict:
        content = self._call_api(
            text,
            temperature=0.3,
            timeout=60,
            system_prompt=self.PROMPTS["classify_system"],
            json_mode=True,
        )
        stripped = self._strip_markdown_code_blocks(content)
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            self._logger.warning("Non-JSON classification response: %s", stripped[:300])
            parsed = None
        if not isinstance(parsed, dict):
            return {
                "response": FALLBACK_RESPONSE,
                "category": MessageCategory.GENERAL.value,
                "tasks": [],
            }
        return {
            "response": str(parsed.get("response", "")).strip(),
            "category": parsed.get("category", MessageCategory.GENERAL.value),
            "tasks": parsed.get("tasks", []) or [],
        }

    def summarize_conversation(self, transcript: list[dict]) -> str:
        prompt = self.PROMPTS["summarize"].format(transcript=self.render_transcript(transcript))
        content = self._call_api(
            prompt,
            temperature=0.7,
            timeout=120,
            system_prompt=self.PROMPTS["summarize_system"],
        )
        return content.strip()
