import logging
from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from assistant.context import AppContext
from assistant.services.speech import DEFAULT_VOICE_ID

_logger = logging.getLogger("assistant.settings")

PROVIDER_NAMES = ("openai", "anthropic", "gemini", "grok", "lmstudio")


class ProviderCredentials(BaseModel):
    api_key: str = ""
    base_url: str = ""


class ModelSettingsRequest(BaseModel):
    selected_model: str = ""  # "provider:model_id"
    providers: dict[str, ProviderCredentials] = Field(default_factory=dict)


class PersistenceSettingsRequest(BaseModel):
    backend: Literal["local", "supabase"] = "local"
    supabase_url: str = ""
    supabase_key: str = ""
    audio_bucket: str = "audio-recordings"


class SpeechSettingsRequest(BaseModel):
    transcription_provider: Literal["gemini", "openai"] = "gemini"
    transcription_model: str = ""
    elevenlabs_api_key: str = ""
    voice_id: str = DEFAULT_VOICE_ID


def create_settings_router(ctx: AppContext) -> APIRouter:
    router = APIRouter()

    @router.get("/api/settings/models")
    def get_model_settings() -> dict:
        data = ctx.read_config()
        return {
            "selected_model": data.get("models", {}).get("selected_model", ""),
            "providers": data.get("providers", {}),
        }

    @router.post("/api/settings/models")
    def update_model_settings(payload: ModelSettingsRequest) -> dict:
        if payload.selected_model:
            provider_name = payload.selected_model.split(":", 1)[0].lower()
            if ":" not in payload.selected_model or provider_name not in PROVIDER_NAMES:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid model '{payload.selected_model}'. Expected 'provider:model_id'.",
                )
        unknown = sorted(set(payload.providers) - set(PROVIDER_NAMES))
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown providers: {', '.join(unknown)}")

        data = ctx.read_config()
        models = data.get("models", {})
        models["selected_model"] = payload.selected_model
        ctx.update_config_section("models", models)

        providers = data.get("providers", {})
        for name, credentials in payload.providers.items():
            providers[name] = credentials.model_dump()
        ctx.update_config_section("providers", providers)
        _logger.info("Model settings saved: selected_model=%s", payload.selected_model or "-")
        return {"status": "ok"}

    @router.get("/api/settings/persistence")
    def get_persistence_settings() -> dict:
        return ctx.read_config().get("persistence", {"backend": "local"})

    @router.post("/api/settings/persistence")
    def update_persistence_settings(payload: PersistenceSettingsRequest) -> dict:
        if payload.backend == "supabase" and not (payload.supabase_url and payload.supabase_key):
            raise HTTPException(status_code=400, detail="Supabase URL and key are required")
        ctx.update_config_section("persistence", payload.model_dump())
        _logger.info("Persistence settings saved: backend=%s", payload.backend)
        # The backend is chosen once at boot
        return {"status": "ok", "restart_required": True}

    @router.get("/api/settings/speech")
    def get_speech_settings() -> dict:
        return ctx.read_config().get("speech", {})

    @router.post("/api/settings/speech")
    def update_speech_settings(payload: SpeechSettingsRequest) -> dict:
        ctx.update_config_section("speech", payload.model_dump())
        _logger.info("Speech settings saved: transcription=%s", payload.transcription_provider)
        return {"status": "ok"}

    return router
