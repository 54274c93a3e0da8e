from typing import Optional

import logging
import os

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field

from assistant.routers.errors import http_error
from assistant.services.ai_service import AIService
from assistant.services.llm import LLMProviderError
from assistant.services.orchestrator import MeetingError, MeetingOrchestrator, NoActiveMeetingError
from assistant.services.persistence import GatewayError, PersistenceGateway, sanitize_filename
from assistant.services.speech import SpeechProviderError


class SpeakRequest(BaseModel):
    text: str = Field(..., min_length=1)
    voice_id: Optional[str] = None


def create_speech_router(
    orchestrator: MeetingOrchestrator, ai_service: AIService, gateway: PersistenceGateway
) -> APIRouter:
    router = APIRouter()
    logger = logging.getLogger("assistant.api.speech")

    @router.post("/api/speech/transcribe")
    def transcribe(
        file: UploadFile = File(...),
        post_as_message: bool = Form(False),
    ) -> dict:
        """Store an uploaded recording, transcribe it and optionally post the text."""
        if post_as_message and orchestrator.active_meeting is None:
            raise http_error(NoActiveMeetingError("No active meeting"))

        filename = sanitize_filename(file.filename or "")
        mime_type = file.content_type or "audio/webm"
        audio = file.file.read()
        if not audio:
            raise HTTPException(status_code=400, detail="Audio is empty")

        try:
            audio_path = gateway.upload_audio(filename, audio)
        except GatewayError as exc:
            logger.warning("Audio upload failed: %s", exc)
            raise HTTPException(status_code=502, detail="Audio upload failed") from exc
        logger.info(
            "Audio stored: path=%s bytes=%d ext=%s",
            audio_path, len(audio), os.path.splitext(filename)[1] or "-",
        )

        try:
            text = ai_service.transcribe(audio, mime_type=mime_type)
        except (SpeechProviderError, LLMProviderError) as exc:
            logger.warning("Transcription failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc

        result = {"text": text, "audio_path": audio_path, "message": None}
        if post_as_message:
            try:
                message = orchestrator.record_user_message(text)
            except MeetingError as exc:
                raise http_error(exc) from exc
            result["message"] = message.model_dump(mode="json")
        return result

    @router.post("/api/speech/speak")
    def speak(payload: SpeakRequest) -> dict:
        try:
            audio = ai_service.speak(payload.text, voice_id=payload.voice_id)
        except SpeechProviderError as exc:
            logger.warning("Speech synthesis failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"audio": audio, "mime_type": "audio/mpeg"}

    return router
