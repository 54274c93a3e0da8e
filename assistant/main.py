import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from assistant.context import AppContext
from assistant.routers.meetings import create_meetings_router
from assistant.routers.messages import create_messages_router
from assistant.routers.settings import create_settings_router
from assistant.routers.speech import create_speech_router
from assistant.routers.tasks import create_tasks_router
from assistant.services.ai_service import AIService
from assistant.services.events import EventBus
from assistant.services.logging_setup import configure_logging
from assistant.services.orchestrator import MeetingError, MeetingOrchestrator
from assistant.services.persistence import (
    GatewayError,
    JsonMeetingStore,
    PersistenceGateway,
    SupabaseGateway,
)


def _read_version(ctx: AppContext) -> str:
    version = "v0.0.0.0"
    if os.path.exists(ctx.version_path):
        with open(ctx.version_path, "r", encoding="utf-8") as version_file:
            version = version_file.read().strip() or version
    return version


def create_gateway(ctx: AppContext) -> PersistenceGateway:
    """Pick the persistence backend from config.json (once, at boot)."""
    logger = logging.getLogger("assistant.boot")
    settings = ctx.read_config().get("persistence", {})
    backend = (settings.get("backend") or "local").lower()
    if backend == "supabase":
        try:
            gateway = SupabaseGateway(
                url=settings.get("supabase_url", ""),
                api_key=settings.get("supabase_key", ""),
                audio_bucket=settings.get("audio_bucket") or "audio-recordings",
            )
            logger.info("Boot: persistence backend=supabase url=%s", settings.get("supabase_url"))
            return gateway
        except GatewayError as exc:
            logger.warning("Boot: supabase backend unusable (%s), falling back to local", exc)
    elif backend != "local":
        logger.warning("Boot: unknown persistence backend=%s, using local", backend)
    logger.info("Boot: persistence backend=local meetings_dir=%s", ctx.meetings_dir)
    return JsonMeetingStore(ctx.meetings_dir, ctx.uploads_dir)


def build_app(
    ctx: AppContext,
    gateway: PersistenceGateway,
    ai_service: AIService,
    orchestrator: MeetingOrchestrator,
    version: Optional[str] = None,
) -> FastAPI:
    """Mount every router on a new FastAPI app around already-built services."""
    logger = logging.getLogger("assistant.boot")
    app = FastAPI(title="Meeting Assistant", version="0.1.0")
    app.state.version = version or _read_version(ctx)
    app.state.ctx = ctx
    app.state.orchestrator = orchestrator

    app.include_router(create_meetings_router(orchestrator, gateway))
    logger.info("Boot: meetings router mounted")
    app.include_router(create_messages_router(orchestrator))
    logger.info("Boot: messages router mounted")
    app.include_router(create_tasks_router(orchestrator, gateway))
    logger.info("Boot: tasks router mounted")
    app.include_router(create_speech_router(orchestrator, ai_service, gateway))
    logger.info("Boot: speech router mounted")
    app.include_router(create_settings_router(ctx))
    logger.info("Boot: settings router mounted")

    class NoCacheMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            response = await call_next(request)
            if request.url.path.startswith("/api/"):
                response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
                response.headers["Pragma"] = "no-cache"
                response.headers["Expires"] = "0"
            return response

    app.add_middleware(NoCacheMiddleware)

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok", "version": app.state.version}

    return app


def create_app() -> FastAPI:
    cwd = os.getcwd()
    configure_logging(os.path.join(cwd, "logs"))
    logger = logging.getLogger("assistant.boot")
    logger.info("Boot: starting create_app cwd=%s", cwd)

    default_data_dir = os.path.join(cwd, "data")
    os.makedirs(default_data_dir, exist_ok=True)
    # Config always lives in the app-level data dir regardless of custom data_dir
    config_path = os.path.join(default_data_dir, "config.json")
    ctx = AppContext(
        cwd=cwd,
        data_dir=default_data_dir,
        default_data_dir=default_data_dir,
        config_path=config_path,
    )
    config = ctx.read_config()
    logger.info("Boot: config_path=%s keys=%s", config_path, sorted(config.keys()))

    # Resolve data directory: use custom path from config if valid, else default
    custom_data_dir = config.get("data_dir", "")
    if custom_data_dir and os.path.isdir(custom_data_dir) and os.access(custom_data_dir, os.W_OK):
        ctx.data_dir = custom_data_dir
        logger.info("Boot: using custom data_dir=%s", custom_data_dir)
    elif custom_data_dir:
        logger.warning(
            "Boot: custom data_dir=%s is invalid or not writable, falling back to %s",
            custom_data_dir, default_data_dir,
        )
    ctx.ensure_dirs()

    version = _read_version(ctx)
    logger.info("Boot: version_path=%s version=%s", ctx.version_path, version)

    gateway = create_gateway(ctx)
    ai_service = AIService(ctx)
    orchestrator = MeetingOrchestrator(gateway, ai_service, EventBus())
    try:
        resumed = orchestrator.load_active_meeting()
        if resumed:
            logger.info("Boot: resumed in-progress meeting id=%s", resumed.id)
    except MeetingError as exc:
        logger.warning("Boot: could not resume active meeting: %s", exc)

    app = build_app(ctx, gateway, ai_service, orchestrator, version=version)
    logger.info("Boot: create_app complete")
    return app
