from __future__ import annotations

from fastapi import FastAPI

from ondevice_openai.core.config import ServerSettings
from ondevice_openai.core.engine import FoundationModelEngine, GenerationEngine
from ondevice_openai.core.log import configure_logging
from ondevice_openai.core.types import SERVER_VERSION
from ondevice_openai.dependencies import register_exception_handlers
from ondevice_openai.routers import chat, models, status


def create_app(
    settings: ServerSettings | None = None,
    engine: GenerationEngine | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="apple-on-device-openai",
        version=SERVER_VERSION,
        docs_url="/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.engine = engine or FoundationModelEngine()

    register_exception_handlers(app)

    app.include_router(status.router)
    app.include_router(models.router)
    app.include_router(chat.router)

    return app


app = create_app()
