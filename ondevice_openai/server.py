from __future__ import annotations

import asyncio
import logging

import uvicorn

from ondevice_openai.core.availability import check_availability
from ondevice_openai.core.config import load_settings
from ondevice_openai.core.engine import FoundationModelEngine, GenerationEngine
from ondevice_openai.core.log import configure_logging
from ondevice_openai.core.types import MODEL_ID
from ondevice_openai.main import create_app

logger = logging.getLogger(__name__)


def main(engine: GenerationEngine | None = None) -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    engine = engine or FoundationModelEngine()

    if settings.lan_visible:
        logger.warning(
            "Binding to %s makes the server reachable by other devices on your "
            "local network. Make sure you trust the network or use a firewall.",
            settings.host,
        )

    log_availability(engine)

    logger.info("Host: %s", settings.host)
    logger.info("Port: %s", settings.port)
    logger.info("OpenAI base URL: %s", settings.openai_base_url)
    logger.info("Chat completions: %s", settings.chat_completions_endpoint)
    logger.info("Model name: %s", MODEL_ID)

    uvicorn.run(
        create_app(settings, engine=engine),
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )


def log_availability(engine: GenerationEngine) -> None:
    availability = asyncio.run(check_availability(engine))
    if availability.available:
        logger.info("Foundation model is available")
        return

    reason = availability.reason.value if availability.reason else "unknown"
    if availability.detail:
        logger.warning("Foundation model is not available (reason=%s): %s", reason, availability.detail)
    else:
        logger.warning("Foundation model is not available (reason=%s)", reason)
