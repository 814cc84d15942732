from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ondevice_openai.core.availability import check_availability
from ondevice_openai.core.engine import GenerationEngine
from ondevice_openai.core.types import MODEL_ID, SERVER_VERSION, SUPPORTED_LANGUAGES
from ondevice_openai.dependencies import get_engine

router = APIRouter(tags=["status"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/status")
async def status(engine: GenerationEngine = Depends(get_engine)) -> dict[str, Any]:
    availability = await check_availability(engine)

    return {
        "status": "available" if availability.available else "unavailable",
        "model": MODEL_ID,
        "available": availability.available,
        "reason": availability.reason.value if availability.reason else None,
        "detail": availability.detail,
        "supported_languages": list(SUPPORTED_LANGUAGES),
        "version": SERVER_VERSION,
    }
