from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ondevice_openai.core.config import ServerSettings
from ondevice_openai.core.engine import GenerationEngine
from ondevice_openai.dependencies import get_engine, get_settings
from ondevice_openai.openai.adapter import (
    create_chat_completion,
    create_chat_completion_stream,
    warning_headers,
)
from ondevice_openai.openai.schemas import ChatCompletionRequest
from ondevice_openai.openai.sse import SSE_HEADERS

router = APIRouter(prefix="/v1", tags=["openai"])

logger = logging.getLogger(__name__)

T = TypeVar("T")

DISCONNECT_POLL_INTERVAL = 0.25
CLIENT_CLOSED_REQUEST = 499


@router.post("/chat/completions")
async def chat_completions(
    payload: ChatCompletionRequest,
    request: Request,
    engine: GenerationEngine = Depends(get_engine),
    settings: ServerSettings = Depends(get_settings),
):
    if payload.stream:
        iterator, warnings = await create_chat_completion_stream(
            payload,
            engine,
            timeout=settings.generation_timeout,
        )
        headers = warning_headers(warnings)
        headers.update(SSE_HEADERS)

        return StreamingResponse(
            iterator,
            media_type="text/event-stream",
            headers=headers,
        )

    outcome = await _until_disconnected(
        request,
        create_chat_completion(payload, engine, timeout=settings.generation_timeout),
    )
    if outcome is None:
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    response_payload, warnings = outcome
    return JSONResponse(content=response_payload, headers=warning_headers(warnings))


async def _until_disconnected(request: Request, work: Awaitable[T]) -> T | None:
    """Await `work`, cancelling it and returning None if the client goes away first."""

    task: asyncio.Future[Any] = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL)
            if done:
                return task.result()

            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling chat completion")
                task.cancel()
                return None
    finally:
        if not task.done():
            task.cancel()
