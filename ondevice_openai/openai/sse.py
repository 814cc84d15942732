from __future__ import annotations

import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator

from ondevice_openai.core.token_estimation import estimate_tokens
from ondevice_openai.core.types import StreamEvent, StreamState

from .errors import map_gateway_error

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
DONE_EVENT = b"data: [DONE]\n\n"


async def encode_chat_stream(
    events: AsyncIterator[StreamEvent],
    state: StreamState,
    model: str,
    *,
    usage_prompt_tokens: int | None = None,
) -> AsyncIterator[bytes]:
    """Serialize stream events as `chat.completion.chunk` SSE frames ending in `[DONE]`.

    A usage chunk is added before `[DONE]` when `usage_prompt_tokens` is given
    and the stream finished without error.
    """

    try:
        async with aclosing(events) as stream_events:
            async for event in stream_events:
                if event.role is not None:
                    yield _sse_data(_chunk(state, model, {"role": event.role, "content": ""}))
                    continue

                if not event.done:
                    yield _sse_data(_chunk(state, model, {"content": event.delta}))
                    continue

                finish_reason = event.finish_reason.value if event.finish_reason else "stop"
                terminal = _chunk(state, model, {}, finish_reason=finish_reason)
                if event.error is not None:
                    terminal["error"] = map_gateway_error(event.error).to_error()
                yield _sse_data(terminal)

                if event.error is None and usage_prompt_tokens is not None:
                    completion_tokens = estimate_tokens(state.cumulative_text)
                    yield _sse_data(
                        {
                            "id": state.completion_id,
                            "object": "chat.completion.chunk",
                            "created": state.created,
                            "model": model,
                            "choices": [],
                            "usage": usage_payload(usage_prompt_tokens, completion_tokens),
                        }
                    )
                break

    except Exception as exc:
        logger.exception("Stream %s failed while encoding", state.completion_id)
        terminal = _chunk(state, model, {}, finish_reason="error")
        terminal["error"] = map_gateway_error(exc).to_error()
        yield _sse_data(terminal)

    yield DONE_EVENT


def usage_payload(prompt_tokens: int, completion_tokens: int) -> dict[str, int]:
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }


def _chunk(
    state: StreamState,
    model: str,
    delta: dict[str, Any],
    *,
    finish_reason: str | None = None,
) -> dict[str, Any]:
    return {
        "id": state.completion_id,
        "object": "chat.completion.chunk",
        "created": state.created,
        "model": model,
        "choices": [
            {
                "index": 0,
                "delta": delta,
                "finish_reason": finish_reason,
            }
        ],
    }


def _sse_data(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")
