from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator

from ondevice_openai.core.availability import check_availability
from ondevice_openai.core.context import build_context
from ondevice_openai.core.engine import GenerationEngine
from ondevice_openai.core.errors import ModelUnavailableError
from ondevice_openai.core.orchestrator import complete, stream
from ondevice_openai.core.token_estimation import estimate_tokens
from ondevice_openai.core.types import (
    MODEL_ID,
    ChatMessage,
    ChatRole,
    GenerationContext,
    GenerationOptions,
    StreamState,
)

from .errors import map_gateway_error
from .schemas import ChatCompletionMessage, ChatCompletionRequest
from .sse import encode_chat_stream, usage_payload

logger = logging.getLogger(__name__)

WARNING_HEADER = "X-OpenAI-Compat-Warnings"
MAX_WARNING_HEADER_LENGTH = 2048
IGNORED_REQUEST_FIELDS = (
    "response_format",
    "top_p",
    "frequency_penalty",
    "presence_penalty",
    "logprobs",
    "n",
    "stop",
    "seed",
    "user",
    "parallel_tool_calls",
    "metadata",
)


@dataclass
class PreparedChatRequest:
    model: str
    context: GenerationContext
    options: GenerationOptions
    prompt_tokens: int
    include_stream_usage: bool
    warnings: list[str]


def canonical_model_card() -> dict[str, Any]:
    return {
        "id": MODEL_ID,
        "object": "model",
        "created": 0,
        "owned_by": "apple",
    }


def warning_headers(warnings: list[str]) -> dict[str, str]:
    if not warnings:
        return {}

    value = " | ".join(dict.fromkeys(warnings))
    if len(value) > MAX_WARNING_HEADER_LENGTH:
        value = value[: MAX_WARNING_HEADER_LENGTH - 3] + "..."
    return {WARNING_HEADER: value}


async def ensure_available(engine: GenerationEngine) -> None:
    availability = await check_availability(engine)
    if availability.available:
        return

    error = ModelUnavailableError.from_availability(availability)
    logger.warning("Rejecting chat completion: %s", error.message)
    raise map_gateway_error(error)


def prepare_chat_request(request: ChatCompletionRequest) -> PreparedChatRequest:
    messages, prompt_tokens, message_warnings = _convert_messages(request.messages)

    warnings = _collect_warnings(request)
    warnings.extend(message_warnings)

    return PreparedChatRequest(
        model=request.model,
        context=build_context(messages),
        options=GenerationOptions(
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        ),
        prompt_tokens=prompt_tokens,
        include_stream_usage=bool(
            request.stream_options is not None and request.stream_options.include_usage
        ),
        warnings=list(dict.fromkeys(warnings)),
    )


async def create_chat_completion(
    request: ChatCompletionRequest,
    engine: GenerationEngine,
    *,
    timeout: float | None = None,
) -> tuple[dict[str, Any], list[str]]:
    await ensure_available(engine)
    prepared = prepare_chat_request(request)
    completion_id = _new_chat_completion_id()
    created_at = int(time.time())

    try:
        result = await complete(engine, prepared.context, prepared.options, timeout=timeout)
    except Exception as exc:
        mapped = map_gateway_error(exc)
        if mapped.status_code >= 500:
            logger.error("Chat completion %s failed: %s", completion_id, mapped.message)
        raise mapped from exc

    completion_tokens = estimate_tokens(result.text)

    payload = {
        "id": completion_id,
        "object": "chat.completion",
        "created": created_at,
        "model": prepared.model,
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": result.text,
                },
                "finish_reason": result.finish_reason.value,
            }
        ],
        "usage": usage_payload(prepared.prompt_tokens, completion_tokens),
    }

    return payload, prepared.warnings


async def create_chat_completion_stream(
    request: ChatCompletionRequest,
    engine: GenerationEngine,
    *,
    timeout: float | None = None,
) -> tuple[AsyncIterator[bytes], list[str]]:
    await ensure_available(engine)
    prepared = prepare_chat_request(request)
    state = StreamState(
        completion_id=_new_chat_completion_id(),
        created=int(time.time()),
    )

    events = stream(engine, prepared.context, prepared.options, state, timeout=timeout)
    iterator = encode_chat_stream(
        events,
        state,
        prepared.model,
        usage_prompt_tokens=prepared.prompt_tokens if prepared.include_stream_usage else None,
    )

    return iterator, prepared.warnings


def _convert_messages(
    messages: list[ChatCompletionMessage],
) -> tuple[list[ChatMessage], int, list[str]]:
    warnings: list[str] = []
    converted: list[ChatMessage] = []
    prompt_token_parts: list[str] = []

    for idx, message in enumerate(messages):
        text, content_warnings = _extract_text_content(message, idx)
        warnings.extend(content_warnings)
        if text:
            prompt_token_parts.append(text)

        converted.append(ChatMessage(role=ChatRole(message.role), content=text))

    return converted, estimate_tokens("\n".join(prompt_token_parts)), warnings


def _extract_text_content(
    message: ChatCompletionMessage,
    message_index: int,
) -> tuple[str, list[str]]:
    content = message.content
    warnings: list[str] = []

    if content is None:
        return "", warnings

    if isinstance(content, str):
        return content, warnings

    parts: list[str] = []
    ignored_non_text = False

    for part in content:
        if part.get("type") == "text" and isinstance(part.get("text"), str):
            parts.append(part["text"])
        else:
            ignored_non_text = True

    if ignored_non_text:
        warnings.append(
            f"Ignored non-text content parts in messages[{message_index}]."
        )

    return "".join(parts), warnings


def _collect_warnings(request: ChatCompletionRequest) -> list[str]:
    warnings: list[str] = []

    if request.tools is not None or request.tool_choice is not None:
        warnings.append("Received tools/tool_choice, but tool calling is ignored.")

    ignored = [name for name in IGNORED_REQUEST_FIELDS if getattr(request, name) is not None]
    ignored.extend(sorted(request.model_extra or {}))

    if ignored:
        warnings.append("Ignored unsupported request fields: " + ", ".join(ignored))

    return warnings


def _new_chat_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"

