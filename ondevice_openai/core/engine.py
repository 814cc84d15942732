from __future__ import annotations

import asyncio
import importlib
import importlib.util
from typing import TYPE_CHECKING, Any, AsyncIterator, Protocol

from .context import render_prompt
from .errors import GatewayError, GenerationError, ModelUnavailableError
from .token_estimation import finish_reason_for
from .types import (
    CompletionResult,
    GenerationContext,
    GenerationOptions,
    UnavailableReason,
)

if TYPE_CHECKING:
    import apple_fm_sdk as fm_types

fm: Any = None
if importlib.util.find_spec("apple_fm_sdk") is not None:
    fm = importlib.import_module("apple_fm_sdk")
HAS_APPLE_FM_SDK = fm is not None

SDK_MISSING_MESSAGE = "Foundation model SDK is not installed in this environment."


class GenerationEngine(Protocol):
    # True when generate_stream yields the whole text so far instead of increments.
    snapshots: bool

    async def probe_availability(self) -> tuple[bool, Any]: ...

    async def generate(
        self,
        context: GenerationContext,
        options: GenerationOptions,
    ) -> CompletionResult: ...

    def generate_stream(
        self,
        context: GenerationContext,
        options: GenerationOptions,
    ) -> AsyncIterator[str]: ...


class FoundationModelEngine:
    """Apple's on-device system language model.

    The model handle is created once and shared; every call gets its own
    session, so concurrent requests never share conversation state.
    """

    snapshots = True

    def __init__(self) -> None:
        self._model: "fm_types.SystemLanguageModel | None" = None

    async def probe_availability(self) -> tuple[bool, Any]:
        if not HAS_APPLE_FM_SDK:
            return False, SDK_MISSING_MESSAGE

        return await asyncio.to_thread(self._system_model().is_available)

    async def generate(
        self,
        context: GenerationContext,
        options: GenerationOptions,
    ) -> CompletionResult:
        session = self._create_session(context)

        try:
            response = await session.respond(
                render_prompt(context),
                **_generation_kwargs(options),
            )
        except Exception as exc:
            raise translate_engine_error(exc) from exc

        text = str(response)
        return CompletionResult(text=text, finish_reason=finish_reason_for(text, options))

    async def generate_stream(
        self,
        context: GenerationContext,
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        session = self._create_session(context)

        try:
            async for snapshot in session.stream_response(
                render_prompt(context),
                **_generation_kwargs(options),
            ):
                yield str(snapshot)
        except Exception as exc:
            raise translate_engine_error(exc) from exc

    def _system_model(self) -> "fm_types.SystemLanguageModel":
        if self._model is None:
            self._model = fm.SystemLanguageModel()
        return self._model

    def _create_session(
        self,
        context: GenerationContext,
    ) -> "fm_types.LanguageModelSession":
        if not HAS_APPLE_FM_SDK:
            raise ModelUnavailableError(
                message=SDK_MISSING_MESSAGE,
                detail=SDK_MISSING_MESSAGE,
            )

        model = self._system_model()
        if context.instructions:
            return fm.LanguageModelSession(instructions=context.instructions, model=model)

        return fm.LanguageModelSession(model=model)


def _generation_kwargs(options: GenerationOptions) -> dict[str, Any]:
    if not hasattr(fm, "GenerationOptions"):
        return {}

    settings: dict[str, Any] = {}
    if options.temperature is not None:
        settings["temperature"] = options.temperature
    if options.max_tokens is not None:
        settings["maximum_response_tokens"] = options.max_tokens

    if not settings:
        return {}
    return {"options": fm.GenerationOptions(**settings)}


def translate_engine_error(exc: Exception) -> GatewayError:
    """Map Foundation Models exceptions onto gateway errors."""

    if isinstance(exc, GatewayError):
        return exc

    if HAS_APPLE_FM_SDK and isinstance(exc, fm.AssetsUnavailableError):
        return ModelUnavailableError(
            message=f"Foundation model assets are not ready: {exc}",
            code=UnavailableReason.MODEL_NOT_READY.value,
            reason=UnavailableReason.MODEL_NOT_READY,
            detail=str(exc),
        )

    if HAS_APPLE_FM_SDK and isinstance(exc, fm.ExceededContextWindowSizeError):
        return GenerationError(
            status_code=400,
            message=str(exc),
            code="context_length_exceeded",
        )

    if HAS_APPLE_FM_SDK and isinstance(exc, fm.UnsupportedLanguageOrLocaleError):
        return GenerationError(
            status_code=400,
            message=str(exc),
            code="unsupported_language",
        )

    if HAS_APPLE_FM_SDK and isinstance(
        exc, (fm.GuardrailViolationError, fm.RefusalError)
    ):
        return GenerationError(
            status_code=400,
            message=str(exc),
            code="content_policy_violation",
        )

    if HAS_APPLE_FM_SDK and isinstance(
        exc, (fm.RateLimitedError, fm.ConcurrentRequestsError)
    ):
        return GenerationError(
            status_code=429,
            message=str(exc),
            code="rate_limited",
        )

    if HAS_APPLE_FM_SDK and isinstance(exc, fm.DecodingFailureError):
        return GenerationError(message=str(exc), code="decoding_failure")

    return GenerationError(message=f"Generation failed: {exc}")
