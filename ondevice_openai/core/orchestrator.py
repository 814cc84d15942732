from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from typing import AsyncIterator

from .engine import GenerationEngine, translate_engine_error
from .errors import GatewayError, GenerationError
from .token_estimation import finish_reason_for
from .types import (
    CompletionResult,
    FinishReason,
    GenerationContext,
    GenerationOptions,
    StreamEvent,
    StreamState,
)

logger = logging.getLogger(__name__)

ASSISTANT_ROLE = "assistant"


async def complete(
    engine: GenerationEngine,
    context: GenerationContext,
    options: GenerationOptions,
    *,
    timeout: float | None = None,
) -> CompletionResult:
    try:
        async with asyncio.timeout(timeout):
            return await engine.generate(context, options)
    except TimeoutError as exc:
        logger.warning("Generation timed out after %ss", timeout)
        raise _timeout_error(timeout) from exc
    except Exception as exc:
        if not isinstance(exc, GatewayError):
            logger.exception("Unexpected engine failure")
        raise translate_engine_error(exc) from exc


async def stream(
    engine: GenerationEngine,
    context: GenerationContext,
    options: GenerationOptions,
    state: StreamState,
    *,
    timeout: float | None = None,
) -> AsyncIterator[StreamEvent]:
    """Yield the role header, one event per new piece of text, then a terminal event.

    Engine failures become a terminal error event. Closing this generator
    (client disconnect) closes the engine stream before returning.
    """

    state.sent_role_header = True
    yield StreamEvent(role=ASSISTANT_ROLE)

    try:
        async with aclosing(engine.generate_stream(context, options)) as segments:
            while True:
                try:
                    segment = await asyncio.wait_for(anext(segments), timeout)
                except StopAsyncIteration:
                    break

                delta = state.advance(segment, cumulative=engine.snapshots)
                if delta:
                    yield StreamEvent(delta=delta)
    except asyncio.CancelledError:
        logger.info("Stream %s cancelled by client disconnect", state.completion_id)
        raise
    except TimeoutError:
        logger.warning("Stream %s timed out after %ss", state.completion_id, timeout)
        yield _error_event(_timeout_error(timeout))
        return
    except Exception as exc:
        if not isinstance(exc, GatewayError):
            logger.exception("Unexpected engine failure in stream %s", state.completion_id)
        error = translate_engine_error(exc)
        logger.warning("Stream %s failed: %s", state.completion_id, error)
        yield _error_event(error)
        return

    yield StreamEvent(
        done=True,
        finish_reason=finish_reason_for(state.cumulative_text, options),
    )


def _error_event(error: Exception) -> StreamEvent:
    return StreamEvent(done=True, finish_reason=FinishReason.ERROR, error=error)


def _timeout_error(timeout: float | None) -> GenerationError:
    return GenerationError(
        status_code=504,
        message=f"Generation did not finish within {timeout} seconds.",
        code="generation_timeout",
    )
