from __future__ import annotations

import math

from .types import FinishReason, GenerationOptions


def estimate_tokens(text: str) -> int:
    if not text:
        return 0

    return max(1, math.ceil(len(text) / 4))


def finish_reason_for(text: str, options: GenerationOptions) -> FinishReason:
    if options.max_tokens is not None and estimate_tokens(text) >= options.max_tokens:
        return FinishReason.LENGTH
    return FinishReason.STOP
