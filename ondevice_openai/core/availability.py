from __future__ import annotations

import logging
import re
from typing import Any

from .engine import GenerationEngine
from .types import AvailabilityResult, UnavailableReason

logger = logging.getLogger(__name__)

_REASON_PATTERNS = (
    (re.compile(r"DEVICENOTELIGIBLE"), UnavailableReason.DEVICE_NOT_ELIGIBLE),
    (re.compile(r"NOTENABLED"), UnavailableReason.FEATURE_NOT_ENABLED),
    (re.compile(r"MODELNOTREADY"), UnavailableReason.MODEL_NOT_READY),
)


async def check_availability(engine: GenerationEngine) -> AvailabilityResult:
    """Ask the engine whether it can generate right now.

    Nothing is cached: readiness can change between calls (for example once
    model assets finish downloading), so every caller probes again.
    """

    try:
        available, raw_reason = await engine.probe_availability()
    except Exception as exc:
        logger.warning("Availability probe failed: %s", exc)
        return AvailabilityResult(
            available=False,
            reason=UnavailableReason.UNKNOWN,
            detail=str(exc),
        )

    if available:
        return AvailabilityResult(available=True)

    reason = map_unavailable_reason(raw_reason)
    detail = None
    if reason is UnavailableReason.UNKNOWN and raw_reason is not None:
        detail = str(raw_reason)

    return AvailabilityResult(available=False, reason=reason, detail=detail)


def map_unavailable_reason(raw_reason: Any) -> UnavailableReason:
    if isinstance(raw_reason, UnavailableReason):
        return raw_reason

    if raw_reason is None:
        return UnavailableReason.UNKNOWN

    name = getattr(raw_reason, "name", None) or str(raw_reason)
    normalized = re.sub(r"[^A-Z]", "", name.upper())

    for pattern, reason in _REASON_PATTERNS:
        if pattern.search(normalized):
            return reason

    return UnavailableReason.UNKNOWN
