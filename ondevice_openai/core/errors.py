from __future__ import annotations

from dataclasses import dataclass

from .types import AvailabilityResult, UnavailableReason


@dataclass
class GatewayError(Exception):
    status_code: int
    message: str
    code: str | None = None
    param: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class ModelUnavailableError(GatewayError):
    status_code: int = 503
    message: str = "Foundation model is unavailable."
    code: str | None = UnavailableReason.UNKNOWN.value
    param: str | None = None
    reason: UnavailableReason = UnavailableReason.UNKNOWN
    detail: str | None = None

    @classmethod
    def from_availability(cls, result: AvailabilityResult) -> ModelUnavailableError:
        reason = result.reason or UnavailableReason.UNKNOWN
        message = f"Foundation model is unavailable on this machine (reason={reason.value})."
        if result.detail:
            message = f"{message} {result.detail}"

        return cls(
            message=message,
            code=reason.value,
            reason=reason,
            detail=result.detail,
        )


@dataclass
class GenerationError(GatewayError):
    status_code: int = 500
    message: str = "Generation failed."
    code: str | None = "generation_error"
    param: str | None = None
