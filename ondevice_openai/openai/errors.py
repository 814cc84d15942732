from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ondevice_openai.core.errors import GatewayError


@dataclass
class OpenAICompatError(Exception):
    """OpenAI-style error wrapper with HTTP metadata."""

    status_code: int
    message: str
    error_type: str = "invalid_request_error"
    code: str | None = None
    param: str | None = None

    def to_error(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "type": self.error_type,
            "param": self.param,
            "code": self.code,
        }


def map_gateway_error(exc: BaseException) -> OpenAICompatError:
    """Map gateway and unexpected exceptions to OpenAI-style API errors."""

    if isinstance(exc, OpenAICompatError):
        return exc

    if isinstance(exc, GatewayError):
        if exc.status_code == 429:
            error_type = "rate_limit_error"
        elif exc.status_code >= 500:
            error_type = "server_error"
        else:
            error_type = "invalid_request_error"

        return OpenAICompatError(
            status_code=exc.status_code,
            message=exc.message,
            error_type=error_type,
            code=exc.code,
            param=exc.param,
        )

    return OpenAICompatError(
        status_code=500,
        message=f"Unexpected server error: {exc}",
        error_type="server_error",
        code="internal_error",
    )
