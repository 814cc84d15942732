from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ondevice_openai.core.config import ServerSettings
from ondevice_openai.core.engine import GenerationEngine
from ondevice_openai.openai.errors import OpenAICompatError


def get_engine(request: Request) -> GenerationEngine:
    return request.app.state.engine


def get_settings(request: Request) -> ServerSettings:
    return request.app.state.settings


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(OpenAICompatError)
    async def handle_openai_error(
        _request: Request,
        exc: OpenAICompatError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.to_error()},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        first_error = errors[0] if errors else {}
        location = [str(part) for part in first_error.get("loc", ())[1:]]
        param = ".".join(location) or None

        if location == ["messages"] and first_error.get("type") == "too_short":
            message = "messages must contain at least one item."
            code = "empty_messages"
        else:
            message = first_error.get("msg", "Invalid request")
            code = "invalid_request"

        compat_error = OpenAICompatError(
            status_code=400,
            message=message,
            error_type="invalid_request_error",
            code=code,
            param=param,
        )
        return JSONResponse(
            status_code=compat_error.status_code,
            content={"error": compat_error.to_error()},
        )
