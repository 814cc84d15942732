from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ondevice_openai.core.types import MODEL_ID
from ondevice_openai.openai.adapter import canonical_model_card
from ondevice_openai.openai.errors import OpenAICompatError

router = APIRouter(prefix="/v1", tags=["openai"])


@router.get("/models")
async def list_models() -> dict[str, Any]:
    return {"object": "list", "data": [canonical_model_card()]}


@router.get("/models/{model_id}")
async def retrieve_model(model_id: str) -> dict[str, Any]:
    if model_id != MODEL_ID:
        raise OpenAICompatError(
            status_code=404,
            message=f"The model '{model_id}' does not exist. Available model: '{MODEL_ID}'.",
            code="model_not_found",
            param="model",
        )
    return canonical_model_card()
