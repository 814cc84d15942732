from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .errors import GatewayError

MODEL_ID = "apple-on-device"
SERVER_VERSION = "0.1.0"
SUPPORTED_LANGUAGES = ("en", "de", "es", "fr", "it", "ja", "ko", "pt", "zh")


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    ERROR = "error"


class UnavailableReason(str, Enum):
    DEVICE_NOT_ELIGIBLE = "deviceNotEligible"
    FEATURE_NOT_ENABLED = "featureNotEnabled"
    MODEL_NOT_READY = "modelNotReady"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: ChatRole
    content: str


@dataclass(frozen=True, slots=True)
class Instruction:
    text: str


@dataclass(frozen=True, slots=True)
class Turn:
    speaker: ChatRole
    text: str


@dataclass(frozen=True, slots=True)
class GenerationContext:
    """Everything the engine needs for one request: instructions, prior turns and the pending prompt."""

    instructions: str
    history: tuple[Turn, ...]
    prompt: str
    prompt_role: ChatRole = ChatRole.USER


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class AvailabilityResult:
    available: bool
    reason: UnavailableReason | None = None
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class CompletionResult:
    text: str
    finish_reason: FinishReason = FinishReason.STOP


@dataclass(slots=True)
class StreamState:
    """Per-response streaming state, owned by the connection serving it."""

    completion_id: str
    created: int
    cumulative_text: str = ""
    sent_role_header: bool = False

    def advance(self, segment: str, *, cumulative: bool) -> str:
        if not cumulative:
            self.cumulative_text += segment
            return segment

        if segment.startswith(self.cumulative_text):
            delta = segment[len(self.cumulative_text) :]
        else:
            delta = segment

        self.cumulative_text = segment
        return delta


@dataclass(frozen=True, slots=True)
class StreamEvent:
    delta: str = ""
    role: str | None = None
    done: bool = False
    finish_reason: FinishReason | None = None
    error: GatewayError | None = None
