from __future__ import annotations

from typing import Sequence

from .types import ChatMessage, ChatRole, GenerationContext, Instruction, Turn

INSTRUCTION_DELIMITER = "\n\n"

_SPEAKER_LABELS = {
    ChatRole.USER: "User",
    ChatRole.ASSISTANT: "Assistant",
    ChatRole.SYSTEM: "System",
}


def build_context(messages: Sequence[ChatMessage]) -> GenerationContext:
    """Split a chat transcript into instructions, prior turns and the pending prompt.

    The last message is always the prompt, whatever its role. System messages
    before it are joined into the instructions; every other earlier message
    becomes one turn, in the order received.
    """

    if not messages:
        raise ValueError("messages must contain at least one item.")

    *earlier, last = messages

    instructions: list[str] = []
    history: list[Turn] = []
    for message in earlier:
        segment = _segment(message)
        if isinstance(segment, Instruction):
            if segment.text:
                instructions.append(segment.text)
        else:
            history.append(segment)

    return GenerationContext(
        instructions=INSTRUCTION_DELIMITER.join(instructions),
        history=tuple(history),
        prompt=last.content,
        prompt_role=last.role,
    )


def render_prompt(context: GenerationContext) -> str:
    if not context.history:
        return context.prompt

    lines = [f"{_SPEAKER_LABELS[turn.speaker]}: {turn.text}" for turn in context.history]
    lines.append(f"{_SPEAKER_LABELS[context.prompt_role]}: {context.prompt}")
    conversation = "\n".join(lines)

    return (
        "Use the following conversation history to produce the next assistant message.\n\n"
        "Conversation:\n"
        f"{conversation}\n\n"
        "Assistant:"
    )


def _segment(message: ChatMessage) -> Instruction | Turn:
    if message.role is ChatRole.SYSTEM:
        return Instruction(message.content)
    return Turn(speaker=message.role, text=message.content)
