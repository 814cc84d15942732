from __future__ import annotations

import pytest

from ondevice_openai.core.context import INSTRUCTION_DELIMITER, build_context, render_prompt
from ondevice_openai.core.types import ChatMessage, ChatRole, Turn

SYSTEM, USER, ASSISTANT = ChatRole.SYSTEM, ChatRole.USER, ChatRole.ASSISTANT


def _messages(*pairs: tuple[ChatRole, str]) -> list[ChatMessage]:
    return [ChatMessage(role=role, content=content) for role, content in pairs]


def test_build_context_aggregates_system_messages_and_keeps_turn_order():
    context = build_context(
        _messages(
            (SYSTEM, "A"),
            (USER, "B"),
            (SYSTEM, "C"),
            (ASSISTANT, "D"),
            (USER, "E"),
        )
    )

    assert context.instructions == "A" + INSTRUCTION_DELIMITER + "C"
    assert context.history == (Turn(USER, "B"), Turn(ASSISTANT, "D"))
    assert context.prompt == "E"


def test_build_context_single_message():
    context = build_context(_messages((USER, "Hi")))

    assert context.instructions == ""
    assert context.history == ()
    assert context.prompt == "Hi"


@pytest.mark.parametrize("last_role", [SYSTEM, USER, ASSISTANT])
def test_last_message_is_prompt_regardless_of_role(last_role: ChatRole):
    context = build_context(
        _messages((SYSTEM, "Rules"), (USER, "Question"), (last_role, "Final"))
    )

    assert context.prompt == "Final"
    assert context.instructions == "Rules"
    assert context.history == (Turn(USER, "Question"),)


def test_adjacent_same_role_messages_are_not_merged():
    context = build_context(
        _messages((USER, "one"), (USER, "two"), (ASSISTANT, "three"), (USER, "four"))
    )

    assert context.history == (
        Turn(USER, "one"),
        Turn(USER, "two"),
        Turn(ASSISTANT, "three"),
    )


def test_build_context_is_deterministic():
    messages = _messages((SYSTEM, "Be brief."), (USER, "Hi"), (ASSISTANT, "Hello"), (USER, "Bye"))

    assert build_context(messages) == build_context(messages)


def test_build_context_rejects_empty_input():
    with pytest.raises(ValueError):
        build_context([])


def test_render_prompt_without_history_is_the_prompt():
    context = build_context(_messages((SYSTEM, "Be brief."), (USER, "Hi")))

    assert render_prompt(context) == "Hi"


def test_render_prompt_includes_conversation_history():
    context = build_context(
        _messages((USER, "First message"), (ASSISTANT, "Prior answer"), (USER, "Second message"))
    )

    prompt = render_prompt(context)

    assert "User: First message\nAssistant: Prior answer\nUser: Second message" in prompt
    assert prompt.endswith("Assistant:")


@pytest.mark.parametrize(
    ("last_role", "label"),
    [(USER, "User"), (ASSISTANT, "Assistant"), (SYSTEM, "System")],
)
def test_render_prompt_labels_final_message_with_its_role(last_role: ChatRole, label: str):
    context = build_context(_messages((USER, "q"), (last_role, "Partial")))

    assert context.prompt_role is last_role
    assert f"User: q\n{label}: Partial\n\nAssistant:" in render_prompt(context)
