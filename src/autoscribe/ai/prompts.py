"""Prompt text and tool schema for replacement generation."""

from __future__ import annotations

from typing import Any, Dict, List

from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionToolChoiceOptionParam,
    ChatCompletionToolParam,
)

from .ai_types import GenerationRequest

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "REPLACE_TOOL_NAME",
    "REPLACEMENT_FIELD",
    "REPLACE_TEXT_TOOL",
    "REPLACE_TEXT_TOOL_CHOICE",
    "build_messages",
    "format_user_prompt",
]

REPLACE_TOOL_NAME = "replace_text"
REPLACEMENT_FIELD = "selectionReplacement"

DEFAULT_SYSTEM_PROMPT = """# Identity:
You are a helpful content generator. Given a selection of text, you are tasked with generating a replacement for the selection.

# Your Role
Based on the context of the full text, and the selection itself, you are to generate a replacement for the given selection.
The selection might take the form of an instruction, something to elaborate on, a transformation of some other part of the text, or some other prompt.
The goal is to provide the best completion for the given selection, based on the context of the full text and the intent of the author.

# Things to remember:
- Markdown is supported
- Only the replacement is inserted into the document, so do not repeat the surrounding text
"""

REPLACE_TEXT_TOOL: ChatCompletionToolParam = {
    "type": "function",
    "function": {
        "name": REPLACE_TOOL_NAME,
        "description": "Provide the replacement text for the selection",
        "parameters": {
            "type": "object",
            "properties": {
                REPLACEMENT_FIELD: {
                    "type": "string",
                    "description": "The text that will replace the selection",
                },
            },
            "required": [REPLACEMENT_FIELD],
        },
    },
}

REPLACE_TEXT_TOOL_CHOICE: ChatCompletionToolChoiceOptionParam = {
    "type": "function",
    "function": {"name": REPLACE_TOOL_NAME},
}


def format_user_prompt(context_window: str, target_span: str) -> str:
    return (
        "Full Text:\n"
        f"{context_window}\n"
        "\n"
        "Specific Selection to Replace:\n"
        f"{target_span}\n"
    )


def build_messages(request: GenerationRequest) -> List[ChatCompletionMessageParam]:
    """Return the system + user message pair for ``request``."""

    system: Dict[str, Any] = {"role": "system", "content": request.system_prompt}
    user: Dict[str, Any] = {
        "role": "user",
        "content": format_user_prompt(request.context_window, request.target_span),
    }
    return [system, user]  # type: ignore[list-item]
