"""Shared pieces of the per-provider payload transforms."""

import json
from enum import Enum
from typing import Any, Iterable

from ctxstitch.errors import ToolArgumentsError
from ctxstitch.types import Message, ToolCall, ToolDefinition

ProviderPayload = dict[str, Any]


class Target(str, Enum):
    """Provider wire formats the pipeline can emit."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


def parse_tool_arguments(tool_call: ToolCall) -> dict[str, Any]:
    """Decode a tool call's JSON arguments into an object.

    Empty arguments decode to ``{}``. Anything that is not a JSON object
    raises :class:`ToolArgumentsError`.
    """
    raw = tool_call.arguments
    if not raw or not raw.strip():
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolArgumentsError(tool_call.id, str(e)) from e
    if not isinstance(args, dict):
        raise ToolArgumentsError(tool_call.id, "arguments must be a JSON object")
    return args


def split_prefill(messages: list[Message]) -> tuple[list[Message], str | None]:
    """Detach a trailing assistant turn without tool calls.

    Returns (remaining messages, prefill text) or (messages, None) when the
    sequence does not end in a prefill.
    """
    if messages and messages[-1].role == "assistant" and not messages[-1].has_tool_calls:
        return messages[:-1], messages[-1].content
    return messages, None


def strip_tool_tags(tools: Iterable[ToolDefinition | dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop internal-only metadata (tags) and return plain definitions.

    Keys other than tags pass through unchanged.
    """
    stripped = []
    for tool in tools:
        if isinstance(tool, dict):
            tool = ToolDefinition.from_dict(tool)
        stripped.append(tool.to_dict())
    return stripped
