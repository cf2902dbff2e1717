"""Provider B: Anthropic-style messages payload."""

from typing import Any

from ctxstitch.targets.base import ProviderPayload, parse_tool_arguments
from ctxstitch.types import Message

EPHEMERAL_CACHE = {"type": "ephemeral"}


def transform(messages: list[Message]) -> ProviderPayload:
    """
    Build ``{"system"?: [...], "messages": [...]}`` for an Anthropic-style API.

    System messages are lifted into top-level text blocks. Tool results
    become ``tool_result`` blocks in user turns. Reasoning is echoed back as
    thinking blocks ahead of the turn's text. A trailing assistant turn is
    a native prefill and passes through unchanged.
    """
    system_blocks: list[dict[str, Any]] = []
    chat: list[dict[str, Any]] = []

    for msg in messages:
        if msg.role == "system":
            block: dict[str, Any] = {"type": "text", "text": msg.content}
            if msg.cache_breakpoint:
                block["cache_control"] = dict(EPHEMERAL_CACHE)
            system_blocks.append(block)
            continue

        if msg.role == "tool":
            role = "user"
            blocks = [{
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content,
            }]
        elif msg.role == "assistant":
            role = "assistant"
            blocks = _assistant_blocks(msg)
        else:
            role = "user"
            blocks = [{"type": "text", "text": msg.content}]

        if msg.cache_breakpoint:
            blocks[-1] = {**blocks[-1], "cache_control": dict(EPHEMERAL_CACHE)}

        chat.append({"role": role, "content": blocks})

    payload: ProviderPayload = {}
    if system_blocks:
        payload["system"] = system_blocks
    payload["messages"] = _merge_consecutive(chat)
    return payload


def format_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    formatted = []
    for tool in tools:
        extra = {k: v for k, v in tool.items() if k not in ("name", "description", "parameters")}
        formatted.append({
            "name": tool["name"],
            "description": tool["description"],
            "input_schema": tool["parameters"],
            **extra,
        })
    return formatted


def _assistant_blocks(msg: Message) -> list[dict[str, Any]]:
    """Thinking, then redacted thinking, then text, then tool_use blocks."""
    blocks: list[dict[str, Any]] = []
    if msg.thinking is not None:
        blocks.append({
            "type": "thinking",
            "thinking": msg.thinking.text,
            "signature": msg.thinking.signature or "",
        })
    if msg.redacted_thinking is not None:
        blocks.append({"type": "redacted_thinking", "data": msg.redacted_thinking.data})

    # The API rejects empty text blocks unless they are the only content
    if msg.content or not (blocks or msg.tool_calls):
        blocks.append({"type": "text", "text": msg.content})

    for tc in msg.tool_calls:
        blocks.append({
            "type": "tool_use",
            "id": tc.id,
            "name": tc.name,
            "input": parse_tool_arguments(tc),
        })
    return blocks


def _merge_consecutive(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge consecutive messages with the same role.

    Anthropic requires strictly alternating user/assistant roles, and
    parallel tool results must share one user turn.
    """
    if not messages:
        return messages

    merged: list[dict[str, Any]] = [messages[0]]
    for msg in messages[1:]:
        if msg["role"] == merged[-1]["role"]:
            merged[-1] = {
                "role": msg["role"],
                "content": merged[-1]["content"] + msg["content"],
            }
        else:
            merged.append(msg)
    return merged
