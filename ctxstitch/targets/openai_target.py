"""Provider A: OpenAI-style chat completions payload."""

from typing import Any

from ctxstitch.prompts.governance import prefill_instruction
from ctxstitch.targets.base import ProviderPayload, split_prefill
from ctxstitch.types import Message


def transform(messages: list[Message]) -> ProviderPayload:
    """
    Build ``{"messages": [...]}`` for an OpenAI-style API.

    System messages stay inline. Reasoning fields and the cache breakpoint
    marker are dropped. The API does not continue a trailing assistant turn,
    so a prefill is turned into an instruction on the nearest preceding
    user or system turn.
    """
    messages, prefill = split_prefill(messages)
    formatted = [_format_message(m) for m in messages]

    if prefill:
        formatted = _degrade_prefill(formatted, prefill)

    return {"messages": formatted}


def format_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{"type": "function", "function": tool} for tool in tools]


def _format_message(msg: Message) -> dict[str, Any]:
    out: dict[str, Any] = {"role": msg.role, "content": msg.content}
    if msg.name is not None:
        out["name"] = msg.name
    if msg.tool_calls:
        out["tool_calls"] = [tc.to_dict() for tc in msg.tool_calls]
    if msg.tool_call_id is not None:
        out["tool_call_id"] = msg.tool_call_id
    # Open wire format: caller extensions pass through
    out.update(msg.extensions)
    return out


def _degrade_prefill(formatted: list[dict[str, Any]], prefill: str) -> list[dict[str, Any]]:
    note = f"\n\n{prefill_instruction(prefill)}"
    for i in range(len(formatted) - 1, -1, -1):
        if formatted[i]["role"] in ("user", "system"):
            formatted[i] = {**formatted[i], "content": formatted[i]["content"] + note}
            return formatted

    formatted.append({"role": "user", "content": note.strip()})
    return formatted
