"""Provider C: Gemini-style generateContent payload."""

import json
from typing import Any

from ctxstitch.prompts.governance import prefill_instruction
from ctxstitch.targets.base import ProviderPayload, parse_tool_arguments, split_prefill
from ctxstitch.types import Message


def transform(messages: list[Message]) -> ProviderPayload:
    """
    Build ``{"messages": [...], "systemInstruction"?: {...}}`` for a Gemini-style API.

    Roles are ``user`` and ``model``; tool calls and results become
    ``functionCall``/``functionResponse`` parts. Reasoning is not accepted
    as input and is dropped. A trailing model turn without function calls
    is degraded into an instruction on the nearest preceding user turn, or
    into the system instruction when there is none.
    """
    messages, prefill = split_prefill(messages)

    system_parts: list[dict[str, Any]] = []
    contents: list[dict[str, Any]] = []
    call_names: dict[str, str] = {}

    for msg in messages:
        if msg.role == "system":
            system_parts.append({"text": msg.content})
        elif msg.role == "assistant":
            parts: list[dict[str, Any]] = []
            if msg.content:
                parts.append({"text": msg.content})
            for tc in msg.tool_calls:
                call_names[tc.id] = tc.name
                parts.append({"functionCall": {"name": tc.name, "args": parse_tool_arguments(tc)}})
            if not parts:
                parts.append({"text": ""})
            contents.append({"role": "model", "parts": parts})
        elif msg.role == "tool":
            name = call_names.get(msg.tool_call_id) or msg.name or msg.tool_call_id
            contents.append({
                "role": "user",
                "parts": [{"functionResponse": {"name": name, "response": _tool_response(msg.content)}}],
            })
        else:
            contents.append({"role": "user", "parts": [{"text": msg.content}]})

    if prefill:
        _degrade_prefill(contents, system_parts, prefill)

    payload: ProviderPayload = {"messages": _merge_consecutive(contents)}
    if system_parts:
        payload["systemInstruction"] = {"parts": system_parts}
    return payload


def format_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    if not tools:
        return []
    return [{"functionDeclarations": tools}]


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not valid JSON on the wire
    raise ValueError(f"non-standard JSON constant {name}")


def _tool_response(content: str) -> dict[str, Any]:
    """Parse a JSON object result; wrap anything else as ``{"result": ...}``."""
    try:
        parsed = json.loads(content, parse_constant=_reject_constant)
    except (json.JSONDecodeError, ValueError):
        return {"result": content}
    if isinstance(parsed, dict):
        return parsed
    return {"result": parsed}


def _degrade_prefill(
    contents: list[dict[str, Any]],
    system_parts: list[dict[str, Any]],
    prefill: str,
) -> None:
    instruction = prefill_instruction(prefill)
    for i in range(len(contents) - 1, -1, -1):
        if contents[i]["role"] != "user":
            continue
        parts = list(contents[i]["parts"])
        for j in range(len(parts) - 1, -1, -1):
            if "text" in parts[j]:
                parts[j] = {**parts[j], "text": f"{parts[j]['text']}\n\n{instruction}"}
                break
        else:
            parts.append({"text": instruction})
        contents[i] = {**contents[i], "parts": parts}
        return

    system_parts.append({"text": instruction})


def _merge_consecutive(contents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge consecutive contents with the same role (e.g. parallel function responses)."""
    merged: list[dict[str, Any]] = []
    for content in contents:
        if merged and merged[-1]["role"] == content["role"]:
            merged[-1] = {"role": content["role"], "parts": merged[-1]["parts"] + content["parts"]}
        else:
            merged.append(content)
    return merged
