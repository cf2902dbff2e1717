"""Deterministic assembly of the final message sequence."""

import hashlib
import json
from typing import Any, Iterable

from ctxstitch.errors import ConfigurationError
from ctxstitch.prompts.governance import STATE_BLOCK_TEMPLATE
from ctxstitch.types import PLACEMENTS, Message, Placement

CACHE_BREAKPOINT_KEY = "cache_breakpoint"


def canonicalize(obj: Any) -> Any:
    """Rebuild ``obj`` with dict keys sorted, recursively.

    The cache breakpoint key keeps its original relative position (consumers
    expect it to trail the object it annotates) and its value is copied as
    is. Lists keep their order.
    """
    if isinstance(obj, dict):
        keys = list(obj)
        marker_at = keys.index(CACHE_BREAKPOINT_KEY) if CACHE_BREAKPOINT_KEY in keys else None
        ordered = sorted(k for k in keys if k != CACHE_BREAKPOINT_KEY)
        if marker_at is not None:
            ordered.insert(marker_at, CACHE_BREAKPOINT_KEY)
        return {
            k: obj[k] if k == CACHE_BREAKPOINT_KEY else canonicalize(obj[k])
            for k in ordered
        }
    if isinstance(obj, (list, tuple)):
        return [canonicalize(v) for v in obj]
    return obj


def serialize(obj: Any) -> str:
    """Compact, byte-stable JSON text of ``obj``."""
    if isinstance(obj, Message):
        obj = obj.to_dict()
    elif isinstance(obj, (list, tuple)):
        obj = [m.to_dict() if isinstance(m, Message) else m for m in obj]
    return json.dumps(canonicalize(obj), ensure_ascii=False, separators=(",", ":"))


def fingerprint(messages: Iterable[Message]) -> str:
    """SHA-256 of the canonical serialization, for prefix-stability checks."""
    return hashlib.sha256(serialize(list(messages)).encode("utf-8")).hexdigest()


def canonicalize_message(message: Message) -> Message:
    return Message.from_dict(canonicalize(message.to_dict()))


def build_state_block(xml: str) -> str:
    return STATE_BLOCK_TEMPLATE.format(xml=xml)


class Stitcher:
    """
    Merges the layered message groups into one canonical sequence.

    Two responsibilities:
    1. Optionally rewrite the last user turn to carry injected state, so the
       state sits next to the generation point instead of at the top.
    2. Canonicalize every message so an unchanged prefix serializes to the
       same bytes on every turn.
    """

    def assemble(
        self,
        messages: list[Message],
        injected_xml: str | None = None,
        placement: Placement = "last_user",
    ) -> list[Message]:
        if placement not in PLACEMENTS:
            raise ConfigurationError("unknown placement", repr(placement))

        assembled = list(messages)
        if injected_xml and placement == "last_user":
            assembled = self._inject_into_last_user(assembled, injected_xml)

        return [canonicalize_message(m) for m in assembled]

    @staticmethod
    def _inject_into_last_user(messages: list[Message], xml: str) -> list[Message]:
        """Append the state block to the last user turn, or add a new user turn."""
        block = build_state_block(xml)
        for i in range(len(messages) - 1, -1, -1):
            if messages[i].role == "user":
                messages[i] = messages[i].replace(content=messages[i].content + block)
                return messages

        messages.append(Message.user(block.strip()))
        return messages
