"""Approximate token estimation for history budgeting."""

import json
import re
from typing import Any, Callable, Iterable

from ctxstitch.types import Message

Tokenizer = Callable[[str], int]

# Weights in tenths of a token: CJK ~1.5 tokens/char,
# everything else ~0.3 tokens/char (~3.3 chars/token)
CJK_TENTHS_PER_CHAR = 15
OTHER_TENTHS_PER_CHAR = 3

_CJK = re.compile("[\u4e00-\u9fa5\u3040-\u30ff\uac00-\ud7af]")


def estimate_tokens(text: str) -> int:
    """Estimate token count of a string, rounding up."""
    if not text:
        return 0
    cjk = len(_CJK.findall(text))
    other = len(text) - cjk
    tenths = cjk * CJK_TENTHS_PER_CHAR + other * OTHER_TENTHS_PER_CHAR
    return -(-tenths // 10)


def estimate_object(obj: Any) -> int:
    """Estimate tokens for any JSON-serializable value."""
    if isinstance(obj, str):
        return estimate_tokens(obj)
    return estimate_tokens(json.dumps(obj, ensure_ascii=False))


def estimate_messages(
    messages: Iterable[Message],
    tokenizer: Tokenizer | None = None,
) -> int:
    """Estimate total tokens for a message list.

    A caller-supplied ``tokenizer`` receives the JSON serialization of the
    message dicts, so exact tokenizers see the same text as the heuristic.
    """
    payload = [m.to_dict() for m in messages]
    if tokenizer:
        return tokenizer(json.dumps(payload, ensure_ascii=False))
    return estimate_object(payload)
