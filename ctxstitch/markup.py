"""XML rendering for injected state and a small scanner for memory tags."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_UNSAFE_TAG_CHARS = re.compile(r"[^A-Za-z0-9_]")

_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&apos;",
    '"': "&quot;",
}


def escape_xml(text: str) -> str:
    return "".join(_ESCAPES.get(c, c) for c in text)


def sanitize_tag(key: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_]`` with an underscore."""
    return _UNSAFE_TAG_CHARS.sub("_", str(key)) or "_"


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return escape_xml(str(value))


def _indent(block: str, prefix: str = "  ") -> str:
    return "\n".join(prefix + line for line in block.splitlines())


def to_xml(value: Any, root: str = "data") -> str:
    """
    Render a JSON-like value as nested tags.

    Dicts become ``<root><key>value</key>...</root>``, lists become
    repeated ``<item>`` tags inside ``root``, scalars are escaped text.
    ``None`` renders as an empty string and ``None`` dict values are skipped.
    """
    tag = sanitize_tag(root)

    if value is None:
        return ""

    if isinstance(value, dict):
        children = [
            to_xml(v, sanitize_tag(k)) for k, v in value.items() if v is not None
        ]
        if not children:
            return f"<{tag}></{tag}>"
        inner = "\n".join(_indent(c) for c in children)
        return f"<{tag}>\n{inner}\n</{tag}>"

    if isinstance(value, (list, tuple)):
        items = [to_xml(v, "item") for v in value if v is not None]
        if not items:
            return f"<{tag}></{tag}>"
        inner = "\n".join(_indent(i) for i in items)
        return f"<{tag}>\n{inner}\n</{tag}>"

    return f"<{tag}>{_scalar(value)}</{tag}>"


# ── Tag scanner ─────────────────────────────────────────────────


@dataclass(frozen=True)
class TagMatch:
    """One occurrence of a scanned tag."""
    name: str
    attrs: dict[str, str] = field(default_factory=dict)
    body: str | None = None  # None for self-closing tags
    start: int = 0
    end: int = 0

    @property
    def self_closing(self) -> bool:
        return self.body is None


def _parse_attrs(text: str, pos: int) -> tuple[dict[str, str], int, bool] | None:
    """Parse ``key="value"`` pairs up to ``>`` or ``/>``.

    Returns (attrs, index after the tag, self_closing) or None if malformed.
    """
    attrs: dict[str, str] = {}
    n = len(text)
    while pos < n:
        while pos < n and text[pos].isspace():
            pos += 1
        if text.startswith("/>", pos):
            return attrs, pos + 2, True
        if pos < n and text[pos] == ">":
            return attrs, pos + 1, False

        name_start = pos
        while pos < n and (text[pos].isalnum() or text[pos] in "_-:"):
            pos += 1
        name = text[name_start:pos]
        if not name or not text.startswith('="', pos):
            return None
        value_start = pos + 2
        value_end = text.find('"', value_start)
        if value_end == -1:
            return None
        attrs[name] = text[value_start:value_end]
        pos = value_end + 1
    return None


def scan_tags(text: str, name: str) -> list[TagMatch]:
    """
    Find ``<name attr="..">body</name>`` and ``<name attr=".."/>`` in order.

    Bodies are returned raw (not unescaped). Malformed or unclosed
    occurrences are skipped.
    """
    opener = f"<{name}"
    closer = f"</{name}>"
    matches: list[TagMatch] = []
    pos = 0

    while True:
        start = text.find(opener, pos)
        if start == -1:
            break
        after = start + len(opener)
        # Require a delimiter so <name_other> does not match <name>
        if after >= len(text) or not (text[after].isspace() or text[after] in "/>"):
            pos = after
            continue

        parsed = _parse_attrs(text, after)
        if parsed is None:
            pos = after
            continue
        attrs, tag_end, self_closing = parsed

        if self_closing:
            matches.append(TagMatch(name, attrs, None, start, tag_end))
            pos = tag_end
            continue

        close = text.find(closer, tag_end)
        if close == -1:
            pos = tag_end
            continue
        end = close + len(closer)
        matches.append(TagMatch(name, attrs, text[tag_end:close], start, end))
        pos = end

    return matches
