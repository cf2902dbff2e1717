"""Provider-agnostic message representation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]
Placement = Literal["system", "last_user"]

ROLES = ("system", "user", "assistant", "tool")
PLACEMENTS = ("system", "last_user")

# Keys with a typed home on Message; everything else lands in `extensions`.
_KNOWN_KEYS = frozenset({
    "role",
    "content",
    "name",
    "tool_calls",
    "tool_call_id",
    "cache_breakpoint",
    "thinking",
    "redacted_thinking",
})

_TOOL_KEYS = frozenset({"name", "description", "parameters", "input_schema", "tags"})


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation issued by the model. Arguments stay as JSON text."""
    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        fn = data.get("function", {})
        return cls(
            id=data.get("id", ""),
            name=fn.get("name", data.get("name", "")),
            arguments=fn.get("arguments", data.get("arguments", "{}")),
        )


@dataclass(frozen=True)
class Thinking:
    """Visible reasoning attached to an assistant turn."""
    text: str
    signature: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text}
        if self.signature is not None:
            data["signature"] = self.signature
        return data


@dataclass(frozen=True)
class RedactedThinking:
    """Opaque, privacy-filtered reasoning blob."""
    data: str

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data}


@dataclass(frozen=True)
class Message:
    """
    One conversational turn.

    Messages are immutable values: every transformation in the pipeline
    produces new instances via :meth:`replace`. Unrecognized keys are kept
    in ``extensions`` in their original order.
    """
    role: Role
    content: str = ""
    name: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    cache_breakpoint: bool = False
    thinking: Thinking | None = None
    redacted_thinking: RedactedThinking | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown role '{self.role}'")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("A tool message must carry a tool_call_id")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("Only assistant messages may carry tool_calls")
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        clash = _KNOWN_KEYS.intersection(self.extensions)
        if clash:
            raise ValueError(f"Extension keys shadow typed fields: {sorted(clash)}")

    @classmethod
    def system(cls, content: str, **kwargs: Any) -> Message:
        return cls(role="system", content=content, **kwargs)

    @classmethod
    def user(cls, content: str, **kwargs: Any) -> Message:
        return cls(role="user", content=content, **kwargs)

    @classmethod
    def assistant(cls, content: str = "", **kwargs: Any) -> Message:
        return cls(role="assistant", content=content, **kwargs)

    @classmethod
    def tool(cls, content: str, tool_call_id: str, **kwargs: Any) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, **kwargs)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    def replace(self, **changes: Any) -> Message:
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Plain dict form. Optional fields are omitted when unset."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name is not None:
            data["name"] = self.name
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.thinking is not None:
            data["thinking"] = self.thinking.to_dict()
        if self.redacted_thinking is not None:
            data["redacted_thinking"] = self.redacted_thinking.to_dict()
        data.update(self.extensions)
        if self.cache_breakpoint:
            data["cache_breakpoint"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        thinking = data.get("thinking")
        redacted = data.get("redacted_thinking")
        return cls(
            role=data["role"],
            content=data.get("content") or "",
            name=data.get("name"),
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in data.get("tool_calls") or ()),
            tool_call_id=data.get("tool_call_id"),
            cache_breakpoint=bool(data.get("cache_breakpoint", False)),
            thinking=Thinking(thinking.get("text", ""), thinking.get("signature")) if thinking else None,
            redacted_thinking=RedactedThinking(redacted.get("data", "")) if redacted else None,
            extensions={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


@dataclass(frozen=True)
class ToolDefinition:
    """A tool made available to the model.

    ``tags`` are internal routing metadata for the tool registry and are
    stripped before the definition reaches a provider. Any other key
    (``strict``, ``cache_control``, ...) is kept in ``extensions`` and
    passed through unchanged.
    """
    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    tags: tuple[str, ...] = ()
    extensions: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Provider-neutral form without tags."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            **self.extensions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolDefinition:
        # Accept OpenAI-style {"type": "function", "function": {...}} as well
        wrapped = isinstance(data.get("function"), dict)
        fn = data["function"] if wrapped else data

        extensions = {k: v for k, v in fn.items() if k not in _TOOL_KEYS}
        if wrapped:
            extensions.update(
                (k, v) for k, v in data.items() if k not in ("type", "function", "tags")
            )

        # Anthropic-style definitions carry the schema under input_schema
        parameters = fn.get("parameters") or fn.get("input_schema")
        return cls(
            name=fn.get("name", ""),
            description=fn.get("description", ""),
            parameters=parameters or {"type": "object", "properties": {}},
            tags=tuple(data.get("tags") or fn.get("tags") or ()),
            extensions=extensions,
        )
