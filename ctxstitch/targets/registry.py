"""Lookup table of target formats."""

from dataclasses import dataclass
from typing import Any, Callable, Iterable

from ctxstitch.config.schema import TARGET_ALIASES
from ctxstitch.errors import ConfigurationError
from ctxstitch.targets import anthropic_target, gemini_target, openai_target
from ctxstitch.targets.base import ProviderPayload, Target, strip_tool_tags
from ctxstitch.types import Message, ToolDefinition


@dataclass(frozen=True)
class TargetFormat:
    """One provider variant: its transform plus the capabilities it degrades."""
    target: Target
    name: str
    transform: Callable[[list[Message]], ProviderPayload]
    format_tools: Callable[[list[dict[str, Any]]], list[dict[str, Any]]]
    native_prefill: bool
    prompt_caching: bool
    reasoning_input: bool


TARGETS: dict[Target, TargetFormat] = {
    Target.OPENAI: TargetFormat(
        target=Target.OPENAI,
        name="OpenAI",
        transform=openai_target.transform,
        format_tools=openai_target.format_tools,
        native_prefill=False,
        prompt_caching=False,
        reasoning_input=False,
    ),
    Target.ANTHROPIC: TargetFormat(
        target=Target.ANTHROPIC,
        name="Anthropic",
        transform=anthropic_target.transform,
        format_tools=anthropic_target.format_tools,
        native_prefill=True,
        prompt_caching=True,
        reasoning_input=True,
    ),
    Target.GEMINI: TargetFormat(
        target=Target.GEMINI,
        name="Gemini",
        transform=gemini_target.transform,
        format_tools=gemini_target.format_tools,
        native_prefill=False,
        prompt_caching=False,
        reasoning_input=False,
    ),
}


def resolve_target(target: str | Target) -> Target:
    """Map a provider name (or its A/B/C alias) to a Target."""
    if isinstance(target, Target):
        return target
    name = TARGET_ALIASES.get(target)
    if name is None:
        raise ConfigurationError("unsupported target provider", repr(target))
    return Target(name)


def get_target(target: str | Target) -> TargetFormat:
    return TARGETS[resolve_target(target)]


def transform(
    target: str | Target,
    messages: list[Message],
    tools: Iterable[ToolDefinition | dict[str, Any]] | None = None,
) -> ProviderPayload:
    """Encode ``messages`` for ``target`` and merge in tool definitions if any."""
    fmt = get_target(target)
    payload = fmt.transform(list(messages))
    stripped = strip_tool_tags(tools or [])
    if stripped:
        payload["tools"] = fmt.format_tools(stripped)
    return payload
