"""Pipeline orchestrator: layered state in, provider payload out."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable

from loguru import logger
from pydantic import BaseModel

from ctxstitch.compactor import CompactCallback, Compactor, Summarizer
from ctxstitch.config.schema import PipelineConfig
from ctxstitch.errors import ConfigurationError
from ctxstitch.governor import Governor
from ctxstitch.markup import to_xml
from ctxstitch.memory import Memory, MemoryEntry
from ctxstitch.prompts.governance import STATE_SYSTEM_PREFIX
from ctxstitch.stitcher import Stitcher
from ctxstitch.targets import registry
from ctxstitch.targets.base import ProviderPayload, Target
from ctxstitch.tokens import Tokenizer
from ctxstitch.types import PLACEMENTS, Message, Placement, ToolDefinition

MessageLike = Message | dict[str, Any]
BeforeCompileHook = Callable[["BeforeCompileContext"], "str | None | Awaitable[str | None]"]
TransformHook = Callable[[list[Message]], "list[Message] | None | Awaitable[list[Message] | None]"]


@dataclass(frozen=True)
class BeforeCompileContext:
    """Read-only view of the layers handed to the ``before_compile`` hook."""
    static: list[Message]
    history: list[Message]
    ephemeral: list[Message]
    raw_injected_xml: str | None


@dataclass
class PipelineSnapshot:
    """Point-in-time copy of pipeline state. Messages are immutable, so lists are shallow copies."""
    static: list[Message]
    history: list[Message]
    ephemeral: list[Message]
    placement: Placement
    raw_injected_xml: str | None
    memory: dict[str, str] | None = None
    label: str | None = None
    created_at: datetime = field(default_factory=datetime.now)


def _to_message(message: MessageLike) -> Message:
    return message if isinstance(message, Message) else Message.from_dict(message)


def _to_tool(tool: ToolDefinition | dict[str, Any]) -> ToolDefinition:
    return tool if isinstance(tool, ToolDefinition) else ToolDefinition.from_dict(tool)


def _implicit_context(text: str) -> str:
    return f"<implicit_context>\n{text}\n</implicit_context>"


class ContextPipeline:
    """
    Holds the three context layers and compiles them into a provider payload.

    Layers:
    - static: system prompt and other content that never changes between turns
    - history: the rolling conversation, subject to compaction
    - ephemeral: per-turn guidance (guardrails, prefill, state in system mode)

    :meth:`compile` runs, in order: compaction, the ``before_compile`` hook,
    layer concatenation, the ``transform_hook``, canonical assembly with state
    injection, the target transform, and tool merging.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        summarizer: Summarizer | None = None,
        tokenizer: Tokenizer | None = None,
        on_compact: CompactCallback | None = None,
        before_compile: BeforeCompileHook | None = None,
        transform_hook: TransformHook | None = None,
        memory: Memory | None = None,
    ):
        self.config = config or PipelineConfig()
        self.compactor = Compactor(
            self.config.compaction,
            summarizer=summarizer,
            tokenizer=tokenizer,
            on_compact=on_compact,
        )
        self.stitcher = Stitcher()
        self.governor = Governor()
        self.before_compile = before_compile
        self.transform_hook = transform_hook
        self.memory = memory

        self._static: list[Message] = []
        self._history: list[Message] = []
        self._ephemeral: list[Message] = []
        self._tools: list[ToolDefinition] = []
        self._placement: Placement = self.config.placement
        self._raw_injected_xml: str | None = None

    # ── Layers ──────────────────────────────────────────────────

    @property
    def history(self) -> list[Message]:
        return list(self._history)

    @property
    def placement(self) -> Placement:
        return self._placement

    def set_static(self, messages: Iterable[MessageLike]) -> ContextPipeline:
        self._static = [_to_message(m) for m in messages]
        return self

    def set_history(self, messages: Iterable[MessageLike]) -> ContextPipeline:
        self._history = [_to_message(m) for m in messages]
        return self

    def append_history(self, *messages: MessageLike) -> ContextPipeline:
        self._history.extend(_to_message(m) for m in messages)
        return self

    def clear_history(self) -> ContextPipeline:
        """Drop the rolling history and the compactor's hint and cooldown."""
        self._history = []
        self.compactor.reset()
        return self

    def set_dynamic_state(
        self,
        state: dict[str, Any] | BaseModel | None,
        placement: Placement | None = None,
    ) -> ContextPipeline:
        """
        Set the structured state injected on every compile.

        ``state`` is rendered as XML under a ``current_state`` root. With
        ``placement="last_user"`` it is appended to the last user turn; with
        ``placement="system"`` it becomes a system message in the ephemeral
        layer. Without ``placement`` the placement already recorded is kept.
        ``None`` clears the state.
        """
        placement = placement or self._placement
        if placement not in PLACEMENTS:
            raise ConfigurationError("unknown placement", repr(placement))

        if isinstance(state, BaseModel):
            state = state.model_dump()

        self._placement = placement
        self._raw_injected_xml = to_xml(state, "current_state") if state is not None else None
        return self

    def with_governance(
        self,
        output_tag: str | None = None,
        include_thinking: bool = True,
        prefill: str | None = None,
    ) -> ContextPipeline:
        self._ephemeral = self.governor.apply(
            self._ephemeral,
            output_tag=output_tag,
            include_thinking=include_thinking,
            prefill=prefill,
        )
        return self

    def clear_ephemeral(self) -> ContextPipeline:
        self._ephemeral = []
        return self

    def set_tools(self, tools: Iterable[ToolDefinition | dict[str, Any]]) -> ContextPipeline:
        self._tools = [_to_tool(t) for t in tools]
        return self

    def feed_token_usage(self, count: int) -> None:
        """Report the prompt token count from the last real provider response."""
        self.compactor.feed_hint(count)

    # ── Memory ──────────────────────────────────────────────────

    async def apply_memory_updates(self, text: str) -> list[MemoryEntry]:
        if self.memory is None:
            raise ConfigurationError("no memory configured")
        return await self.memory.extract_and_apply(text)

    # ── Snapshot / restore ──────────────────────────────────────

    def snapshot(self, label: str | None = None) -> PipelineSnapshot:
        return PipelineSnapshot(
            static=list(self._static),
            history=list(self._history),
            ephemeral=list(self._ephemeral),
            placement=self._placement,
            raw_injected_xml=self._raw_injected_xml,
            memory=self.memory.snapshot() if self.memory else None,
            label=label,
        )

    def restore(self, snapshot: PipelineSnapshot) -> ContextPipeline:
        self._static = list(snapshot.static)
        self._history = list(snapshot.history)
        self._ephemeral = list(snapshot.ephemeral)
        self._placement = snapshot.placement
        self._raw_injected_xml = snapshot.raw_injected_xml
        if self.memory is not None and snapshot.memory is not None:
            self.memory.restore(snapshot.memory)
        logger.debug(f"Pipeline restored from snapshot {snapshot.label or snapshot.created_at.isoformat()}")
        return self

    # ── Compile ─────────────────────────────────────────────────

    async def compile(self, target: str | Target | None = None) -> ProviderPayload:
        """Compact, assemble and encode the current state for ``target``."""
        fmt = registry.get_target(target or self.config.default_target)

        self._history = await self.compactor.compact(self._history)

        memory_block = await self.memory.to_prompt() if self.memory else ""

        hook_text = None
        if self.before_compile:
            hook_text = self.before_compile(self._hook_context())
            if inspect.isawaitable(hook_text):
                hook_text = await hook_text

        messages, injected = self._stack_layers(memory_block, hook_text)

        if self.transform_hook:
            result = self.transform_hook(messages)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                messages = list(result)

        return self._encode(fmt.target, messages, injected)

    def compile_sync(self, target: str | Target | None = None) -> ProviderPayload:
        """
        Synchronous compile for callers without an event loop.

        Compaction is skipped because summarization is asynchronous. Hooks
        returning an awaitable raise :class:`ConfigurationError`, as does a
        configured memory (store reads are asynchronous).
        """
        fmt = registry.get_target(target or self.config.default_target)

        if self.memory is not None:
            raise ConfigurationError(
                "memory requires asynchronous compile", "use compile() instead of compile_sync()"
            )

        hook_text = None
        if self.before_compile:
            hook_text = self._call_sync("before_compile", self.before_compile, self._hook_context())

        messages, injected = self._stack_layers("", hook_text)

        if self.transform_hook:
            result = self._call_sync("transform_hook", self.transform_hook, messages)
            if result is not None:
                messages = list(result)

        return self._encode(fmt.target, messages, injected)

    @staticmethod
    def _call_sync(name: str, hook: Callable[[Any], Any], arg: Any) -> Any:
        result = hook(arg)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise ConfigurationError(
                f"{name} returned an awaitable", "use compile() for asynchronous hooks"
            )
        return result

    def _hook_context(self) -> BeforeCompileContext:
        return BeforeCompileContext(
            static=list(self._static),
            history=list(self._history),
            ephemeral=list(self._ephemeral),
            raw_injected_xml=self._raw_injected_xml,
        )

    def _stack_layers(
        self, memory_block: str, hook_text: str | None
    ) -> tuple[list[Message], str | None]:
        """Concatenate the layers; return them with the text to inject into the last user turn."""
        implicit = _implicit_context(hook_text) if hook_text else None
        ephemeral = list(self._ephemeral)

        if self._placement == "system":
            extra: list[Message] = []
            if memory_block:
                extra.append(Message.system(memory_block))
            state_parts = [p for p in (self._raw_injected_xml, implicit) if p]
            if state_parts:
                extra.append(Message.system(STATE_SYSTEM_PREFIX + "\n".join(state_parts)))
            ephemeral = extra + ephemeral
            injected = None
        else:
            parts = [p for p in (memory_block, self._raw_injected_xml, implicit) if p]
            injected = "\n".join(parts) or None

        return [*self._static, *self._history, *ephemeral], injected

    def _encode(
        self, target: Target, messages: list[Message], injected: str | None
    ) -> ProviderPayload:
        assembled = self.stitcher.assemble(messages, injected, self._placement)
        payload = registry.transform(target, assembled, self._tools)
        logger.debug(
            f"Compiled {len(assembled)} messages for {target.value} "
            f"(history={len(self._history)}, tools={len(self._tools)})"
        )
        return payload
