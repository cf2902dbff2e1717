"""Compaction engine for rolling conversation history."""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from ctxstitch.config.schema import CompactionConfig
from ctxstitch.prompts.compaction import COMPACTION_INSTRUCTION, fallback_summary
from ctxstitch.tokens import Tokenizer, estimate_messages
from ctxstitch.types import Message

Summarizer = Callable[[list[Message]], Awaitable[str]]
CompactCallback = Callable[[Message, int], Any]


@dataclass
class CompactionBudget:
    """Per-conversation hint/suppression state owned by one Compactor."""
    external_token_hint: int | None = None
    suppress_next: bool = False


class Compactor:
    """
    Keeps rolling history within a token (or message-count) budget.

    When the history is over budget, the oldest contiguous prefix is handed
    to an injected summarizer and replaced by a single synthetic ``system``
    message; the newest messages are kept verbatim. After a compaction the
    next call is a no-op so a freshly-compacted history is not compacted
    again before the caller feeds a real usage figure.
    """

    def __init__(
        self,
        config: CompactionConfig | None = None,
        summarizer: Summarizer | None = None,
        tokenizer: Tokenizer | None = None,
        on_compact: CompactCallback | None = None,
    ):
        self.config = config or CompactionConfig()
        self.summarizer = summarizer
        self.tokenizer = tokenizer
        self.on_compact = on_compact
        self.budget = CompactionBudget()

    def feed_hint(self, token_count: int) -> None:
        """Record the provider-reported prompt size for the next evaluation."""
        self.budget.external_token_hint = token_count

    def reset(self) -> None:
        """Forget hint and cooldown, e.g. after the caller clears history."""
        self.budget = CompactionBudget()

    def count_tokens(self, messages: list[Message]) -> int:
        return estimate_messages(messages, self.tokenizer)

    async def compact(self, history: list[Message]) -> list[Message]:
        """Return ``history`` unchanged or a shorter replacement history."""
        if not history:
            return history

        if self.budget.suppress_next:
            self.budget.suppress_next = False
            logger.debug("Compaction suppressed for one call after previous compaction")
            return history

        split = self._find_split(history)
        if split is None:
            return history

        if self.config.keep_tool_pairs:
            split = self._align_to_tool_pair(history, split)

        if split <= 0:
            logger.warning("Compaction skipped: nothing to compact before the kept tail")
            return history

        return await self._execute(history, split)

    def _find_split(self, history: list[Message]) -> int | None:
        """Return the index where the kept suffix starts, or None if within budget."""
        cfg = self.config

        if cfg.token_mode:
            hint = self.budget.external_token_hint or 0
            self.budget.external_token_hint = None
            total = max(self.count_tokens(history), hint)
            if total <= cfg.max_tokens:
                return None

            preserve = cfg.effective_preserve_tokens
            kept_tokens = 0
            split = len(history)
            for i in range(len(history) - 1, -1, -1):
                msg_tokens = self.count_tokens([history[i]])
                if kept_tokens + msg_tokens > preserve:
                    break
                kept_tokens += msg_tokens
                split = i

            # Newest message alone exceeds the preserve budget: keep it anyway
            if split == len(history):
                split = len(history) - 1

            logger.debug(
                f"Token budget exceeded ({total} > {cfg.max_tokens}): "
                f"keeping {len(history) - split} messages ({kept_tokens} tokens)"
            )
            return split

        if cfg.max_messages is not None and len(history) > cfg.max_messages:
            return max(0, len(history) - cfg.effective_preserve_count)

        return None

    @staticmethod
    def _align_to_tool_pair(history: list[Message], split: int) -> int:
        """Move the split back so the kept tail does not start on a tool result.

        Walks backwards to the assistant message that issued the call.
        """
        while 0 < split < len(history) and history[split].role == "tool":
            split -= 1
            if history[split].role == "assistant":
                break
        return split

    async def _execute(self, history: list[Message], split: int) -> list[Message]:
        to_compact = history[:split]
        to_keep = history[split:]

        summary = await self._summarize(to_compact)
        summary_message = Message.system(summary)

        logger.info(
            f"Compaction triggered: compacted {len(to_compact)} messages into summary "
            f"({len(summary)} chars), kept {len(to_keep)}"
        )

        if self.on_compact:
            result = self.on_compact(summary_message, len(to_compact))
            if inspect.isawaitable(result):
                await result

        self.budget.suppress_next = True
        return [summary_message, *to_keep]

    async def _summarize(self, to_compact: list[Message]) -> str:
        """Run the summarizer; degrade to a placeholder on any failure."""
        placeholder = fallback_summary(len(to_compact))
        if not self.summarizer:
            return placeholder

        request = [*to_compact, Message.user(COMPACTION_INSTRUCTION)]
        try:
            summary = await self.summarizer(request)
        except Exception as e:
            logger.warning(f"Compaction summarizer failed: {e}")
            return f"{placeholder}\n(Compaction failed: {e})"

        if not summary or not summary.strip():
            logger.warning("Compaction summarizer returned an empty summary")
            return f"{placeholder}\n(Compaction failed: empty summary)"

        return summary
