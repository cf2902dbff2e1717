"""Tests for history compaction."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from ctxstitch.compactor import Compactor
from ctxstitch.config.schema import CompactionConfig
from ctxstitch.prompts.compaction import COMPACTION_INSTRUCTION, fallback_summary
from ctxstitch.types import Message, ToolCall


def ten_per_message(text: str) -> int:
    """Tokenizer that charges a flat 10 tokens per message."""
    return len(json.loads(text)) * 10


def users(*names):
    return [Message.user(n) for n in names]


def count_compactor(max_messages=5, preserve_count=2, **kwargs):
    return Compactor(CompactionConfig(max_messages=max_messages, preserve_count=preserve_count), **kwargs)


def token_compactor(max_tokens=50, preserve_tokens=25, **kwargs):
    return Compactor(
        CompactionConfig(max_tokens=max_tokens, preserve_tokens=preserve_tokens),
        tokenizer=ten_per_message,
        **kwargs,
    )


# ── Pass-through ────────────────────────────────────────────────


class TestPassThrough:
    @pytest.mark.asyncio
    async def test_empty_history(self):
        c = count_compactor()
        assert await c.compact([]) == []

    @pytest.mark.asyncio
    async def test_unconfigured_is_noop(self):
        c = Compactor()
        history = users(*[f"m{i}" for i in range(50)])
        assert await c.compact(history) == history

    @pytest.mark.asyncio
    async def test_within_message_budget(self):
        summarizer = AsyncMock()
        c = count_compactor(summarizer=summarizer)
        history = users("a", "b", "c", "d", "e")
        assert await c.compact(history) == history
        summarizer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_within_token_budget(self):
        c = token_compactor()
        history = users("a", "b", "c", "d", "e")  # 50 tokens, not above 50
        assert await c.compact(history) == history


# ── Count mode ──────────────────────────────────────────────────


class TestCountMode:
    @pytest.mark.asyncio
    async def test_six_messages_keep_two(self):
        summarizer = AsyncMock(return_value="<history_summary>X</history_summary>")
        c = count_compactor(summarizer=summarizer)
        history = users("msg1", "msg2", "msg3", "msg4", "msg5", "msg6")

        result = await c.compact(history)

        assert len(result) == 3
        assert result[0].role == "system"
        assert "<history_summary>" in result[0].content
        assert "X" in result[0].content
        assert result[1:] == users("msg5", "msg6")

    @pytest.mark.asyncio
    async def test_summarizer_receives_prefix_and_instruction(self):
        summarizer = AsyncMock(return_value="summary")
        c = count_compactor(summarizer=summarizer)
        history = users("msg1", "msg2", "msg3", "msg4", "msg5", "msg6")

        await c.compact(history)

        request = summarizer.call_args[0][0]
        assert request[:4] == history[:4]
        assert request[-1] == Message.user(COMPACTION_INSTRUCTION)

    @pytest.mark.asyncio
    async def test_default_preserve_ratio(self):
        c = Compactor(CompactionConfig(max_messages=10))
        history = users(*[f"m{i}" for i in range(11)])

        result = await c.compact(history)

        # 70% of 10 kept verbatim
        assert len(result) == 1 + 7
        assert result[-7:] == history[-7:]

    @pytest.mark.asyncio
    async def test_hint_ignored_and_kept_in_count_mode(self):
        c = count_compactor()
        c.feed_hint(10_000)
        history = users("a", "b")

        assert await c.compact(history) == history
        assert c.budget.external_token_hint == 10_000


# ── Token mode ──────────────────────────────────────────────────


class TestTokenMode:
    @pytest.mark.asyncio
    async def test_keeps_newest_within_preserve_budget(self):
        c = token_compactor()
        history = users("m1", "m2", "m3", "m4", "m5", "m6")  # 60 tokens

        result = await c.compact(history)

        assert len(result) == 3
        assert result[1:] == history[-2:]

    @pytest.mark.asyncio
    async def test_default_preserve_tokens(self):
        c = Compactor(CompactionConfig(max_tokens=50), tokenizer=ten_per_message)
        history = users("m1", "m2", "m3", "m4", "m5", "m6")

        result = await c.compact(history)

        # 70% of 50 = 35 tokens -> three 10-token messages
        assert result[1:] == history[-3:]

    @pytest.mark.asyncio
    async def test_token_mode_wins_over_count_mode(self):
        c = Compactor(
            CompactionConfig(max_tokens=1000, max_messages=2, preserve_count=1),
            tokenizer=ten_per_message,
        )
        history = users("a", "b", "c", "d")
        assert await c.compact(history) == history

    @pytest.mark.asyncio
    async def test_keeps_at_least_one_oversized_message(self):
        c = token_compactor(max_tokens=15, preserve_tokens=5)
        history = users("old", "newest")  # each message costs 10 > 5

        result = await c.compact(history)

        assert len(result) == 2
        assert result[0].role == "system"
        assert result[1] == history[-1]

    @pytest.mark.asyncio
    async def test_single_oversized_message_not_compacted(self):
        c = token_compactor(max_tokens=5, preserve_tokens=1)
        history = users("only")
        assert await c.compact(history) == history

    @pytest.mark.asyncio
    async def test_external_hint_triggers_compaction(self):
        c = token_compactor()
        history = users("m1", "m2", "m3", "m4")  # 40 tokens, under budget
        c.feed_hint(100)

        result = await c.compact(history)

        assert len(result) == 3
        assert c.budget.external_token_hint is None

    @pytest.mark.asyncio
    async def test_hint_consumed_even_without_compaction(self):
        c = token_compactor()
        c.feed_hint(10)
        await c.compact(users("a"))
        assert c.budget.external_token_hint is None

    @pytest.mark.asyncio
    async def test_estimate_wins_over_smaller_hint(self):
        c = token_compactor()
        c.feed_hint(1)
        history = users("m1", "m2", "m3", "m4", "m5", "m6")
        assert len(await c.compact(history)) == 3


# ── Suppression ─────────────────────────────────────────────────


class TestSuppression:
    @pytest.mark.asyncio
    async def test_second_call_suppressed_third_eligible(self):
        summarizer = AsyncMock(return_value="summary")
        c = count_compactor(summarizer=summarizer)
        history = users("m1", "m2", "m3", "m4", "m5", "m6")

        first = await c.compact(history)
        assert len(first) == 3

        grown = first + users("m7", "m8", "m9")
        second = await c.compact(grown)
        assert second == grown
        assert summarizer.await_count == 1

        third = await c.compact(second)
        assert len(third) == 3
        assert summarizer.await_count == 2

    @pytest.mark.asyncio
    async def test_suppression_checked_before_hint(self):
        c = token_compactor()
        history = users("m1", "m2", "m3", "m4", "m5", "m6")
        await c.compact(history)

        c.feed_hint(500)
        result = await c.compact(history)

        assert result == history
        # hint survives the suppressed call
        assert c.budget.external_token_hint == 500

    @pytest.mark.asyncio
    async def test_placeholder_also_sets_suppression(self):
        c = count_compactor()
        await c.compact(users("m1", "m2", "m3", "m4", "m5", "m6"))
        assert c.budget.suppress_next is True

    @pytest.mark.asyncio
    async def test_reset_clears_state(self):
        c = count_compactor()
        await c.compact(users("m1", "m2", "m3", "m4", "m5", "m6"))
        c.feed_hint(100)

        c.reset()

        assert c.budget.suppress_next is False
        assert c.budget.external_token_hint is None


# ── Summarizer failure ──────────────────────────────────────────


class TestSummarizerFailure:
    @pytest.mark.asyncio
    async def test_no_summarizer_uses_placeholder(self):
        c = count_compactor()
        result = await c.compact(users("m1", "m2", "m3", "m4", "m5", "m6"))
        assert result[0].content == fallback_summary(4)

    @pytest.mark.asyncio
    async def test_exception_degrades_to_placeholder(self):
        summarizer = AsyncMock(side_effect=RuntimeError("boom"))
        c = count_compactor(summarizer=summarizer)

        result = await c.compact(users("m1", "m2", "m3", "m4", "m5", "m6"))

        assert result[0].content.startswith(fallback_summary(4))
        assert result[0].content.endswith("(Compaction failed: boom)")
        assert result[1:] == users("m5", "m6")

    @pytest.mark.asyncio
    async def test_empty_summary_degrades_to_placeholder(self):
        summarizer = AsyncMock(return_value="   ")
        c = count_compactor(summarizer=summarizer)

        result = await c.compact(users("m1", "m2", "m3", "m4", "m5", "m6"))

        assert "[System: 4 older messages were truncated" in result[0].content
        assert "(Compaction failed: empty summary)" in result[0].content


# ── on_compact callback ─────────────────────────────────────────


class TestOnCompact:
    @pytest.mark.asyncio
    async def test_sync_callback(self):
        callback = MagicMock(return_value=None)
        c = count_compactor(summarizer=AsyncMock(return_value="S"), on_compact=callback)

        result = await c.compact(users("m1", "m2", "m3", "m4", "m5", "m6"))

        callback.assert_called_once_with(result[0], 4)

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self):
        callback = AsyncMock()
        c = count_compactor(on_compact=callback)

        await c.compact(users("m1", "m2", "m3", "m4", "m5", "m6"))

        callback.assert_awaited_once()
        summary_message, count = callback.call_args[0]
        assert summary_message.role == "system"
        assert count == 4

    @pytest.mark.asyncio
    async def test_not_called_when_within_budget(self):
        callback = MagicMock()
        c = count_compactor(on_compact=callback)
        await c.compact(users("a"))
        callback.assert_not_called()


# ── Tool pairs ──────────────────────────────────────────────────


def tool_history():
    return [
        Message.user("find both"),
        Message.assistant("", tool_calls=[ToolCall("c1", "search"), ToolCall("c2", "search")]),
        Message.tool("r1", "c1"),
        Message.tool("r2", "c2"),
        Message.user("thanks"),
    ]


class TestToolPairs:
    @pytest.mark.asyncio
    async def test_kept_tail_starts_at_issuing_assistant(self):
        c = count_compactor(max_messages=4, preserve_count=2)
        history = tool_history()

        result = await c.compact(history)

        assert result[0].role == "system"
        assert result[1:] == history[1:]
        assert result[1].has_tool_calls

    @pytest.mark.asyncio
    async def test_disabled_allows_orphaned_results(self):
        c = Compactor(CompactionConfig(max_messages=4, preserve_count=2, keep_tool_pairs=False))
        history = tool_history()

        result = await c.compact(history)

        assert result[1:] == history[3:]
        assert result[1].role == "tool"

    @pytest.mark.asyncio
    async def test_walk_to_start_skips_compaction(self):
        summarizer = AsyncMock()
        c = count_compactor(max_messages=2, preserve_count=1, summarizer=summarizer)
        history = [
            Message.assistant("", tool_calls=[ToolCall("c1", "f"), ToolCall("c2", "f")]),
            Message.tool("r1", "c1"),
            Message.tool("r2", "c2"),
        ]

        assert await c.compact(history) == history
        summarizer.assert_not_awaited()
        assert c.budget.suppress_next is False


# ── Monotonicity ────────────────────────────────────────────────


class TestMonotonicity:
    @pytest.mark.asyncio
    async def test_suffix_identical_and_shorter(self):
        c = token_compactor(max_tokens=100, preserve_tokens=40)
        history = users(*[f"message {i}" for i in range(20)])

        result = await c.compact(history)
        kept = len(result) - 1

        assert len(result) < len(history)
        assert [m.to_dict() for m in result[1:]] == [m.to_dict() for m in history[-kept:]]
