"""Tests for the output-format governor."""

from ctxstitch.governor import Governor
from ctxstitch.prompts.governance import xml_guardrail
from ctxstitch.types import Message


class TestGovernor:
    def test_noop_without_options(self):
        ephemeral = [Message.system("note")]
        assert Governor().apply(ephemeral) == ephemeral

    def test_guardrail_appended_as_system(self):
        result = Governor().apply([], output_tag="answer")

        assert len(result) == 1
        assert result[0].role == "system"
        assert result[0].content == xml_guardrail("answer")

    def test_guardrail_merged_into_first_system(self):
        result = Governor().apply([Message.system("note")], output_tag="answer")

        assert len(result) == 1
        assert result[0].content == "note\n\n" + xml_guardrail("answer")

    def test_guardrail_not_merged_into_user(self):
        result = Governor().apply([Message.user("u")], output_tag="answer")
        assert [m.role for m in result] == ["user", "system"]

    def test_thinking_section_optional(self):
        with_thinking = Governor().apply([], output_tag="answer")[0].content
        without = Governor().apply([], output_tag="answer", include_thinking=False)[0].content

        assert "<thinking>" in with_thinking
        assert "<thinking>" not in without
        assert "<answer></answer>" in without

    def test_prefill_trails(self):
        result = Governor().apply([], output_tag="answer", prefill="<answer>")

        assert result[-1] == Message.assistant("<answer>")
        assert result[0].role == "system"

    def test_input_not_mutated(self):
        ephemeral = [Message.system("note")]
        Governor().apply(ephemeral, output_tag="answer", prefill="x")
        assert ephemeral == [Message.system("note")]
