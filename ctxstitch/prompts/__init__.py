"""Prompt text used by the compile pipeline."""

from ctxstitch.prompts.compaction import COMPACTION_INSTRUCTION, fallback_summary
from ctxstitch.prompts.governance import (
    STATE_BLOCK_TEMPLATE,
    STATE_SYSTEM_PREFIX,
    prefill_instruction,
    xml_guardrail,
)
from ctxstitch.prompts.memory import core_memory_block

__all__ = [
    "COMPACTION_INSTRUCTION",
    "STATE_BLOCK_TEMPLATE",
    "STATE_SYSTEM_PREFIX",
    "core_memory_block",
    "fallback_summary",
    "prefill_instruction",
    "xml_guardrail",
]
