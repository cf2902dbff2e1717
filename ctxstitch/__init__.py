"""ctxstitch - deterministic LLM context assembly with history compaction."""

__version__ = "0.1.0"

from ctxstitch.compactor import CompactionBudget, Compactor
from ctxstitch.config.schema import CompactionConfig, PipelineConfig
from ctxstitch.errors import ConfigurationError, CtxStitchError, ToolArgumentsError
from ctxstitch.governor import Governor
from ctxstitch.memory import InMemoryStore, Memory, MemoryEntry, MemoryStore
from ctxstitch.pipeline import BeforeCompileContext, ContextPipeline, PipelineSnapshot
from ctxstitch.stitcher import Stitcher, canonicalize, fingerprint, serialize
from ctxstitch.targets.base import Target
from ctxstitch.targets.registry import TARGETS, get_target, transform
from ctxstitch.tokens import estimate_messages, estimate_object, estimate_tokens
from ctxstitch.types import Message, RedactedThinking, Thinking, ToolCall, ToolDefinition

__all__ = [
    "BeforeCompileContext",
    "CompactionBudget",
    "CompactionConfig",
    "Compactor",
    "ConfigurationError",
    "ContextPipeline",
    "CtxStitchError",
    "Governor",
    "InMemoryStore",
    "Memory",
    "MemoryEntry",
    "MemoryStore",
    "Message",
    "PipelineConfig",
    "PipelineSnapshot",
    "RedactedThinking",
    "Stitcher",
    "TARGETS",
    "Target",
    "Thinking",
    "ToolArgumentsError",
    "ToolCall",
    "ToolDefinition",
    "canonicalize",
    "estimate_messages",
    "estimate_object",
    "estimate_tokens",
    "fingerprint",
    "get_target",
    "serialize",
    "transform",
]
