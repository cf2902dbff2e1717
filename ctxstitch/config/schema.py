"""Configuration schema using Pydantic."""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TARGET_ALIASES = {
    "openai": "openai",
    "anthropic": "anthropic",
    "gemini": "gemini",
    "A": "openai",
    "B": "anthropic",
    "C": "gemini",
}

DEFAULT_PRESERVE_RATIO = 0.7


class CompactionConfig(BaseModel):
    """History budget for the compaction controller.

    Token mode is used when ``max_tokens`` is set; otherwise the legacy
    message-count mode applies when ``max_messages`` is set.
    """
    max_tokens: int | None = None
    preserve_tokens: int | None = None  # default: 70% of max_tokens
    max_messages: int | None = None
    preserve_count: int | None = None  # default: 70% of max_messages
    keep_tool_pairs: bool = True  # never start the kept tail on a tool result

    @field_validator("max_tokens", "max_messages")
    @classmethod
    def _positive(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("budget limits must be positive")
        return value

    @field_validator("preserve_tokens", "preserve_count")
    @classmethod
    def _non_negative(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError("preserve budgets must not be negative")
        return value

    @property
    def token_mode(self) -> bool:
        return self.max_tokens is not None

    @property
    def effective_preserve_tokens(self) -> int:
        if self.preserve_tokens is not None:
            return self.preserve_tokens
        return int((self.max_tokens or 0) * DEFAULT_PRESERVE_RATIO)

    @property
    def effective_preserve_count(self) -> int:
        if self.preserve_count is not None:
            return self.preserve_count
        return int((self.max_messages or 0) * DEFAULT_PRESERVE_RATIO)


class PipelineConfig(BaseSettings):
    """Root configuration for a compile pipeline."""
    model_config = SettingsConfigDict(env_prefix="CTXSTITCH_", env_nested_delimiter="__")

    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    default_target: str = "openai"
    placement: str = "last_user"  # where ephemeral state is injected

    @field_validator("default_target")
    @classmethod
    def _known_target(cls, value: str) -> str:
        if value not in TARGET_ALIASES:
            raise ValueError(f"Unknown target provider '{value}'")
        return TARGET_ALIASES[value]

    @field_validator("placement")
    @classmethod
    def _known_placement(cls, value: str) -> str:
        if value not in ("system", "last_user"):
            raise ValueError(f"Unknown placement '{value}'")
        return value
