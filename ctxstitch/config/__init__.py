"""Configuration models."""

from ctxstitch.config.schema import TARGET_ALIASES, CompactionConfig, PipelineConfig

__all__ = ["CompactionConfig", "PipelineConfig", "TARGET_ALIASES"]
