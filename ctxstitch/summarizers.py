"""Ready-made summarizer and tokenizer backed by LiteLLM."""

from typing import Any

import litellm
from litellm import acompletion

from ctxstitch.targets import openai_target
from ctxstitch.tokens import Tokenizer
from ctxstitch.types import Message


class LiteLLMSummarizer:
    """
    Summarizer for :class:`~ctxstitch.compactor.Compactor` using any LiteLLM model.

    Messages are encoded in OpenAI format (LiteLLM's unified input). Errors
    and empty responses raise, so the compactor falls back to its placeholder.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 2048,
        **completion_kwargs: Any,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.completion_kwargs = completion_kwargs

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    async def __call__(self, messages: list[Message]) -> str:
        payload = openai_target.transform(messages)
        response = await acompletion(
            model=self.model,
            messages=payload["messages"],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            **self.completion_kwargs,
        )
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ValueError(f"empty summary from {self.model}")
        return content


def litellm_tokenizer(model: str) -> Tokenizer:
    """Exact-ish tokenizer for ``model`` via ``litellm.token_counter``."""

    def count(text: str) -> int:
        return litellm.token_counter(model=model, text=text)

    return count
