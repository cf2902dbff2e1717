"""Output-format guardrails and response prefill."""

from ctxstitch.prompts.governance import xml_guardrail
from ctxstitch.types import Message


class Governor:
    """Adds format guardrails and an optional prefill to the ephemeral layer.

    The prefill is kept as a trailing assistant turn; targets without
    native prefill degrade it into an instruction at transform time.
    """

    def apply(
        self,
        ephemeral: list[Message],
        output_tag: str | None = None,
        include_thinking: bool = True,
        prefill: str | None = None,
    ) -> list[Message]:
        state = list(ephemeral)

        if output_tag:
            instructions = xml_guardrail(output_tag, include_thinking)
            # Merge into an existing system message to avoid fragmentation
            if state and state[0].role == "system":
                state[0] = state[0].replace(content=f"{state[0].content}\n\n{instructions}")
            else:
                state.append(Message.system(instructions))

        if prefill:
            state.append(Message.assistant(prefill))

        return state
