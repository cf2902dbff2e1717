"""Instruction templates injected by the assembler, governor and targets."""

EPHEMERAL_PREAMBLE = (
    "The following is an ephemeral message not actually sent by the user. "
    "It is provided by the system as a set of reminders and important information "
    "to pay attention to. Do NOT respond to this message, just act accordingly."
)

STATE_BLOCK_TEMPLATE = (
    "\n\n<dynamic_state>\n{xml}\n</dynamic_state>\n"
    "Above is the current system state. Use it to guide your next action."
)

STATE_SYSTEM_PREFIX = "CURRENT TASK STATE:\n"


def prefill_instruction(prefill: str) -> str:
    """Instruction replacing a trailing assistant prefill on providers without native support."""
    return (
        '<ephemeral_message type="prefill_enforcement">\n'
        "SYSTEM INSTRUCTION: Your response MUST start verbatim with the following text:\n"
        f'"{prefill}"\n'
        "\n"
        "Do not output any introductory text or acknowledgement. "
        "Start directly with the text above.\n"
        "</ephemeral_message>"
    )


def xml_guardrail(output_tag: str, include_thinking: bool = True) -> str:
    """Output-format guardrail forcing the answer into a single XML tag."""
    lines = [
        EPHEMERAL_PREAMBLE,
        "<EPHEMERAL_MESSAGE>",
        "CRITICAL OUTPUT FORMAT INSTRUCTIONS:",
        "Your final output is consumed by an automated parser.",
        "",
        f"1. Enclose your final answer in exactly one <{output_tag}></{output_tag}> pair.",
        "2. Do not write any text, explanation or filler outside of these tags.",
    ]
    if include_thinking:
        lines += [
            f"3. If you need to reason or plan, you MAY use <thinking> tags BEFORE <{output_tag}>.",
            "4. Any other content outside the designated tags breaks parsing.",
            "",
            "Start your reasoning by restating these instructions:",
            "<thinking>",
            f"Recalling critical instructions: output must be strictly within <{output_tag}> tags.",
            "...",
            "</thinking>",
            f"<{output_tag}>",
            "...",
            f"</{output_tag}>",
        ]
    else:
        lines.append("3. Any content outside the designated tags breaks parsing.")
    lines.append("</EPHEMERAL_MESSAGE>")
    return "\n".join(lines)
