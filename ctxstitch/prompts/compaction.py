"""Prompts used when compacting rolling history."""

COMPACTION_INSTRUCTION = """You have been working on the task described above and have not finished it yet. The conversation so far is about to be replaced by a summary you write now. Write a continuation summary that lets you (or another instance of yourself) pick the work back up without repeating anything.

Cover these sections, writing "None." for any that do not apply:

1. Task Overview
   - The user's core request and what counts as done
   - Constraints or clarifications the user gave
2. Current State
   - What has been completed
   - Files created, changed or inspected (with paths)
   - Outputs or artifacts produced
3. Discoveries
   - Technical constraints uncovered
   - Decisions taken and the final outcome of each
   - Errors hit and how they were resolved
   - Approaches that failed, and why
4. Next Steps
   - Concrete actions still required, in priority order
   - Open questions or blockers
5. Context to Preserve
   - User preferences and style requirements
   - Non-obvious domain details
   - Promises made to the user

Be concise but complete. Prefer keeping a detail over risking duplicated work.
Wrap the whole summary in <history_summary></history_summary> tags."""


def fallback_summary(truncated_count: int) -> str:
    """Placeholder used when no summarizer is configured or it fails."""
    return (
        "<history_summary>\n"
        '<ephemeral_message type="history_truncated">\n'
        f"[System: {truncated_count} older messages were truncated to respect context limits.]\n"
        "</ephemeral_message>\n"
        "</history_summary>"
    )
