"""Guidance wrapped around the core memory block."""

UPDATE_TAG = "update_core_memory"
DELETE_TAG = "delete_core_memory"


def core_memory_block(
    xml: str,
    existing_keys: list[str],
    allowed_keys: list[str] | None = None,
) -> str:
    """Core memory contents plus the tag protocol the model uses to edit them."""
    lines = [
        "You have a persistent core memory that survives across turns and conversations.",
        "Its current contents:",
        xml,
        "",
        f"Existing memory keys: {', '.join(existing_keys) if existing_keys else '(none)'}",
        f'To add or change an entry, write <{UPDATE_TAG} key="KEY">VALUE</{UPDATE_TAG}> in your reply.',
        f'To remove an entry, write <{DELETE_TAG} key="KEY"/> in your reply.',
    ]
    if allowed_keys is not None:
        lines.append(
            f"Allowed memory keys: {', '.join(allowed_keys)}. "
            "Use ONLY these keys; edits to any other key are ignored."
        )
    return "\n".join(lines)
