"""Per-provider payload transforms."""
