"""Use cases — the top-level operations behind each CLI command."""
