"""State file and audit ledger."""
