"""Build tool adapters."""
