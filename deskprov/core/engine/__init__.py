"""Plan building and execution."""
