"""Core — configuration, models, planning, execution, persistence."""
