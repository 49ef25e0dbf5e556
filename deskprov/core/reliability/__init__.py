"""Bounded retry for network operations."""
