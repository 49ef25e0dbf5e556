"""Adapters — bindings to apt-get, git, make, and the filesystem.

Public re-exports for convenient access.
"""

from deskprov.adapters.base import Adapter, ExecutionContext
from deskprov.adapters.mock import MockAdapter
from deskprov.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
