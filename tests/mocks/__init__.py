"""
Mock implementations for testing portenv components.

This package provides mock implementations of external dependencies and
system interactions to enable isolated, deterministic testing.
"""

from .path_store import MemoryPathStore

__all__ = [
    "MemoryPathStore",
]
