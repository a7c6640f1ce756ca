"""
Persistent search-path registration and desktop shortcuts.
"""

from .path_store import FilePathStore, PathStore, WindowsRegistryPathStore
from .registrar import PathRegistrar
from .shortcuts import ShortcutCreator

__all__ = [
    "PathStore",
    "FilePathStore",
    "WindowsRegistryPathStore",
    "PathRegistrar",
    "ShortcutCreator",
]
