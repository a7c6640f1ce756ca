"""
Tool manifest and user settings.
"""

from .manifest import InstallKind, Manifest, ToolSpec, resolve_manifest
from .settings import Settings, load_settings

__all__ = [
    "InstallKind",
    "Manifest",
    "ToolSpec",
    "resolve_manifest",
    "Settings",
    "load_settings",
]
