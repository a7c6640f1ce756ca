"""
Core functionality for portenv.

This package contains the foundational modules that other components depend on.
"""

from .exceptions import (
    PortEnvError,
    NetworkError,
    IntegrityError,
    ArchiveError,
    UnsupportedArchiveFormat,
    InstallerError,
    CacheLockError,
    EnvironmentStoreError,
    ConfigurationError,
)

__all__ = [
    "PortEnvError",
    "NetworkError",
    "IntegrityError",
    "ArchiveError",
    "UnsupportedArchiveFormat",
    "InstallerError",
    "CacheLockError",
    "EnvironmentStoreError",
    "ConfigurationError",
]
