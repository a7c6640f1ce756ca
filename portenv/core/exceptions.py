"""
Centralized exception hierarchy for portenv.

Per-tool errors (network, integrity, archive, installer and local file
system errors) are isolated by the setup orchestrator; environment-store
and configuration errors abort a run.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class PortEnvError(Exception):
    """Base exception for all portenv errors."""

    pass


# ============================================================================
# Per-tool Exceptions
# ============================================================================


class NetworkError(PortEnvError):
    """Raised when a download fails in transport or returns a non-success status."""

    pass


class IntegrityError(PortEnvError):
    """Raised when a downloaded artifact does not match its expected hash."""

    def __init__(self, name: str, expected: str, actual: str):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Integrity check failed for {name}: expected {expected}, got {actual}"
        )


class ArchiveError(PortEnvError):
    """Raised when an archive is corrupt or cannot be read."""

    pass


class UnsupportedArchiveFormat(ArchiveError):
    """Archive format is not supported."""

    pass


class InstallerError(PortEnvError):
    """Raised when an installer or self-extractor fails or cannot be launched."""

    pass


class CacheLockError(PortEnvError):
    """Another process holds the cache slot for too long."""

    pass


# ============================================================================
# Run-aborting Exceptions
# ============================================================================


class EnvironmentStoreError(PortEnvError):
    """Raised when the persistent search-path store cannot be read or written."""

    pass


class ConfigurationError(PortEnvError):
    """Raised when the manifest or settings are malformed or incomplete."""

    pass


PER_TOOL_ERRORS = (
    NetworkError,
    IntegrityError,
    ArchiveError,
    InstallerError,
    CacheLockError,
    OSError,
)
"""Errors that fail a single tool without aborting the whole setup run.

OSError covers local file system failures while caching or installing one
tool, such as a stray file where its directory belongs.
"""
