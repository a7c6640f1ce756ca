"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import dataclasses
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from portenv.config.manifest import Manifest, resolve_manifest
from portenv.config.settings import Settings, load_settings
from portenv.core.download import DownloadProgress, ProgressCallback
from portenv.core.environment import Environment

logger = logging.getLogger(__name__)


# ============================================================================
# Run Context
# ============================================================================


@dataclass
class CommandContext:
    """Everything a command needs: settings, host environment and manifest."""

    settings: Settings
    env: Environment
    manifest: Manifest


def load_context(args) -> CommandContext:
    """
    Build the run context from global command-line options.

    Raises:
        ConfigurationError: If settings, target base or manifest cannot be resolved
    """
    settings = load_settings(getattr(args, "config", None))

    overrides = {}
    if getattr(args, "target_base", None):
        overrides["target_base"] = args.target_base.resolve()
    if getattr(args, "cache_dir", None):
        overrides["cache_dir"] = args.cache_dir.resolve()
    if getattr(args, "no_shortcuts", False):
        overrides["create_shortcuts"] = False
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    env = Environment.from_system(settings)
    manifest = resolve_manifest(settings, explicit=getattr(args, "manifest", None))
    logger.debug(f"Using manifest {manifest.source} ({len(manifest)} tools)")
    return CommandContext(settings=settings, env=env, manifest=manifest)


# ============================================================================
# Output Helpers
# ============================================================================


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII-safe characters if the console cannot encode them.
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = message.replace("✓", "[OK]").replace("✗", "[X]")
        print(safe_message.encode("ascii", "replace").decode("ascii"), file=file)


def progress_printer(name: str, quiet: bool = False) -> Optional[ProgressCallback]:
    """Download progress callback writing one updating line to stderr."""
    if quiet:
        return None

    def report(progress: DownloadProgress):
        end = "\n" if progress.bytes_downloaded >= progress.total_bytes else ""
        print(f"\r  {name}: {progress}", end=end, file=sys.stderr, flush=True)

    return report
