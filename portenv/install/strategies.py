"""
Installation procedures, one per install kind.

Each procedure builds a complete tool tree (or runs an installer that owns
its own location). None of them touches the final target directory; the
dispatcher promotes a finished tree into place.
"""

import logging
import subprocess
from pathlib import Path
from typing import List

from portenv.core.exceptions import InstallerError
from portenv.core.filesystem import extract_archive, normalize_root_directory

logger = logging.getLogger(__name__)

INSTALLER_TIMEOUT = 1800
PORTABLE_DATA_DIR = "data"


def unpack_archive(artifact: Path, scratch_dir: Path) -> Path:
    """
    Extract an archive into scratch_dir and return the real tool root.

    The root is scratch_dir itself, or its single wrapper folder when the
    archive nests everything under one top-level directory.
    """
    report = extract_archive(artifact, scratch_dir)
    if report.skipped:
        logger.warning(
            f"{len(report.skipped)} unsafe archive entries were skipped in {artifact.name}"
        )
    root = normalize_root_directory(scratch_dir)
    if root != scratch_dir:
        logger.debug(f"Unwrapped single top-level folder '{root.name}'")
    return root


def enable_portable_mode(tool_root: Path) -> None:
    """Create the ``data`` directory that switches an editor into portable mode."""
    (tool_root / PORTABLE_DATA_DIR).mkdir(exist_ok=True)


def run_self_extractor(tool_name: str, artifact: Path, output_dir: Path) -> None:
    """
    Run a self-extracting archive silently into output_dir.

    Raises:
        InstallerError: If it cannot be launched or exits non-zero
    """
    _run_installer(tool_name, [str(artifact), "-y", f"-o{output_dir}"])


def run_bootstrap_installer(tool_name: str, artifact: Path, host_triple: str) -> None:
    """
    Run a toolchain bootstrap installer non-interactively.

    PATH mutation stays with portenv, so the installer is told not to
    modify it.

    Raises:
        InstallerError: If it cannot be launched or exits non-zero
    """
    _run_installer(
        tool_name,
        [
            str(artifact),
            "-y",
            "--default-host",
            host_triple,
            "--default-toolchain",
            "stable",
            "--no-modify-path",
        ],
    )


def _run_installer(tool_name: str, command: List[str]) -> None:
    logger.debug(f"Running installer: {' '.join(command)}")
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=INSTALLER_TIMEOUT,
        )
    except subprocess.TimeoutExpired as e:
        raise InstallerError(f"Installer for {tool_name} timed out after {e.timeout}s") from e
    except OSError as e:
        raise InstallerError(f"Installer for {tool_name} could not be launched: {e}") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise InstallerError(
            f"Installer for {tool_name} exited with code {result.returncode}"
            + (f": {detail}" if detail else "")
        )
