"""
Maintenance flows: status report, clean-up and import from a local folder.
"""

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from portenv.config.manifest import InstallKind, Manifest
from portenv.core.cache import ContentCache
from portenv.core.environment import Environment
from portenv.core.filesystem import (
    find_folder_containing,
    promote_directory,
    recursive_copy,
    remove_quietly,
    safe_rmtree,
)
from portenv.install.dispatcher import scratch_prefix, sweep_scratch
from portenv.registrar.registrar import PathRegistrar
from portenv.registrar.shortcuts import ShortcutCreator
from portenv.setup.orchestrator import (
    SetupOrchestrator,
    SetupReport,
    StateListener,
    ToolResult,
    ToolState,
)

logger = logging.getLogger(__name__)

IMPORT_SEARCH_DEPTH = 3


# ============================================================================
# Status
# ============================================================================


@dataclass
class ToolStatus:
    name: str
    version: str
    installed: bool
    on_path: bool
    install_dir: Path


def check_status(env: Environment, manifest: Manifest) -> List[ToolStatus]:
    """
    Report, per manifest tool, whether it is installed and registered on PATH.

    Raises:
        EnvironmentStoreError: If the search-path store cannot be read
    """
    registrar = PathRegistrar(env.path_store, env.bootstrap_home)
    on_path = registrar.on_path(env.target_base, manifest)

    statuses = []
    for tool in manifest:
        statuses.append(
            ToolStatus(
                name=tool.name,
                version=tool.version,
                installed=tool.marker_path(env.target_base, env.bootstrap_home).is_file(),
                on_path=on_path[tool.name],
                install_dir=tool.install_root(env.target_base, env.bootstrap_home),
            )
        )
    return statuses


# ============================================================================
# Clean
# ============================================================================


@dataclass
class CleanReport:
    removed: List[Path] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    """Tool name (or 'cache') -> error message"""
    cache_removed: bool = False
    scratch_removed: List[Path] = field(default_factory=list)
    path_removed: List[str] = field(default_factory=list)
    shortcuts_removed: List[Path] = field(default_factory=list)


def clean(env: Environment, manifest: Manifest, remove_cache: bool = True) -> CleanReport:
    """
    Remove installed tools, the download cache and their PATH entries.

    Directories owned by bootstrap installers are left alone; only their
    PATH entries go. Failures to delete a directory are collected in the
    report, not raised.

    Raises:
        EnvironmentStoreError: If the search-path store cannot be read or written
    """
    report = CleanReport()

    for tool in manifest:
        if tool.kind is InstallKind.BOOTSTRAP_INSTALLER:
            logger.info(f"Leaving {tool.name} files in {env.bootstrap_home} (managed by its installer)")
            continue

        install_dir = env.tool_dir(tool.name)
        report.scratch_removed.extend(sweep_scratch(env.target_base, tool.name))
        if not install_dir.exists():
            continue
        try:
            safe_rmtree(install_dir, require_prefix=env.target_base)
        except (OSError, ValueError) as e:
            logger.error(f"Could not remove {install_dir}: {e}")
            report.errors[tool.name] = str(e)
            continue
        logger.info(f"Removed {install_dir}")
        report.removed.append(install_dir)

    if remove_cache:
        try:
            report.cache_removed = ContentCache(env.cache_dir).clear()
        except OSError as e:
            logger.error(f"Could not remove download cache {env.cache_dir}: {e}")
            report.errors["cache"] = str(e)

    registrar = PathRegistrar(env.path_store, env.bootstrap_home)
    report.path_removed = registrar.unregister(env.target_base, manifest)

    if env.desktop_dir is not None:
        creator = ShortcutCreator(env.desktop_dir, env.bootstrap_home, env.is_windows)
        report.shortcuts_removed = creator.remove(manifest)

    return report


# ============================================================================
# Import from a local folder
# ============================================================================


def import_from_folder(
    env: Environment,
    manifest: Manifest,
    source_dir: Path,
    on_state: Optional[StateListener] = None,
) -> SetupReport:
    """
    Install tools by copying them from an existing folder tree.

    For every tool that is not installed yet, ``source_dir`` is searched up
    to three levels deep for a directory holding the tool's marker file.
    Matches are copied into place (staged, then renamed) and registered like
    a regular setup run. Bootstrap-installed tools cannot be imported.
    """
    source_dir = Path(source_dir)
    orchestrator = SetupOrchestrator(env, on_state=on_state)
    report = SetupReport()

    for tool in manifest:
        if tool.kind is InstallKind.BOOTSTRAP_INSTALLER:
            logger.info(f"Skipping {tool.name}: installed by its own installer, cannot be imported")
            continue

        result = ToolResult(tool.name)
        report.results.append(result)
        target = env.tool_dir(tool.name)

        if (target / tool.marker_file).is_file():
            result.install_dir = target
            orchestrator.transition(tool, result, ToolState.ALREADY_INSTALLED)
            continue

        found = find_folder_containing(source_dir, tool.marker_file, IMPORT_SEARCH_DEPTH)
        if found is None:
            result.stage = ToolState.CACHE_RESOLVING
            result.message = f"{tool.marker_file} not found under {source_dir}"
            orchestrator.transition(tool, result, ToolState.FAILED)
            continue

        orchestrator.transition(tool, result, ToolState.INSTALLING)
        try:
            _copy_into_place(found, target, env.target_base)
        except OSError as e:
            result.stage = ToolState.INSTALLING
            result.message = str(e)
            orchestrator.transition(tool, result, ToolState.FAILED)
            continue

        logger.info(f"Imported {tool.name} from {found}")
        result.install_dir = target
        orchestrator.transition(tool, result, ToolState.INSTALLED)

    if report.installed:
        orchestrator.register(manifest, env.target_base, report)
    return report


def _copy_into_place(source: Path, target: Path, target_base: Path) -> None:
    if target.exists():
        safe_rmtree(target, require_prefix=target_base)

    target_base.mkdir(parents=True, exist_ok=True)
    sweep_scratch(target_base, target.name)
    staging = Path(
        tempfile.mkdtemp(prefix=scratch_prefix(target.name, "import"), dir=target_base)
    )
    try:
        copied = recursive_copy(source, staging)
        logger.debug(f"Copied {copied} files from {source}")
        promote_directory(staging, target)
    finally:
        remove_quietly(staging)
