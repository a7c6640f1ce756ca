"""
Install strategy dispatch.

``InstallDispatcher.install`` turns a resolved artifact into an installed
tool according to ``tool.kind``. Installs are idempotent and never leave a
half-built tree at ``<target_base>/<name>``: the tree is assembled in a
hidden scratch directory beside the target and renamed into place only
after the marker file has been found in it.
"""

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List

from portenv.config.manifest import InstallKind, ToolSpec
from portenv.config.settings import DEFAULT_HOST_TRIPLE
from portenv.core.exceptions import InstallerError
from portenv.core.filesystem import promote_directory, remove_quietly, safe_rmtree
from portenv.install import strategies

logger = logging.getLogger(__name__)


def scratch_prefix(tool_name: str, purpose: str) -> str:
    """Name prefix of the hidden directory a tool tree is assembled in."""
    return f".{tool_name}_{purpose}_"


def sweep_scratch(target_base: Path, tool_name: str) -> List[Path]:
    """
    Remove scratch directories an interrupted run left in target_base.

    Returns:
        The directories that were removed
    """
    target_base = Path(target_base)
    prefixes = tuple(scratch_prefix(tool_name, purpose) for purpose in ("install", "import"))
    try:
        entries = sorted(target_base.iterdir())
    except OSError:
        return []

    swept = []
    for entry in entries:
        if entry.is_dir() and not entry.is_symlink() and entry.name.startswith(prefixes):
            logger.info(f"Removing leftover scratch directory {entry}")
            remove_quietly(entry)
            swept.append(entry)
    return swept


@dataclass
class InstallOutcome:
    """Result of one install call."""

    tool_name: str
    install_dir: Path
    already_installed: bool = False


class InstallDispatcher:
    """
    Installs tools by kind.

    Args:
        bootstrap_home: Location owned by bootstrap installers
        host_triple: Default host passed to bootstrap installers

    Example:
        >>> dispatcher = InstallDispatcher(Path.home() / ".cargo")
        >>> outcome = dispatcher.install(tool, artifact, Path("C:/Users/me/AppData/Local"))
        >>> outcome.already_installed
        False
    """

    def __init__(self, bootstrap_home: Path, host_triple: str = DEFAULT_HOST_TRIPLE):
        self.bootstrap_home = Path(bootstrap_home)
        self.host_triple = host_triple

    def is_installed(self, tool: ToolSpec, target_base: Path) -> bool:
        return tool.marker_path(target_base, self.bootstrap_home).is_file()

    def install(self, tool: ToolSpec, artifact_path: Path, target_base: Path) -> InstallOutcome:
        """
        Install ``tool`` from ``artifact_path`` under ``target_base``.

        Returns:
            InstallOutcome; ``already_installed`` is True when nothing was done

        Raises:
            ArchiveError: If the archive cannot be extracted
            InstallerError: If an installer fails or the marker file is missing afterwards
            OSError: If the target tree cannot be removed, staged or renamed
        """
        target_base = Path(target_base)
        artifact_path = Path(artifact_path)
        install_dir = tool.install_root(target_base, self.bootstrap_home)

        if self.is_installed(tool, target_base):
            logger.info(f"{tool.name} already installed at {install_dir}")
            return InstallOutcome(tool.name, install_dir, already_installed=True)

        if tool.kind is InstallKind.BOOTSTRAP_INSTALLER:
            self._install_bootstrap(tool, artifact_path)
        else:
            self._install_tree(tool, artifact_path, target_base, install_dir)

        logger.info(f"Installed {tool.name} {tool.version} to {install_dir}")
        return InstallOutcome(tool.name, install_dir)

    def _install_bootstrap(self, tool: ToolSpec, artifact_path: Path) -> None:
        logger.info(f"Running {tool.name} installer (host {self.host_triple})")
        strategies.run_bootstrap_installer(tool.name, artifact_path, self.host_triple)

        marker = self.bootstrap_home / tool.marker_file
        if not marker.is_file():
            raise InstallerError(
                f"{tool.name} installer finished but {marker} does not exist"
            )

    def _install_tree(
        self, tool: ToolSpec, artifact_path: Path, target_base: Path, install_dir: Path
    ) -> None:
        if install_dir.exists():
            logger.warning(
                f"Removing incomplete installation of {tool.name} at {install_dir} "
                f"({tool.marker_file} is missing)"
            )
            try:
                safe_rmtree(install_dir, require_prefix=target_base)
            except ValueError as e:
                raise InstallerError(f"{tool.name}: {e}") from e

        target_base.mkdir(parents=True, exist_ok=True)
        sweep_scratch(target_base, tool.name)
        scratch = Path(
            tempfile.mkdtemp(prefix=scratch_prefix(tool.name, "install"), dir=target_base)
        )

        try:
            if tool.kind is InstallKind.SELF_EXTRACTING:
                strategies.run_self_extractor(tool.name, artifact_path, scratch)
                root = scratch
            else:
                root = strategies.unpack_archive(artifact_path, scratch)
                if tool.kind is InstallKind.PORTABLE_EDITOR:
                    strategies.enable_portable_mode(root)

            if not (root / tool.marker_file).is_file():
                raise InstallerError(
                    f"{tool.name}: {tool.marker_file} not found after installation"
                )

            promote_directory(root, install_dir)
        finally:
            remove_quietly(scratch)
