"""
Persistent search-path registration for installed tools.

``register`` appends each tool's executable directories to the user's
persistent search path, at most once each. ``unregister`` reverses it by
dropping every entry that contains one of those directories. Everything
else in the value, empty entries and a trailing separator included, is
left as it was, so the two calls round-trip.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List

from portenv.config.manifest import ToolSpec
from portenv.registrar.path_store import PathStore

logger = logging.getLogger(__name__)

# A rewritten value shorter than this, from a non-empty original, means
# something went wrong while parsing it
MIN_PLAUSIBLE_LENGTH = 5


class PathRegistrar:
    """
    Adds and removes tool directories in a PathStore.

    Args:
        store: Persistent search-path store
        bootstrap_home: Location owned by bootstrap installers

    Example:
        >>> registrar = PathRegistrar(env.path_store, env.bootstrap_home)
        >>> registrar.register(env.target_base, installed_tools)
        ['C:\\\\Users\\\\me\\\\AppData\\\\Local\\\\node']
    """

    def __init__(self, store: PathStore, bootstrap_home: Path):
        self.store = store
        self.bootstrap_home = Path(bootstrap_home)

    @property
    def separator(self) -> str:
        return self.store.separator

    def tool_directories(self, target_base: Path, tool: ToolSpec) -> List[str]:
        """Executable-bearing directories of one tool, as search-path strings."""
        root = tool.install_root(target_base, self.bootstrap_home)
        directories = []
        for entry in tool.path_entries:
            directory = root / entry if entry else root
            directories.append(str(directory))
        return directories

    def _split(self, value: str) -> List[str]:
        if not value:
            return []
        return value.split(self.separator)

    def register(self, target_base: Path, tools: Iterable[ToolSpec]) -> List[str]:
        """
        Append missing tool directories to the persistent search path.

        Returns:
            Directories that were added (empty when nothing changed)

        Raises:
            EnvironmentStoreError: If the store cannot be read or written
        """
        current = self.store.read()
        entries = self._split(current)
        # New entries go before a trailing separator, which stays last
        trailing = bool(entries) and entries[-1] == ""
        if trailing:
            entries.pop()
        added: List[str] = []

        for tool in tools:
            for directory in self.tool_directories(target_base, tool):
                if directory in entries:
                    continue
                entries.append(directory)
                added.append(directory)
                logger.info(f"Adding to PATH: {directory}")

        if not added:
            logger.info("PATH already up to date")
            return []

        value = self.separator.join(entries)
        if trailing:
            value += self.separator
        self.store.write(value)
        return added

    def unregister(self, target_base: Path, tools: Iterable[ToolSpec]) -> List[str]:
        """
        Remove tool directories from the persistent search path.

        An entry is removed when it contains one of the tool directories, so
        a trailing separator does not keep it alive. Other entries, empty
        ones included, are kept verbatim. If the rewritten value would be
        implausibly short while the original was not empty, nothing is
        written unless every removed entry is exactly one of the tool
        directories.

        Returns:
            Entries that were removed (empty when nothing was written)

        Raises:
            EnvironmentStoreError: If the store cannot be read or written
        """
        current = self.store.read()
        expected = [
            directory.rstrip("\\/")
            for tool in tools
            for directory in self.tool_directories(target_base, tool)
        ]

        kept: List[str] = []
        removed: List[str] = []
        for entry in self._split(current):
            if entry and any(directory and directory in entry for directory in expected):
                removed.append(entry)
            else:
                kept.append(entry)

        if not removed:
            logger.info("PATH holds no portenv entries")
            return []

        new_value = self.separator.join(kept)

        exact = all(entry.rstrip("\\/") in expected for entry in removed)
        if current and len(new_value) < MIN_PLAUSIBLE_LENGTH and not exact:
            logger.warning(
                "Refusing to write PATH: the cleaned value is implausibly short "
                f"({len(new_value)} characters, was {len(current)}). PATH left unchanged."
            )
            return []

        self.store.write(new_value)
        for entry in removed:
            logger.info(f"Removed from PATH: {entry}")
        return removed

    def on_path(self, target_base: Path, tools: Iterable[ToolSpec]) -> Dict[str, bool]:
        """
        Map each tool name to True when all its directories are on the search path.
        """
        entries = [entry.rstrip("\\/") for entry in self._split(self.store.read())]
        return {
            tool.name: all(
                directory.rstrip("\\/") in entries
                for directory in self.tool_directories(target_base, tool)
            )
            for tool in tools
        }
