"""
Tool manifest: the declarative catalog of installable tools.

A manifest is a record with a ``tools`` list::

    {
      "tools": [
        {
          "name": "node",
          "version": "22.12.0",
          "url": "https://nodejs.org/dist/v22.12.0/node-v22.12.0-win-x64.zip",
          "check_file": "node.exe",
          "sha256": "..."
        }
      ]
    }

Optional per-tool fields: ``sha256``, ``kind``, ``path`` (list of relative
directories to register on the search path) and ``shortcut`` (relative
path of the executable a desktop shortcut points at). Unknown fields are
ignored. The install kind, search-path directories and shortcut target are
decided once, when the manifest is loaded.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path, PureWindowsPath
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import requests
import yaml

from portenv.config.settings import Settings
from portenv.core.exceptions import ConfigurationError, NetworkError
from portenv.core.filesystem import atomic_write
from portenv.core.verification import HashFormatError, normalize_hash

logger = logging.getLogger(__name__)

LOCAL_MANIFEST_NAME = "tools.json"


class InstallKind(Enum):
    """How a tool's artifact becomes an installed tool."""

    GENERIC_ARCHIVE = "archive"
    SELF_EXTRACTING = "self-extracting"
    BOOTSTRAP_INSTALLER = "bootstrap"
    PORTABLE_EDITOR = "portable-editor"

    @classmethod
    def from_value(cls, value: str) -> "InstallKind":
        normalized = value.strip().lower().replace("_", "-")
        for kind in cls:
            if normalized in (kind.value, kind.name.lower().replace("_", "-")):
                return kind
        valid = ", ".join(kind.value for kind in cls)
        raise ConfigurationError(f"Unknown install kind '{value}' (expected one of: {valid})")


# Well-known tools whose install procedure differs from a plain archive
_KIND_BY_NAME = {
    "git": InstallKind.SELF_EXTRACTING,
    "rustup": InstallKind.BOOTSTRAP_INSTALLER,
    "vscodium": InstallKind.PORTABLE_EDITOR,
}

_PATH_ENTRIES_BY_NAME: Dict[str, Tuple[str, ...]] = {
    "mingw64": ("bin",),
    "git": ("bin", "cmd"),
    "rustup": ("bin",),
}

_SHORTCUT_BY_NAME = {
    "pwsh": "pwsh.exe",
    "vscodium": "VSCodium.exe",
    "git": "git-bash.exe",
}


def _check_tool_name(name: str) -> None:
    """Tool names become cache file and install directory names."""
    if name in (".", "..") or any(char in name for char in "/\\:"):
        raise ConfigurationError(
            f"Tool name '{name}' must be a plain file name (no separators, drive or '..')"
        )


def _check_relative(name: str, field_name: str, value: str) -> None:
    """Paths inside a tool tree must stay inside it."""
    # Windows parsing sees both separators and drive letters
    path = PureWindowsPath(value)
    if path.drive or path.root or ".." in path.parts:
        raise ConfigurationError(
            f"Tool '{name}': '{field_name}' must be a relative path inside the tool, got '{value}'"
        )


@dataclass(frozen=True)
class ToolSpec:
    """One installable tool."""

    name: str
    version: str
    source_url: str
    marker_file: str
    content_hash: Optional[str] = None
    kind: InstallKind = InstallKind.GENERIC_ARCHIVE
    path_entries: Tuple[str, ...] = ("",)
    shortcut: Optional[str] = None

    @classmethod
    def create(
        cls,
        name: str,
        version: str,
        source_url: str,
        marker_file: str,
        content_hash: Optional[str] = None,
        kind: Optional[InstallKind] = None,
        path_entries: Optional[Sequence[str]] = None,
        shortcut: Optional[str] = None,
    ) -> "ToolSpec":
        """Build a ToolSpec, filling kind, path entries and shortcut from the tool name."""
        if kind is None:
            kind = _KIND_BY_NAME.get(name, InstallKind.GENERIC_ARCHIVE)
        if path_entries is None:
            path_entries = _PATH_ENTRIES_BY_NAME.get(name, ("",))
        if shortcut is None:
            shortcut = _SHORTCUT_BY_NAME.get(name)
        return cls(
            name=name,
            version=version,
            source_url=source_url,
            marker_file=marker_file,
            content_hash=content_hash,
            kind=kind,
            path_entries=tuple(path_entries),
            shortcut=shortcut,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolSpec":
        """
        Parse one manifest entry.

        Raises:
            ConfigurationError: If a required field is missing or a field is malformed
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Manifest entry must be a mapping, got {type(data).__name__}")

        missing = [key for key in ("name", "version", "url", "check_file") if not data.get(key)]
        if missing:
            label = data.get("name", "<unnamed>")
            raise ConfigurationError(
                f"Manifest entry '{label}' is missing required field(s): {', '.join(missing)}"
            )

        name = str(data["name"])
        _check_tool_name(name)
        _check_relative(name, "check_file", str(data["check_file"]))

        content_hash = data.get("sha256") or None
        if content_hash is not None:
            try:
                content_hash = normalize_hash(str(content_hash))
            except HashFormatError as e:
                raise ConfigurationError(f"Tool '{name}': {e}") from e

        kind = InstallKind.from_value(str(data["kind"])) if data.get("kind") else None

        path_entries = data.get("path")
        if path_entries is not None:
            if isinstance(path_entries, str):
                path_entries = [path_entries]
            if not isinstance(path_entries, list) or not all(
                isinstance(entry, str) for entry in path_entries
            ):
                raise ConfigurationError(f"Tool '{name}': 'path' must be a list of strings")
            for entry in path_entries:
                _check_relative(name, "path", entry)

        shortcut = data.get("shortcut")
        if shortcut is not None:
            if not isinstance(shortcut, str):
                raise ConfigurationError(f"Tool '{name}': 'shortcut' must be a string")
            _check_relative(name, "shortcut", shortcut)

        return cls.create(
            name=name,
            version=str(data["version"]),
            source_url=str(data["url"]),
            marker_file=str(data["check_file"]),
            content_hash=content_hash,
            kind=kind,
            path_entries=path_entries,
            shortcut=shortcut,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in manifest form; defaults derived from the name are omitted."""
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "url": self.source_url,
            "check_file": self.marker_file,
        }
        if self.content_hash:
            data["sha256"] = self.content_hash
        if self.kind != _KIND_BY_NAME.get(self.name, InstallKind.GENERIC_ARCHIVE):
            data["kind"] = self.kind.value
        if self.path_entries != _PATH_ENTRIES_BY_NAME.get(self.name, ("",)):
            data["path"] = list(self.path_entries)
        if self.shortcut != _SHORTCUT_BY_NAME.get(self.name):
            data["shortcut"] = self.shortcut
        return data

    def install_root(self, target_base: Path, bootstrap_home: Path) -> Path:
        """
        Directory the tool lives in once installed.

        Bootstrap installers manage their own location (the bootstrap home);
        every other kind installs into ``<target_base>/<name>``.
        """
        if self.kind is InstallKind.BOOTSTRAP_INSTALLER:
            return Path(bootstrap_home)
        return Path(target_base) / self.name

    def marker_path(self, target_base: Path, bootstrap_home: Path) -> Path:
        return self.install_root(target_base, bootstrap_home) / self.marker_file

    def with_release(self, version: str, url: str, content_hash: Optional[str]) -> "ToolSpec":
        return replace(self, version=version, source_url=url, content_hash=content_hash)


@dataclass(frozen=True)
class Manifest:
    """Ordered, name-unique collection of ToolSpecs."""

    tools: Tuple[ToolSpec, ...] = field(default_factory=tuple)
    source: str = "<default>"

    def __post_init__(self):
        seen = set()
        for tool in self.tools:
            if tool.name in seen:
                raise ConfigurationError(
                    f"Duplicate tool name '{tool.name}' in manifest {self.source}"
                )
            seen.add(tool.name)

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self.tools)

    def __len__(self) -> int:
        return len(self.tools)

    def __contains__(self, name: object) -> bool:
        return any(tool.name == name for tool in self.tools)

    def names(self) -> List[str]:
        return [tool.name for tool in self.tools]

    def get(self, name: str) -> Optional[ToolSpec]:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def select(self, names: Sequence[str]) -> List[ToolSpec]:
        """
        Return the named tools in manifest order.

        Raises:
            ConfigurationError: If a name is not in the manifest
        """
        unknown = [name for name in names if name not in self]
        if unknown:
            raise ConfigurationError(
                f"Unknown tool(s): {', '.join(unknown)}. "
                f"Available: {', '.join(self.names())}"
            )
        wanted = set(names)
        return [tool for tool in self.tools if tool.name in wanted]

    def replace_tool(self, tool: ToolSpec) -> "Manifest":
        """Return a copy with the same-named tool swapped for ``tool``."""
        if tool.name not in self:
            raise ConfigurationError(f"Tool '{tool.name}' is not in the manifest")
        tools = tuple(tool if t.name == tool.name else t for t in self.tools)
        return Manifest(tools=tools, source=self.source)

    def to_dict(self) -> Dict[str, Any]:
        return {"tools": [tool.to_dict() for tool in self.tools]}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Any, source: str = "<memory>") -> "Manifest":
        if not isinstance(data, dict) or not isinstance(data.get("tools"), list):
            raise ConfigurationError(f"Manifest {source} must contain a 'tools' list")
        tools = tuple(ToolSpec.from_dict(entry) for entry in data["tools"])
        return cls(tools=tools, source=source)

    @classmethod
    def default(cls) -> "Manifest":
        """The compiled-in tool set (no hashes, verification skipped)."""
        return cls(
            tools=(
                ToolSpec.create(
                    name="node",
                    version="22.12.0",
                    source_url="https://nodejs.org/dist/v22.12.0/node-v22.12.0-win-x64.zip",
                    marker_file="node.exe",
                ),
                ToolSpec.create(
                    name="mingw64",
                    version="14.2.0",
                    source_url=(
                        "https://github.com/brechtsanders/winlibs_mingw/releases/download/"
                        "14.2.0posix-19.1.1-12.0.0-ucrt-r2/"
                        "winlibs-x86_64-posix-seh-gcc-14.2.0-llvm-19.1.1-mingw-w64ucrt-12.0.0-r2.zip"
                    ),
                    marker_file="bin/gcc.exe",
                ),
                ToolSpec.create(
                    name="pwsh",
                    version="7.4.6",
                    source_url=(
                        "https://github.com/PowerShell/PowerShell/releases/download/"
                        "v7.4.6/PowerShell-7.4.6-win-x64.zip"
                    ),
                    marker_file="pwsh.exe",
                ),
            ),
            source="<default>",
        )

    @classmethod
    def load_from_file(cls, path: Path) -> "Manifest":
        """
        Load a manifest from a JSON or YAML file.

        Raises:
            ConfigurationError: If the file is missing, unparsable or malformed
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Manifest file not found: {path}")

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read manifest {path}: {e}") from e

        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid manifest {path}: {e}") from e

        logger.debug(f"Loaded manifest from {path}")
        return cls.from_dict(data, source=str(path))

    @classmethod
    def load_from_url(
        cls, url: str, timeout: int = 10, session: Optional[requests.Session] = None
    ) -> "Manifest":
        """
        Fetch a JSON manifest over HTTP.

        Raises:
            NetworkError: On transport failure or non-success status
            ConfigurationError: If the body is not a valid manifest
        """
        getter = session.get if session is not None else requests.get
        try:
            response = getter(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Cannot fetch manifest from {url}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ConfigurationError(f"Manifest at {url} is not valid JSON: {e}") from e

        logger.debug(f"Loaded manifest from {url}")
        return cls.from_dict(data, source=url)

    def save_to_file(self, path: Path) -> None:
        """Write the manifest as pretty-printed JSON (atomically)."""
        atomic_write(Path(path), json.dumps(self.to_dict(), indent=2) + "\n")
        logger.info(f"Manifest written to {path}")


def resolve_manifest(
    settings: Settings,
    explicit: Optional[Path] = None,
    cwd: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> Manifest:
    """
    Pick the manifest for this run.

    Lookup order: ``explicit`` path, ``settings.manifest``, ``./tools.json``,
    ``settings.manifest_url`` (falls back on network failure), the
    compiled-in default. A local file that exists but is malformed is an
    error; it never silently falls through.
    """
    if explicit is not None:
        return Manifest.load_from_file(explicit)

    if settings.manifest is not None:
        return Manifest.load_from_file(settings.manifest)

    local = (cwd or Path.cwd()) / LOCAL_MANIFEST_NAME
    if local.is_file():
        return Manifest.load_from_file(local)

    if settings.manifest_url:
        try:
            return Manifest.load_from_url(settings.manifest_url, session=session)
        except NetworkError as e:
            logger.warning(f"{e}. Using the built-in tool list.")

    return Manifest.default()
