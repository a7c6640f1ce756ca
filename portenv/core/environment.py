"""
Explicit run context for portenv.

Everything that depends on the host (where tools are installed, where the
download cache lives, which persistent search-path store to use) is resolved
once into an ``Environment`` and passed to the components that need it.
Nothing else reads environment variables or the registry ad hoc.

Default layout:
    Windows:
        target base : %LOCALAPPDATA%
        cache       : %TEMP%\\portenv_cache
        search path : HKCU\\Environment\\Path
    Linux/macOS:
        target base : $XDG_DATA_HOME/portenv (~/.local/share/portenv)
        cache       : $TMPDIR/portenv_cache
        search path : $XDG_CONFIG_HOME/portenv/path (~/.config/portenv/path)
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from portenv.config.settings import DEFAULT_HOST_TRIPLE, Settings
from portenv.core.exceptions import ConfigurationError
from portenv.registrar.path_store import FilePathStore, PathStore, WindowsRegistryPathStore

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = "portenv_cache"
APP_DIR_NAME = "portenv"


@dataclass
class Environment:
    """Host-specific locations and stores for one run."""

    target_base: Path
    """Root under which each tool gets <target_base>/<name>"""

    cache_dir: Path
    """Download cache root (one artifact per tool)"""

    bootstrap_home: Path
    """Location managed by bootstrap installers (rustup's CARGO_HOME)"""

    path_store: PathStore
    """Persistent user search-path store"""

    desktop_dir: Optional[Path] = None
    """Where launch shortcuts go; None disables shortcuts"""

    host_triple: str = DEFAULT_HOST_TRIPLE
    """Default host passed to bootstrap installers"""

    create_shortcuts: bool = True

    is_windows: bool = os.name == "nt"

    @property
    def path_separator(self) -> str:
        return self.path_store.separator

    def tool_dir(self, name: str) -> Path:
        return self.target_base / name

    @classmethod
    def from_system(
        cls,
        settings: Optional[Settings] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Environment":
        """
        Resolve the environment for this host.

        Raises:
            ConfigurationError: If the target base cannot be determined
        """
        settings = settings or Settings()
        environ = os.environ if environ is None else environ
        is_windows = os.name == "nt"

        target_base = settings.target_base or _default_target_base(environ, is_windows)
        cache_dir = settings.cache_dir or Path(tempfile.gettempdir()) / CACHE_DIR_NAME

        if is_windows:
            path_store: PathStore = WindowsRegistryPathStore()
        else:
            path_store = FilePathStore(_config_home(environ) / APP_DIR_NAME / "path")

        env = cls(
            target_base=Path(target_base),
            cache_dir=Path(cache_dir),
            bootstrap_home=_bootstrap_home(environ),
            path_store=path_store,
            desktop_dir=_desktop_dir(environ, is_windows),
            host_triple=settings.host_triple,
            create_shortcuts=settings.create_shortcuts,
            is_windows=is_windows,
        )
        logger.debug(
            f"Environment: target={env.target_base} cache={env.cache_dir} "
            f"path store={path_store.describe()}"
        )
        return env


def _default_target_base(environ: Mapping[str, str], is_windows: bool) -> Path:
    if is_windows:
        local_app_data = environ.get("LOCALAPPDATA", "")
        if not local_app_data:
            raise ConfigurationError(
                "LOCALAPPDATA is not set. Cannot determine the installation directory."
            )
        return Path(local_app_data)

    data_home = environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / APP_DIR_NAME
    home = environ.get("HOME")
    if not home:
        raise ConfigurationError(
            "Neither XDG_DATA_HOME nor HOME is set. "
            "Cannot determine the installation directory."
        )
    return Path(home) / ".local" / "share" / APP_DIR_NAME


def _config_home(environ: Mapping[str, str]) -> Path:
    config_home = environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home)
    return Path(environ.get("HOME") or Path.home()) / ".config"


def _bootstrap_home(environ: Mapping[str, str]) -> Path:
    cargo_home = environ.get("CARGO_HOME")
    if cargo_home:
        return Path(cargo_home)
    home = environ.get("USERPROFILE") or environ.get("HOME")
    return Path(home or Path.home()) / ".cargo"


def _desktop_dir(environ: Mapping[str, str], is_windows: bool) -> Optional[Path]:
    candidates = []
    if is_windows:
        registry_desktop = _registry_desktop_dir()
        if registry_desktop:
            candidates.append(Path(os.path.expandvars(registry_desktop)))
    elif environ.get("XDG_DESKTOP_DIR"):
        candidates.append(Path(environ["XDG_DESKTOP_DIR"]))

    home = environ.get("USERPROFILE") or environ.get("HOME")
    if home:
        candidates.append(Path(home) / "Desktop")
        candidates.append(Path(home) / "OneDrive" / "Desktop")

    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return None


def _registry_desktop_dir() -> Optional[str]:
    import winreg

    try:
        with winreg.OpenKey(
            winreg.HKEY_CURRENT_USER,
            r"Software\Microsoft\Windows\CurrentVersion\Explorer\User Shell Folders",
        ) as key:
            value, _ = winreg.QueryValueEx(key, "Desktop")
    except OSError:
        return None
    return value or None
