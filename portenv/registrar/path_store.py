"""
Persistent user search-path stores.

The persistent search path is a single delimited string kept in a
user-scoped store. On Windows that is the ``Path`` value under
``HKEY_CURRENT_USER\\Environment``; elsewhere it is a plain file under the
user's config directory plus a generated ``env.sh`` snippet that shells can
source.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from portenv.core.exceptions import EnvironmentStoreError
from portenv.core.filesystem import atomic_write

logger = logging.getLogger(__name__)


class PathStore(ABC):
    """Read/write access to the persistent search-path value."""

    separator: str = os.pathsep

    @abstractmethod
    def read(self) -> str:
        """
        Return the current value ('' when it has never been set).

        Raises:
            EnvironmentStoreError: If the store exists but cannot be read
        """

    @abstractmethod
    def write(self, value: str) -> None:
        """
        Replace the stored value.

        Raises:
            EnvironmentStoreError: If the store cannot be written
        """

    def describe(self) -> str:
        return type(self).__name__


class WindowsRegistryPathStore(PathStore):
    """User ``Path`` value in ``HKCU\\Environment``."""

    separator = ";"
    SUBKEY = "Environment"
    VALUE_NAME = "Path"

    def __init__(self):
        import winreg

        self._winreg = winreg

    def read(self) -> str:
        winreg = self._winreg
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, self.SUBKEY, 0, winreg.KEY_READ) as key:
                value, _ = winreg.QueryValueEx(key, self.VALUE_NAME)
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise EnvironmentStoreError(f"Cannot read user Path from registry: {e}") from e
        return value or ""

    def write(self, value: str) -> None:
        winreg = self._winreg
        try:
            with winreg.OpenKey(
                winreg.HKEY_CURRENT_USER,
                self.SUBKEY,
                0,
                winreg.KEY_READ | winreg.KEY_WRITE,
            ) as key:
                try:
                    _, reg_type = winreg.QueryValueEx(key, self.VALUE_NAME)
                except FileNotFoundError:
                    reg_type = winreg.REG_EXPAND_SZ
                if reg_type not in (winreg.REG_EXPAND_SZ, winreg.REG_SZ):
                    reg_type = winreg.REG_EXPAND_SZ
                winreg.SetValueEx(key, self.VALUE_NAME, 0, reg_type, value)
        except OSError as e:
            raise EnvironmentStoreError(f"Cannot write user Path to registry: {e}") from e
        _broadcast_environment_change()

    def describe(self) -> str:
        return "HKCU\\Environment\\Path"


def _broadcast_environment_change() -> None:
    """Tell running Windows applications the user environment changed."""
    try:
        import ctypes

        HWND_BROADCAST = 0xFFFF
        WM_SETTINGCHANGE = 0x001A
        SMTO_ABORTIFHUNG = 0x0002
        result = ctypes.c_ulong()
        ctypes.windll.user32.SendMessageTimeoutW(  # type: ignore[attr-defined]
            HWND_BROADCAST,
            WM_SETTINGCHANGE,
            0,
            "Environment",
            SMTO_ABORTIFHUNG,
            5000,
            ctypes.byref(result),
        )
    except (AttributeError, OSError) as e:
        logger.debug(f"Environment change broadcast failed: {e}")


class FilePathStore(PathStore):
    """
    Search-path value kept in a file.

    Alongside the value file an ``env.sh`` snippet is regenerated on every
    write so a login shell can pick the directories up with
    ``. ~/.config/portenv/env.sh``.
    """

    def __init__(self, path: Path, separator: str = os.pathsep):
        self.path = Path(path)
        self.separator = separator

    @property
    def snippet_path(self) -> Path:
        return self.path.with_name("env.sh")

    def read(self) -> str:
        if not self.path.exists():
            return ""
        try:
            return self.path.read_text(encoding="utf-8").strip("\r\n")
        except OSError as e:
            raise EnvironmentStoreError(f"Cannot read search path from {self.path}: {e}") from e

    def write(self, value: str) -> None:
        try:
            atomic_write(self.path, value + "\n")
            atomic_write(self.snippet_path, self._render_snippet(value))
        except OSError as e:
            raise EnvironmentStoreError(f"Cannot write search path to {self.path}: {e}") from e

    def _render_snippet(self, value: str) -> str:
        lines = ["# Generated by portenv. Do not edit."]
        if value:
            lines.append(f'export PATH="$PATH{self.separator}{value}"')
        return "\n".join(lines) + "\n"

    def describe(self) -> str:
        return str(self.path)
