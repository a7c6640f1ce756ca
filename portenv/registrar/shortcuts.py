"""
Desktop launch shortcuts for installed tools.

Windows gets ``.lnk`` files created through PowerShell's ``WScript.Shell``
COM object; other hosts get freedesktop ``.desktop`` entries. Shortcut
creation is best effort: failures are logged and never raised.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from portenv.config.manifest import ToolSpec
from portenv.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

_TITLES = {
    "pwsh": "portenv Shell",
    "vscodium": "VSCodium (portable)",
    "git": "Git Bash",
}


def shortcut_title(tool: ToolSpec) -> str:
    return _TITLES.get(tool.name, tool.name)


def powershell_single_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def create_windows_shortcut(
    shortcut_path: Path, target_path: Path, working_directory: Optional[Path] = None
) -> None:
    script_lines = [
        "$ws = New-Object -ComObject WScript.Shell",
        f"$sc = $ws.CreateShortcut({powershell_single_quote(str(shortcut_path))})",
        f"$sc.TargetPath = {powershell_single_quote(str(target_path))}",
    ]
    if working_directory:
        script_lines.append(
            f"$sc.WorkingDirectory = {powershell_single_quote(str(working_directory))}"
        )
    script_lines.append("$sc.Save()")

    subprocess.run(
        [
            "powershell",
            "-NoProfile",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            "; ".join(script_lines),
        ],
        check=True,
        capture_output=True,
        text=True,
    )


def create_desktop_entry(shortcut_path: Path, target_path: Path, title: str) -> None:
    content = "\n".join(
        [
            "[Desktop Entry]",
            "Type=Application",
            f"Name={title}",
            f'Exec="{target_path}"',
            f"Path={target_path.parent}",
            "Terminal=false",
            "Categories=Development;",
        ]
    ) + "\n"
    atomic_write(shortcut_path, content)
    os.chmod(shortcut_path, 0o755)


class ShortcutCreator:
    """
    Creates desktop shortcuts for tools that declare a ``shortcut`` target.

    Args:
        desktop_dir: Directory shortcuts are written to
        bootstrap_home: Location owned by bootstrap installers
        is_windows: Write ``.lnk`` files instead of ``.desktop`` entries
    """

    def __init__(self, desktop_dir: Path, bootstrap_home: Path, is_windows: bool = os.name == "nt"):
        self.desktop_dir = Path(desktop_dir)
        self.bootstrap_home = Path(bootstrap_home)
        self.is_windows = is_windows

    def shortcut_path(self, tool: ToolSpec) -> Path:
        suffix = ".lnk" if self.is_windows else ".desktop"
        return self.desktop_dir / f"{shortcut_title(tool)}{suffix}"

    def create(self, target_base: Path, tools: Iterable[ToolSpec]) -> List[Path]:
        """
        Create shortcuts for every tool with a shortcut target.

        Returns:
            Shortcut files that were written
        """
        created: List[Path] = []
        for tool in tools:
            if not tool.shortcut:
                continue

            target = tool.install_root(target_base, self.bootstrap_home) / tool.shortcut
            if not target.is_file():
                logger.warning(f"Skipping shortcut for {tool.name}: {target} not found")
                continue

            shortcut = self.shortcut_path(tool)
            try:
                if self.is_windows:
                    create_windows_shortcut(shortcut, target, working_directory=Path.home())
                else:
                    create_desktop_entry(shortcut, target, shortcut_title(tool))
            except (OSError, subprocess.CalledProcessError) as e:
                logger.warning(f"Shortcut creation failed for {tool.name}: {e}")
                continue

            logger.info(f"Created desktop shortcut: {shortcut}")
            created.append(shortcut)
        return created

    def remove(self, tools: Iterable[ToolSpec]) -> List[Path]:
        """Delete shortcuts previously created for ``tools``."""
        removed: List[Path] = []
        for tool in tools:
            if not tool.shortcut:
                continue
            shortcut = self.shortcut_path(tool)
            if not shortcut.exists():
                continue
            try:
                shortcut.unlink()
            except OSError as e:
                logger.warning(f"Could not remove shortcut {shortcut}: {e}")
                continue
            removed.append(shortcut)
        return removed
