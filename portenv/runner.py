"""
Run commands with the portable toolchain on PATH.

The persistent search path only affects newly started sessions; ``portenv
run`` and ``portenv shell`` build the environment for the child process
directly, so the tools work right after setup.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from portenv.config.manifest import Manifest
from portenv.core.environment import Environment
from portenv.registrar.registrar import PathRegistrar

logger = logging.getLogger(__name__)


def installed_directories(env: Environment, manifest: Manifest) -> List[str]:
    """Executable directories of every installed manifest tool, in manifest order."""
    registrar = PathRegistrar(env.path_store, env.bootstrap_home)
    directories: List[str] = []
    for tool in manifest:
        if not tool.marker_path(env.target_base, env.bootstrap_home).is_file():
            continue
        for directory in registrar.tool_directories(env.target_base, tool):
            if directory not in directories:
                directories.append(directory)
    return directories


def build_run_environment(
    env: Environment, manifest: Manifest, base: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """
    Return a copy of ``base`` (default: os.environ) prepared for the tools.

    Installed tool directories are prepended to PATH. When node is
    installed NODE_PATH points at its global modules; when mingw64 is
    installed CC and CXX point at its gcc and g++.
    """
    environ = dict(os.environ if base is None else base)

    directories = installed_directories(env, manifest)
    current_path = environ.get("PATH", "")
    environ["PATH"] = os.pathsep.join(directories + ([current_path] if current_path else []))

    node = manifest.get("node")
    if node is not None and node.marker_path(env.target_base, env.bootstrap_home).is_file():
        environ["NODE_PATH"] = str(env.tool_dir("node") / "node_modules")

    mingw = manifest.get("mingw64")
    if mingw is not None and mingw.marker_path(env.target_base, env.bootstrap_home).is_file():
        mingw_bin = env.tool_dir("mingw64") / "bin"
        suffix = ".exe" if env.is_windows else ""
        environ["CC"] = str(mingw_bin / f"gcc{suffix}")
        environ["CXX"] = str(mingw_bin / f"g++{suffix}")

    return environ


def resolve_executable(command: str, environ: Mapping[str, str]) -> str:
    """Look ``command`` up on the PATH of ``environ`` (falls back to the bare name)."""
    found = shutil.which(command, path=environ.get("PATH"))
    return found or command


def run_command(argv: Sequence[str], environ: Mapping[str, str]) -> int:
    """
    Run a command with inherited stdio and return its exit code.

    Returns 127 when the command cannot be started.
    """
    if not argv:
        raise ValueError("No command given")

    command = [resolve_executable(argv[0], environ), *argv[1:]]
    logger.debug(f"Running: {' '.join(command)}")
    try:
        completed = subprocess.run(command, env=dict(environ))
    except FileNotFoundError:
        logger.error(f"Command not found: {argv[0]}")
        return 127
    except OSError as e:
        logger.error(f"Cannot run {argv[0]}: {e}")
        return 126
    return completed.returncode


def find_shell(env: Environment, manifest: Manifest) -> Path:
    """The portable PowerShell when installed, else ``pwsh`` from PATH."""
    pwsh = manifest.get("pwsh")
    if pwsh is not None:
        executable = pwsh.install_root(env.target_base, env.bootstrap_home) / (
            pwsh.shortcut or pwsh.marker_file
        )
        if executable.is_file():
            return executable
    return Path("pwsh")
