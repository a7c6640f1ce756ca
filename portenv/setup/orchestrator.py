"""
Setup flow: resolve, install and register a selection of manifest tools.

Per tool the state moves ``NOT_STARTED -> CACHE_RESOLVING -> INSTALLING ->
INSTALLED``; tools whose marker file already exists go straight to
``ALREADY_INSTALLED``. A network, integrity, archive, installer or local
file system error marks that tool ``FAILED`` and the run carries on with
the next tool.
Environment-store and configuration errors abort the run.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from portenv.config.manifest import InstallKind, Manifest, ToolSpec
from portenv.core.cache import ContentCache
from portenv.core.download import ProgressCallback
from portenv.core.environment import Environment
from portenv.core.exceptions import PER_TOOL_ERRORS
from portenv.install.dispatcher import InstallDispatcher
from portenv.registrar.registrar import PathRegistrar
from portenv.registrar.shortcuts import ShortcutCreator

logger = logging.getLogger(__name__)


class ToolState(Enum):
    NOT_STARTED = "not started"
    CACHE_RESOLVING = "resolving"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ALREADY_INSTALLED = "already installed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ToolResult:
    """Outcome for one tool."""

    name: str
    state: ToolState = ToolState.NOT_STARTED
    stage: Optional[ToolState] = None
    """State the tool was in when it failed"""
    message: str = ""
    install_dir: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.state in (ToolState.INSTALLED, ToolState.ALREADY_INSTALLED)

    def describe(self) -> str:
        if self.state is ToolState.FAILED:
            stage = self.stage.value if self.stage else "setup"
            return f"{self.name}: failed while {stage}: {self.message}"
        if self.message:
            return f"{self.name}: {self.state.value} ({self.message})"
        return f"{self.name}: {self.state.value}"


@dataclass
class SetupReport:
    """Per-tool results in manifest order, plus what registration changed."""

    results: List[ToolResult] = field(default_factory=list)
    path_added: List[str] = field(default_factory=list)
    shortcuts: List[Path] = field(default_factory=list)

    @classmethod
    def cancelled(cls, names: Sequence[str]) -> "SetupReport":
        return cls(results=[ToolResult(name, ToolState.CANCELLED) for name in names])

    def _with_state(self, state: ToolState) -> List[ToolResult]:
        return [result for result in self.results if result.state is state]

    @property
    def installed(self) -> List[ToolResult]:
        return self._with_state(ToolState.INSTALLED)

    @property
    def already_installed(self) -> List[ToolResult]:
        return self._with_state(ToolState.ALREADY_INSTALLED)

    @property
    def failed(self) -> List[ToolResult]:
        return self._with_state(ToolState.FAILED)

    @property
    def was_cancelled(self) -> bool:
        return bool(self.results) and all(
            result.state is ToolState.CANCELLED for result in self.results
        )


StateListener = Callable[[ToolSpec, ToolResult], None]
ProgressFactory = Callable[[ToolSpec], Optional[ProgressCallback]]


def artifact_default_suffix(tool: ToolSpec) -> str:
    """Cache extension for URLs that carry none; installers must keep ``.exe``."""
    if tool.kind in (InstallKind.SELF_EXTRACTING, InstallKind.BOOTSTRAP_INSTALLER):
        return ".exe"
    return ".zip"


class SetupOrchestrator:
    """
    Drives cache, dispatcher and registrar for a selection of tools.

    Args:
        env: Run context
        cache: Content cache (default: one rooted at env.cache_dir)
        dispatcher: Install dispatcher (default: built from env)
        registrar: PATH registrar (default: built from env)
        shortcuts: Shortcut creator (default: built from env when shortcuts are enabled)
        on_state: Called after every state change of a tool
        progress_factory: Returns a download progress callback for a tool
    """

    def __init__(
        self,
        env: Environment,
        cache: Optional[ContentCache] = None,
        dispatcher: Optional[InstallDispatcher] = None,
        registrar: Optional[PathRegistrar] = None,
        shortcuts: Optional[ShortcutCreator] = None,
        on_state: Optional[StateListener] = None,
        progress_factory: Optional[ProgressFactory] = None,
    ):
        self.env = env
        self.cache = cache or ContentCache(env.cache_dir)
        self.dispatcher = dispatcher or InstallDispatcher(env.bootstrap_home, env.host_triple)
        self.registrar = registrar or PathRegistrar(env.path_store, env.bootstrap_home)
        if shortcuts is None and env.create_shortcuts and env.desktop_dir is not None:
            shortcuts = ShortcutCreator(env.desktop_dir, env.bootstrap_home, env.is_windows)
        self.shortcuts = shortcuts
        self.on_state = on_state
        self.progress_factory = progress_factory

    def transition(self, tool: ToolSpec, result: ToolResult, state: ToolState) -> None:
        result.state = state
        logger.debug(f"{tool.name}: {state.value}")
        if self.on_state:
            self.on_state(tool, result)

    def run(
        self,
        manifest: Manifest,
        selected_names: Sequence[str],
        target_base: Optional[Path] = None,
    ) -> SetupReport:
        """
        Install the selected tools and register them.

        Args:
            manifest: Tool catalog
            selected_names: Names to install; order is irrelevant, manifest order is used
            target_base: Install root (default: env.target_base)

        Returns:
            SetupReport with one result per selected tool

        Raises:
            ConfigurationError: If a selected name is not in the manifest
            EnvironmentStoreError: If the search-path store is broken
        """
        report = SetupReport()
        if not selected_names:
            logger.info("No tools selected")
            return report

        tools = manifest.select(selected_names)
        target_base = Path(target_base) if target_base is not None else self.env.target_base

        for tool in tools:
            result = self._setup_tool(tool, target_base)
            report.results.append(result)

        if report.installed:
            self.register(manifest, target_base, report)
        return report

    def _setup_tool(self, tool: ToolSpec, target_base: Path) -> ToolResult:
        result = ToolResult(tool.name)

        if self.dispatcher.is_installed(tool, target_base):
            result.install_dir = tool.install_root(target_base, self.dispatcher.bootstrap_home)
            self.transition(tool, result, ToolState.ALREADY_INSTALLED)
            return result

        try:
            self.transition(tool, result, ToolState.CACHE_RESOLVING)
            progress = self.progress_factory(tool) if self.progress_factory else None
            artifact = self.cache.resolve(
                tool.name,
                tool.source_url,
                expected_hash=tool.content_hash,
                progress_callback=progress,
                default_suffix=artifact_default_suffix(tool),
            )

            self.transition(tool, result, ToolState.INSTALLING)
            outcome = self.dispatcher.install(tool, artifact, target_base)
        except PER_TOOL_ERRORS as e:
            result.stage = result.state
            result.message = str(e)
            logger.error(f"{tool.name}: {e}")
            self.transition(tool, result, ToolState.FAILED)
            return result

        result.install_dir = outcome.install_dir
        self.transition(
            tool,
            result,
            ToolState.ALREADY_INSTALLED if outcome.already_installed else ToolState.INSTALLED,
        )
        return result

    def register(self, manifest: Manifest, target_base: Path, report: SetupReport) -> None:
        """Register every installed manifest tool on PATH, then create shortcuts."""
        installed = [
            tool for tool in manifest if self.dispatcher.is_installed(tool, target_base)
        ]
        report.path_added = self.registrar.register(target_base, installed)
        if self.shortcuts is not None:
            report.shortcuts = self.shortcuts.create(target_base, installed)
