"""
Setup command implementation.

Downloads, installs and registers the selected tools, or imports them from
a local folder with --from-folder.
"""

import logging

from portenv.cli import prompts
from portenv.cli.utils import load_context, print_error, progress_printer, safe_print
from portenv.setup.maintenance import import_from_folder
from portenv.setup.orchestrator import SetupOrchestrator, SetupReport, ToolResult, ToolState

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the setup command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 even when single tools failed; their errors are printed)
    """
    ctx = load_context(args)

    def on_state(tool, result: ToolResult):
        if result.state in (ToolState.CACHE_RESOLVING, ToolState.INSTALLING):
            logger.info(f"[{tool.name}] {result.state.value}...")

    if args.from_folder:
        if not args.from_folder.is_dir():
            print_error(f"Not a directory: {args.from_folder}")
            return 1
        report = import_from_folder(ctx.env, ctx.manifest, args.from_folder, on_state=on_state)
        _print_report(report)
        return 0

    if args.all:
        selected = ctx.manifest.names()
    elif args.tools:
        selected = list(args.tools)
    else:
        choice = prompts.select_tools(ctx.manifest)
        if isinstance(choice, prompts.Cancelled):
            _print_report(SetupReport.cancelled(ctx.manifest.names()))
            return 0
        selected = choice

    orchestrator = SetupOrchestrator(
        ctx.env,
        on_state=on_state,
        progress_factory=lambda tool: progress_printer(tool.name, quiet=args.quiet),
    )
    report = orchestrator.run(ctx.manifest, selected)
    _print_report(report)
    return 0


def _print_report(report: SetupReport) -> None:
    if report.was_cancelled:
        safe_print("Setup cancelled.")
        return

    if not report.results:
        safe_print("Nothing to do.")
        return

    safe_print("")
    for result in report.results:
        mark = "✗" if result.state is ToolState.FAILED else "✓"
        safe_print(f"  {mark} {result.describe()}")

    for directory in report.path_added:
        safe_print(f"  + PATH {directory}")
    for shortcut in report.shortcuts:
        safe_print(f"  + shortcut {shortcut}")

    if report.path_added:
        safe_print("\nOpen a new terminal for the PATH changes to take effect.")
    if report.failed:
        print_error(
            f"{len(report.failed)} tool(s) failed",
            "Run 'portenv setup' again with those tools to retry.",
        )
