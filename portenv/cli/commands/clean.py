"""
Clean command implementation.

Removes installed tools, the download cache and the PATH entries portenv added.
"""

import logging

from portenv.cli import prompts
from portenv.cli.utils import load_context, print_error, print_warning, safe_print
from portenv.setup.maintenance import clean

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the clean command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success or when the user declines, 1 if something could not be removed)
    """
    ctx = load_context(args)

    if not args.yes:
        print_warning(
            f"This removes {len(ctx.manifest)} tool(s) from {ctx.env.target_base} "
            "and their PATH entries."
        )
        answer = prompts.confirm("Continue?")
        if isinstance(answer, prompts.Cancelled) or not answer:
            safe_print("Clean cancelled.")
            return 0

    report = clean(ctx.env, ctx.manifest, remove_cache=not args.keep_cache)

    for path in report.removed:
        safe_print(f"  - {path}")
    if report.cache_removed:
        safe_print(f"  - {ctx.env.cache_dir}")
    for entry in report.path_removed:
        safe_print(f"  - PATH {entry}")
    for shortcut in report.shortcuts_removed:
        safe_print(f"  - shortcut {shortcut}")

    if report.errors:
        for name, message in report.errors.items():
            print_error(f"Could not remove {name}", message)
        return 1
    return 0
