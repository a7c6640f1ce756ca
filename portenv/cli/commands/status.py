"""
Status command implementation.

Shows, per manifest tool, whether it is installed and on the persistent PATH.
"""

import logging

from portenv.cli.utils import load_context, safe_print
from portenv.setup.maintenance import check_status

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the status command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    ctx = load_context(args)
    statuses = check_status(ctx.env, ctx.manifest)

    safe_print(f"Install base: {ctx.env.target_base}")
    safe_print(f"PATH store:   {ctx.env.path_store.describe()}")
    safe_print("")
    for status in statuses:
        installed = "installed" if status.installed else "missing"
        on_path = "on PATH" if status.on_path else "not on PATH"
        safe_print(f"  {status.name:<10} {status.version:<10} {installed:<10} {on_path}")

    return 0
