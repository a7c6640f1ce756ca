"""
Shell command implementation.

Opens PowerShell (the portable one when installed) with the toolchain on PATH.
"""

import logging

from portenv.cli.utils import load_context
from portenv.runner import build_run_environment, find_shell, run_command

logger = logging.getLogger(__name__)


def run(args) -> int:
    """Open an interactive shell and return its exit code."""
    ctx = load_context(args)
    environ = build_run_environment(ctx.env, ctx.manifest)
    shell = find_shell(ctx.env, ctx.manifest)
    logger.info(f"Starting {shell} (exit to return)")
    return run_command([str(shell), "-NoLogo"], environ)
