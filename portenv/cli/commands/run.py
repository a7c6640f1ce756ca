"""
Run command implementation.

Runs a command with the installed toolchain on PATH.
"""

from portenv.cli.utils import load_context
from portenv.runner import build_run_environment, run_command


def run(args) -> int:
    """Run CMD with the toolchain environment and return its exit code."""
    ctx = load_context(args)
    environ = build_run_environment(ctx.env, ctx.manifest)
    return run_command([args.cmd, *args.cmd_args], environ)
