"""
Manifest command implementation.

Sub-commands:
    check   HEAD-request every tool URL
    update  point a tool at a new release, recording its SHA-256
"""

import logging
from pathlib import Path

from portenv.cli.utils import load_context, print_error, print_warning, progress_printer, safe_print
from portenv.config.manifest import LOCAL_MANIFEST_NAME
from portenv.config.manifest_tools import check_urls, refresh_tool
from portenv.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def run_check(args) -> int:
    """
    Check every download URL in the manifest.

    Returns:
        Exit code (0 if all URLs answer, 1 otherwise)
    """
    ctx = load_context(args)
    checks = check_urls(ctx.manifest)

    for check in checks:
        mark = "✓" if check.ok else "✗"
        detail = check.error or f"HTTP {check.status}"
        safe_print(f"  {mark} {check.name:<10} {detail}")
        if not check.ok:
            safe_print(f"      {check.url}")

    failed = [check for check in checks if not check.ok]
    if failed:
        print_error(f"{len(failed)} URL(s) did not answer")
        return 1
    return 0


def run_update(args) -> int:
    """
    Download a new release of one tool and write the updated manifest.

    Returns:
        Exit code (0 for success)
    """
    ctx = load_context(args)
    tool = ctx.manifest.get(args.name)
    if tool is None:
        raise ConfigurationError(
            f"Unknown tool '{args.name}'. Available: {', '.join(ctx.manifest.names())}"
        )

    logger.info(f"Downloading {tool.name} {args.new_version} to compute its hash...")
    result = refresh_tool(
        tool,
        args.new_version,
        args.url,
        progress_callback=progress_printer(tool.name, quiet=args.quiet),
    )
    if result.marker_found is False:
        print_warning(f"{tool.marker_file} is not in the downloaded archive")

    output = args.output
    if output is None:
        source = Path(ctx.manifest.source)
        output = source if source.is_file() else Path(LOCAL_MANIFEST_NAME)

    updated = ctx.manifest.replace_tool(result.tool)
    updated.save_to_file(output)

    safe_print(f"  {tool.name}: {tool.version} -> {result.tool.version}")
    safe_print(f"  sha256: {result.tool.content_hash}")
    safe_print(f"  written to {output}")
    return 0
