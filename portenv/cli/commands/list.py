"""
List command implementation.

Prints the tools of the active manifest.
"""

from portenv.cli.utils import load_context, safe_print


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    ctx = load_context(args)

    safe_print(f"Manifest: {ctx.manifest.source}")
    for tool in ctx.manifest:
        verified = "sha256" if tool.content_hash else "unverified"
        safe_print(f"  {tool.name:<10} {tool.version:<10} {tool.kind.value:<16} {verified}")
        safe_print(f"      {tool.source_url}")
    return 0
