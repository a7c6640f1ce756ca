"""
portenv CLI argument parser.

This module implements the command-line interface for portenv using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from portenv.core.exceptions import PortEnvError

# Get version from package
try:
    from importlib.metadata import version

    __version__ = version("portenv")
except Exception:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """portenv command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="portenv",
            description="portenv - portable developer toolchain provisioner",
            epilog='Use "portenv COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"portenv {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to settings file (default: ./portenv.yaml)",
        )
        parser.add_argument(
            "--manifest",
            type=Path,
            metavar="PATH",
            help="Tool manifest (JSON or YAML) overriding the configured one",
        )
        parser.add_argument(
            "--target-base",
            type=Path,
            metavar="DIR",
            help="Directory tools are installed under",
        )
        parser.add_argument(
            "--cache-dir",
            type=Path,
            metavar="DIR",
            help="Download cache directory",
        )
        parser.add_argument(
            "--log-file",
            type=Path,
            metavar="PATH",
            help="Also write log messages to this file",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_setup_command(subparsers)
        self._add_status_command(subparsers)
        self._add_clean_command(subparsers)
        self._add_run_command(subparsers)
        self._add_shell_command(subparsers)
        self._add_list_command(subparsers)
        self._add_manifest_command(subparsers)

        return parser

    def _add_setup_command(self, subparsers):
        """Add 'setup' subcommand."""
        parser = subparsers.add_parser(
            "setup",
            help="Download, install and register tools",
            description=(
                "Install the named tools (or all of them with --all). "
                "Without names an interactive selection is shown."
            ),
        )
        parser.add_argument(
            "tools", nargs="*", metavar="TOOL", help="Tools to install"
        )
        parser.add_argument(
            "--all", action="store_true", help="Install every tool in the manifest"
        )
        parser.add_argument(
            "--from-folder",
            type=Path,
            metavar="DIR",
            help="Copy tools from an existing folder instead of downloading them",
        )
        parser.add_argument(
            "--no-shortcuts",
            action="store_true",
            help="Do not create desktop shortcuts",
        )

    def _add_status_command(self, subparsers):
        """Add 'status' subcommand."""
        subparsers.add_parser(
            "status",
            help="Show which tools are installed and on PATH",
        )

    def _add_clean_command(self, subparsers):
        """Add 'clean' subcommand."""
        parser = subparsers.add_parser(
            "clean",
            help="Remove installed tools, the cache and PATH entries",
        )
        parser.add_argument(
            "--keep-cache",
            action="store_true",
            help="Keep downloaded archives",
        )
        parser.add_argument(
            "--yes", "-y", action="store_true", help="Do not ask for confirmation"
        )

    def _add_run_command(self, subparsers):
        """Add 'run' subcommand."""
        parser = subparsers.add_parser(
            "run",
            help="Run a command with the toolchain on PATH",
        )
        parser.add_argument("cmd", metavar="CMD", help="Command to run")
        parser.add_argument(
            "cmd_args", nargs=argparse.REMAINDER, metavar="ARGS", help="Command arguments"
        )

    def _add_shell_command(self, subparsers):
        """Add 'shell' subcommand."""
        subparsers.add_parser(
            "shell",
            help="Open PowerShell with the toolchain on PATH",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        subparsers.add_parser(
            "list",
            help="List the tools in the manifest",
        )

    def _add_manifest_command(self, subparsers):
        """Add 'manifest' subcommand with sub-commands."""
        parser = subparsers.add_parser(
            "manifest",
            help="Maintain the tool manifest",
        )
        manifest_subparsers = parser.add_subparsers(
            dest="manifest_command", metavar="SUBCOMMAND"
        )

        manifest_subparsers.add_parser(
            "check", help="Check that every download URL answers"
        )

        update = manifest_subparsers.add_parser(
            "update",
            help="Point a tool at a new release and record its hash",
        )
        update.add_argument("name", metavar="NAME", help="Tool to update")
        update.add_argument("--version", required=True, dest="new_version", metavar="V")
        update.add_argument("--url", required=True, metavar="U")
        update.add_argument(
            "--output",
            type=Path,
            metavar="F",
            help="Where to write the manifest (default: the manifest file read)",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except PortEnvError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1
        except Exception as e:
            logger.error(f"Unexpected error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet/log_file
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

        if args.log_file:
            args.log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(args.log_file, encoding="utf-8")
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
            )
            root = logging.getLogger()
            root.addHandler(handler)
            root.setLevel(logging.DEBUG)
            for existing in root.handlers:
                if existing is not handler:
                    existing.setLevel(level)

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        if args.command == "manifest":
            return self._dispatch_manifest_command(args)

        # Command module mapping
        command_map = {
            "setup": "portenv.cli.commands.setup",
            "status": "portenv.cli.commands.status",
            "clean": "portenv.cli.commands.clean",
            "run": "portenv.cli.commands.run",
            "shell": "portenv.cli.commands.shell",
            "list": "portenv.cli.commands.list",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)

        # Call run() function in module
        if not hasattr(module, "run"):
            logger.error(f"Command module {module_name} has no run() function")
            return 1

        return module.run(args)

    def _dispatch_manifest_command(self, args) -> int:
        """
        Dispatch manifest sub-commands.

        Args:
            args: Parsed arguments with manifest_command field

        Returns:
            Exit code from command handler
        """
        if not getattr(args, "manifest_command", None):
            logger.error("No manifest sub-command specified")
            self.parser.parse_args(["manifest", "--help"])
            return 1

        from portenv.cli.commands import manifest

        manifest_command_map = {
            "check": manifest.run_check,
            "update": manifest.run_update,
        }

        handler = manifest_command_map.get(args.manifest_command)
        if not handler:
            logger.error(f"Unknown manifest command: {args.manifest_command}")
            return 1

        return handler(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
