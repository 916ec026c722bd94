"""
Dinghy CLI argument parser.

This module implements the command-line interface for Dinghy using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dinghy import __version__
from dinghy.core.exceptions import DinghyError

logger = logging.getLogger(__name__)

BUILD_COMMANDS = ("build", "run", "test", "bench")


class CLI:
    """Dinghy command-line interface."""

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
            prog="dinghy",
            description="Dinghy - build on the host, run and test on devices",
            epilog='Use "dinghy COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"Dinghy {__version__}"
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
            help="Configuration file, loaded before the discovered .dinghy.yml files",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=None,
            help="Directory to look for the project from (default: current directory)",
        )
        parser.add_argument(
            "--device",
            "-d",
            metavar="FILTER",
            help="Device to use (substring of its id or name)",
        )
        parser.add_argument(
            "--platform",
            "-p",
            metavar="NAME",
            help="Platform to build for",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        subparsers.add_parser(
            "devices",
            help="List available devices",
            description="List discovered devices and the platforms able to target them",
        )
        subparsers.add_parser(
            "platforms",
            help="List available platforms",
            description="List configured and discovered platforms",
        )
        self._add_build_commands(subparsers)

        return parser

    def _add_build_commands(self, subparsers):
        """Add 'build', 'run', 'test' and 'bench' subcommands."""
        descriptions = {
            "build": "Build the project for the selected platform",
            "run": "Build, bundle, install and run executables on the selected device",
            "test": "Build and run tests on the selected device",
            "bench": "Build and run benchmarks on the selected device",
        }
        for command in BUILD_COMMANDS:
            parser = subparsers.add_parser(
                command,
                help=descriptions[command],
                description=descriptions[command],
            )
            parser.add_argument(
                "--release", action="store_true", help="Build with optimizations"
            )
            parser.add_argument(
                "--strip", action="store_true", help="Strip binaries before bundling"
            )
            parser.add_argument(
                "--overlay",
                action="append",
                default=[],
                metavar="NAME",
                help="Library always passed to the linker (can be used multiple times)",
            )
            parser.add_argument(
                "--env",
                action="append",
                default=[],
                metavar="KEY=VALUE",
                help="Environment variable for the program (can be used multiple times)",
            )
            parser.add_argument(
                "--cleanup",
                action="store_true",
                help="Remove the bundle from the device after running",
            )
            parser.add_argument(
                "extra_args",
                nargs="*",
                metavar="ARGS",
                help="After '--': build tool arguments for 'build', program arguments otherwise",
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

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except DinghyError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
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

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "devices": "dinghy.cli.commands.devices",
            "platforms": "dinghy.cli.commands.platforms",
        }
        for command in BUILD_COMMANDS:
            command_map[command] = "dinghy.cli.commands.build"

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
