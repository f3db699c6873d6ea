"""
cmkboot command-line interface.

This module implements the command-line interface for cmkboot using argparse.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cmkboot.bootstrap.workflow import BootstrapWorkflow
from cmkboot.cli.utils import (
    ConsoleProgress,
    always_yes,
    print_error,
    print_warning,
    prompt_yes_no,
)
from cmkboot.config.parser import (
    CONFIG_FILE_NAME,
    build_config,
    build_workspace,
    load_project_config,
)
from cmkboot.core.exceptions import CmkBootError

# Get version from package
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("cmkboot")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """cmkboot command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="cmkboot",
            description="Provision CMake/MinGW, then configure, build and run a CMake project",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        parser.add_argument(
            "--version", action="version", version=f"cmkboot {__version__}"
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

        # Build selections; None means "use cmkboot.yaml or the built-in default"
        parser.add_argument(
            "--architecture",
            "-a",
            choices=["x64", "x86"],
            metavar="ARCH",
            help="Target architecture x64/x86 (default: x64)",
        )
        parser.add_argument(
            "--build-type",
            "-b",
            choices=["debug", "release", "Debug", "Release"],
            metavar="TYPE",
            help="Build type debug/release (default: debug)",
        )
        parser.add_argument(
            "--library-type",
            "-l",
            choices=["static", "shared"],
            metavar="KIND",
            help="Library type static/shared (default: static)",
        )
        parser.add_argument(
            "--program-name",
            "-p",
            metavar="NAME",
            help="Program to run after the build (default: project directory name)",
        )

        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=None,
            help="Project root directory (default: current directory)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help=f"Path to configuration file (default: ./{CONFIG_FILE_NAME})",
        )
        parser.add_argument(
            "--yes",
            "-y",
            action="store_true",
            help="Download missing tools without asking",
        )
        parser.add_argument(
            "--no-run",
            action="store_true",
            help="Do not run the program after building",
        )
        parser.add_argument(
            "--skip-provision",
            action="store_true",
            help="Do not check for or download build tools",
        )

        return parser

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
            Exit code: 0 on success, the program's status if it ran,
            130 on interrupt, 1 on any other error
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        try:
            return self._bootstrap(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except CmkBootError as e:
            print_error(str(e))
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _bootstrap(self, args) -> int:
        project_root = (args.project_root or Path.cwd()).resolve()
        config_file = args.config or project_root / CONFIG_FILE_NAME

        project_config = load_project_config(
            config_file, required=args.config is not None
        )
        config = build_config(
            project_root,
            project_config,
            architecture=args.architecture,
            build_type=args.build_type,
            library_type=args.library_type,
            program_name=args.program_name,
        )
        workspace = build_workspace(project_root, project_config)

        print(f"Current project: {config.program_name}")
        logger.debug(f"Build configuration: {config}")

        if not (project_root / "CMakeLists.txt").exists():
            print_warning(f"No CMakeLists.txt in {project_root}")

        progress = ConsoleProgress()
        workflow = BootstrapWorkflow(
            config,
            workspace,
            confirm=always_yes if args.yes else prompt_yes_no,
            progress_callback=None if args.quiet else progress,
            skip_provision=args.skip_provision,
            run_program=not args.no_run,
        )
        try:
            return workflow.run()
        finally:
            progress.finish()

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


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
