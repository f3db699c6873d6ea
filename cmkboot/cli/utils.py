"""
Shared utilities for the command-line interface.

Provides the interactive download prompt, console progress rendering and
consistent error output.
"""

import logging
import sys
from typing import Callable, Optional, TextIO

from cmkboot.core.download import DownloadProgress, format_progress
from cmkboot.core.exceptions import InputError

logger = logging.getLogger(__name__)


# ============================================================================
# Interactive Prompts
# ============================================================================


def prompt_yes_no(
    question: str,
    input_fn: Callable[[str], str] = input,
) -> bool:
    """
    Ask a yes/no question on the terminal.

    Args:
        question: Question text, without the answer hint
        input_fn: Line reader (defaults to builtin input)

    Returns:
        True for 'y'/'yes', False for 'n'/'no' or end of input

    Raises:
        InputError: For any other answer
    """
    try:
        response = input_fn(f"{question} (y/n): ").strip().lower()
    except EOFError:
        print()
        logger.warning("No answer on standard input, treating as 'no'")
        return False

    if response in ("y", "yes"):
        return True
    if response in ("n", "no"):
        return False
    raise InputError(f"Invalid answer '{response}', please enter 'y' or 'n'")


def always_yes(question: str) -> bool:
    """Decision function used with --yes."""
    logger.info(f"{question} yes (--yes)")
    return True


# ============================================================================
# Output Formatting
# ============================================================================


class ConsoleProgress:
    """Render download progress on a single console line."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stderr
        self._active = False

    def __call__(self, progress: DownloadProgress) -> None:
        self.stream.write(f"\r  {format_progress(progress)}")
        self.stream.flush()
        self._active = True
        if progress.is_determinate and progress.bytes_downloaded >= progress.total_bytes:
            self.finish()

    def finish(self) -> None:
        if self._active:
            self.stream.write("\n")
            self.stream.flush()
            self._active = False


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)
