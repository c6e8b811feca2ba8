"""
CLI logger adapter - implements LoggerProtocol for command-line usage.

Provides a simple logger that outputs to stdout/stderr for CLI commands.
"""

from __future__ import annotations

import sys


class CLILogger:
    """
    Logger implementation for CLI (implements LoggerProtocol from protocols.py).

    Info goes to stdout in verbose mode; warnings and errors always go to stderr.
    """

    def __init__(self, verbose: bool = False) -> None:
        """
        Initialize CLI logger.

        Args:
            verbose: If True, show info messages. If False, only warnings/errors.
        """
        self.verbose = verbose

    async def info(self, message: str) -> None:
        """Log info message (only if verbose)."""
        if self.verbose:
            print(f'[INFO] {message}')

    async def warning(self, message: str) -> None:
        """Log warning message."""
        print(f'[WARNING] {message}', file=sys.stderr)

    async def error(self, message: str) -> None:
        """Log error message."""
        print(f'[ERROR] {message}', file=sys.stderr)
