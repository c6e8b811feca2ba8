"""
Shared protocols for campaign-saves services.

Services report progress through an async LoggerProtocol so the same save
pipeline can talk to a terminal, the standard logging tree, or nothing.
"""

from __future__ import annotations

import logging
from typing import Protocol


class LoggerProtocol(Protocol):
    """
    Protocol for async logger - enables services to work with any logging implementation.

    Implementations:
    - CLILogger (cli/logger.py): stdout/stderr with optional verbose mode
    - StdlibLogger (below): forwards to a logging.Logger; service default
    - NullLogger (below): discards everything
    """

    async def info(self, message: str) -> None: ...
    async def warning(self, message: str) -> None: ...
    async def error(self, message: str) -> None: ...


class StdlibLogger:
    """LoggerProtocol adapter over a standard library logger."""

    def __init__(self, name: str) -> None:
        self.logger = logging.getLogger(name)

    async def info(self, message: str) -> None:
        self.logger.info(message)

    async def warning(self, message: str) -> None:
        self.logger.warning(message)

    async def error(self, message: str) -> None:
        self.logger.error(message)


class NullLogger:
    """No-op logger for callers that want no output at all."""

    async def info(self, message: str) -> None:
        pass

    async def warning(self, message: str) -> None:
        pass

    async def error(self, message: str) -> None:
        pass
