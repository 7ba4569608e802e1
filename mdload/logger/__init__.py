"""Logger module for mdload

Usage:
    from mdload.logger import Logger, session_logger

    session_logger.info("load.start", event="load.start", concurrency=8)

    # Or implement your own
    class MyCustomLogger(Logger):
        def info(self, message: str, **kwargs):
            # Your custom implementation
            pass
"""

import logging

from .base import Logger
from .console_logger import ConsoleLogger

# Shared logger instance for modules that just need basic console logging
session_logger: Logger = ConsoleLogger(level=logging.DEBUG)

__all__ = [
    "Logger",
    "ConsoleLogger",
    "session_logger",
]
