"""
Logging configuration for harvester.

Provides:
- Rich console output on stderr (stdout stays free for CLI results)
- Optional plain-text log file
- StructuredLogger, which prefixes messages with node context (depth, query)
"""

import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# Provider SDKs and HTTP clients log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic")

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _console_handler(level: int, rich_tracebacks: bool, show_time: bool, show_path: bool) -> RichHandler:
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=rich_tracebacks,
        show_time=show_time,
        show_path=show_path,
        show_level=True,
        # Queries and answers may contain [brackets]
        markup=False,
        tracebacks_show_locals=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))
    return handler


def _file_handler(log_file: Path, level: int) -> logging.FileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    rich_tracebacks: bool = True,
    show_time: bool = True,
    show_path: bool = False,
) -> logging.Logger:
    """
    Configure the root logger for a harvester run.

    Replaces any handlers already installed on the root logger.

    Args:
        level: Log level name (case-insensitive); unknown names fall back to INFO
        log_file: Also write plain-text logs here
        rich_tracebacks: Render exceptions with rich
        show_time: Show timestamps in console output
        show_path: Show source file paths in console output

    Returns:
        Root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = [_console_handler(numeric_level, rich_tracebacks, show_time, show_path)]
    if log_file:
        root_logger.addHandler(_file_handler(log_file, numeric_level))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class StructuredLogger:
    """
    Logger that tags every message with the context of one query node.

    Usage:
        log = StructuredLogger(__name__, depth=1, query="'acme suppliers'")
        log.info("3 entities")
        # Output: [depth=1 query='acme suppliers'] 3 entities
    """

    def __init__(self, name: str, **context: Any):
        self.logger = logging.getLogger(name)
        self.context = context
        self._prefix = " ".join(f"{k}={v}" for k, v in context.items())

    def _format_message(self, msg: str) -> str:
        return f"[{self._prefix}] {msg}" if self._prefix else msg

    def debug(self, msg: str, **kwargs: Any) -> None:
        self.logger.debug(self._format_message(msg), **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self.logger.info(self._format_message(msg), **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self.logger.warning(self._format_message(msg), **kwargs)
