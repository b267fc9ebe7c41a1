"""Async logging configuration using QueueHandler

Offloads logging to a background thread so socket pumps and tool calls are
never blocked on stderr/file I/O. Protocol modules use get_logger(__name__),
the service layer uses logging.getLogger(__name__); the entry points call
setup_async_logging() once.
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from queue import Queue

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y/%m/%d %H:%M:%S"

# Third-party loggers kept at INFO even when we run at DEBUG
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "websockets",
    "uvicorn.access",
    "mcp.server.sse",
)


class MillisecondFormatter(logging.Formatter):
    """Formatter with milliseconds appended as :XXXX"""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        ct = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            s = ct.strftime(datefmt)
            ms = int((record.created % 1) * 10000)  # 4 digits of precision
            return f"{s}:{ms:04d}"
        return super().formatTime(record, datefmt)


def level_from_env(default: int = logging.INFO) -> int:
    """Resolve LOG_LEVEL (name or number) to a logging level"""
    value = os.environ.get("LOG_LEVEL")
    if not value:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        msg = f"Invalid LOG_LEVEL value: {value}"
        raise ValueError(msg)
    return level


class AsyncLoggingManager:
    """Manages async logging state without using global variables"""

    def __init__(self) -> None:
        self.log_queue: Queue[logging.LogRecord] = Queue(-1)
        self.queue_handler: logging.handlers.QueueHandler | None = None
        self.listener: logging.handlers.QueueListener | None = None

    def setup(self, log_file: Path | None = None, level: int = logging.INFO) -> None:
        """Set up async logging with QueueHandler and QueueListener

        Call once at application startup.

        Args:
            log_file: Optional path to log file. If None, only logs to stderr.
            level: Logging level (default: INFO)
        """
        if self.listener is not None:
            self.shutdown()

        formatter = MillisecondFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
        handlers: list[logging.Handler] = []

        # stderr: stdout belongs to the stdio MCP transport
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

        self.listener = logging.handlers.QueueListener(
            self.log_queue, *handlers, respect_handler_level=True
        )
        self.listener.start()

        self.queue_handler = logging.handlers.QueueHandler(self.log_queue)

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers.clear()
        root.addHandler(self.queue_handler)

        if level < logging.INFO:
            for name in NOISY_LOGGERS:
                logging.getLogger(name).setLevel(logging.INFO)

    def shutdown(self) -> None:
        """Flush queued records and stop the background listener"""
        if self.listener is not None:
            self.listener.stop()
            self.listener = None


_manager = AsyncLoggingManager()


def setup_async_logging(log_file: Path | None = None, level: int | None = None) -> None:
    """Set up async logging; level defaults to LOG_LEVEL from the environment"""
    _manager.setup(log_file, level_from_env() if level is None else level)


def shutdown_async_logging() -> None:
    _manager.shutdown()


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for async logging

    Use this instead of logging.getLogger() to ensure async behavior.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
