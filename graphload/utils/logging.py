"""
Loguru setup for the graph loader.

Every record carries a ``component`` (SchemaLoader, GraphLoader, the store
backend...). Records emitted through the standard ``logging`` module, such
as those of the SurrealDB SDK and its websocket client, are routed into the
same sinks.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{extra[component]:<18}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level:<8} | "
    "{extra[component]} | "
    "{name}:{function}:{line} | "
    "{message}"
)

# Chatty third-party loggers, capped at WARNING unless running at DEBUG
NOISY_LOGGERS = ("websockets", "surrealdb", "asyncio")

logger.remove()
logger.configure(extra={"component": "graphload"})

_sink_ids = []


class InterceptHandler(logging.Handler):
    """Forward standard-library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging-module frames so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(component=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(
    log_dir: Path,
    level: str = "INFO",
    log_format: Optional[str] = None,
    console: bool = True,
    file: bool = True,
) -> Path:
    """
    Install the console and file sinks, replacing any from a previous call.

    Args:
        log_dir: Directory for ``loader_<timestamp>.log`` files.
        level: Minimum level (DEBUG, INFO, WARNING, ERROR).
        log_format: Console format; defaults to CONSOLE_FORMAT.
        console: Log to stderr.
        file: Log to a rotating file.

    Returns:
        Path of this run's log file (only created when ``file`` is true).
    """
    for sink_id in _sink_ids:
        logger.remove(sink_id)
    _sink_ids.clear()

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"loader_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"

    if console:
        _sink_ids.append(
            logger.add(sys.stderr, format=log_format or CONSOLE_FORMAT, level=level, colorize=True)
        )
    if file:
        _sink_ids.append(
            logger.add(
                log_file,
                format=FILE_FORMAT,
                level=level,
                rotation="10 MB",
                retention="30 days",
                compression="gz",
            )
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    third_party_level = logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    get_logger("logging").debug(f"Logging initialized at {level}. Log file: {log_file}")
    return log_file


def get_logger(name: str = "graphload"):
    """Loguru logger bound to a component name."""
    return logger.bind(component=name)
