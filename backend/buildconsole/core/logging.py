"""Centralized logging setup using loguru."""
import logging
import sys
from pathlib import Path

from loguru import logger

from buildconsole.core.config import settings

# Libraries that log through the standard logging module
_STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "watchdog")


class InterceptHandler(logging.Handler):
    """Forward standard-library log records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure loguru sinks and route uvicorn/watchdog logging through them."""
    level = level or settings.LOG_LEVEL
    log_file = log_file or settings.LOG_FILE

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> | "
            "<level>{message}</level>"
        ),
        colorize=True,
    )
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        level=level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        enqueue=True,  # journal and watcher threads log concurrently
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _STDLIB_LOGGERS:
        std = logging.getLogger(name)
        std.handlers = [InterceptHandler()]
        std.propagate = False
