"""
FeedPress Logging Configuration
===============================

Log records from the pipeline carry the component that emitted them and, when
known, the feed URL and article id being processed. Files always receive JSON
lines; the console gets colored single-line output unless structured logging
is on.
"""

import json
import logging
import logging.handlers
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "feedpress"
DEFAULT_ROTATE_BYTES = 5 * 1024 * 1024

# Everything on a LogRecord that did not come in through ``extra``
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        context = {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}
        if context:
            payload["extra"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Single-line, level-colored output tagged with the entry being processed."""

    LEVEL_COLORS = {
        "DEBUG": "\033[2m",
        "INFO": "\033[34m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (
            f"{clock} {color}{record.levelname:<8}{self.RESET} "
            f"{record.name} {entry_context(record)}{record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def entry_context(record: logging.LogRecord) -> str:
    """``[component article_id] `` prefix built from adapter context."""
    tags = [
        str(value)
        for value in (getattr(record, "component", None), getattr(record, "article_id", None))
        if value
    ]
    return f"[{' '.join(tags)}] " if tags else ""


def _console_handler(structured: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if structured else ConsoleFormatter())
    return handler


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    rotate_bytes: int = DEFAULT_ROTATE_BYTES,
    backup_count: int = 3,
) -> logging.Logger:
    """Attach console and/or rotating file handlers to ``name``.

    Calling it again replaces the previous handlers, so CLI commands can
    reconfigure logging after settings are loaded.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        logger.addHandler(_console_handler(structured))

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=rotate_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """Adapter whose context is merged beneath per-call ``extra`` values."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    feed_url: Optional[str] = None,
    article_id: Optional[str] = None,
) -> ComponentLoggerAdapter:
    """Return a ``feedpress.<component>`` logger tagged with entry context."""
    context: Dict[str, Any] = {"component": component_name}
    if feed_url:
        context["feed_url"] = feed_url
    if article_id:
        context["article_id"] = article_id

    return ComponentLoggerAdapter(logging.getLogger(f"{ROOT_LOGGER_NAME}.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 3,
) -> logging.Logger:
    """Configure the ``feedpress`` logger tree from settings values."""
    logger = setup_logger(
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        rotate_bytes=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )

    # bs4 warns about markup that resembles a URL or a filename
    logging.getLogger("bs4").setLevel(logging.ERROR)
    return logger


class PerformanceLogger:
    """Time a block of work and log how it went.

    Usage::

        with PerformanceLogger(logger, "entry batch processing", feed_url=url) as perf:
            ...
        print(perf.duration)
    """

    def __init__(self, logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.perf_counter() - self._started
        extra = {**self.context, "duration_seconds": self.duration, "success": exc_type is None}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s", extra=extra)
        else:
            self.logger.error(f"Failed {self.operation} after {self.duration:.3f}s", extra=extra)
