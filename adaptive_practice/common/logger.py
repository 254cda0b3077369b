"""
Engine Logging

Every module logs through a child of ``app_logger`` (``adaptive_practice``),
e.g. ``app_logger.getChild("engine.tracker")``. Messages about one learner's
practice flow go through a ``LoggerAdapter`` bound to the learner, topic and
session ids; both formatters below render that context, the JSON one as
top-level keys so aggregated logs can be filtered per learner.
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
from typing import Any, Callable, Dict, IO, List, Optional, TypeVar, Union

APP_LOGGER_NAME = "adaptive_practice"

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attribute carrying adapter context on a LogRecord
CONTEXT_ATTR = "context"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'APP_LOGGER_NAME',
    'ContextFormatter',
    'JsonFormatter',
    'LoggerAdapter',
    'configure_logger',
    'get_app_logger',
    'app_logger',
    'log_execution_time'
]


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    context = getattr(record, CONTEXT_ATTR, None)
    return context if isinstance(context, dict) else {}


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends adapter context as ``key=value`` pairs."""

    def __init__(self, fmt: str = TEXT_FORMAT, datefmt: str = DATE_FORMAT):
        super().__init__(fmt, datefmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line

        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        head, newline, rest = line.partition("\n")
        return f"{head} [{pairs}]{newline}{rest}"


class JsonFormatter(logging.Formatter):
    """
    Formatter that renders each record as one JSON object per line.

    Adapter context is merged into the top level. Exceptions are rendered
    under ``error`` with their type, message and traceback. Values that are
    not JSON-serializable (datetimes, enums) fall back to ``str``.
    """

    def __init__(self, indent: Optional[int] = None):
        super().__init__()
        self.indent = indent

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}"
        }
        payload.update(_record_context(record))

        if record.exc_info and record.exc_info[0] is not None:
            payload["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(payload, indent=self.indent, default=str)


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logger(
    level: Union[str, int] = logging.INFO,
    use_json: bool = False,
    log_file: Optional[str] = None,
    name: str = APP_LOGGER_NAME,
    stream: Optional[IO[str]] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    (Re)configure a logger, replacing any handlers it already has.

    Args:
        level: Level name or number
        use_json: Emit one JSON object per record instead of text lines
        log_file: Also write to this file, creating its directory if needed
        name: Logger to configure (the application logger by default)
        stream: Console stream (stdout by default)
        console_output: Whether to attach the console handler at all

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    formatter = JsonFormatter() if use_json else ContextFormatter()
    handlers: List[logging.Handler] = []

    if console_output:
        handlers.append(logging.StreamHandler(stream or sys.stdout))

    file_error = None
    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setFormatter(formatter)
    logger.handlers = handlers

    if file_error is not None:
        logger.warning(f"Logging to console only; cannot open {log_file}: {file_error}")
    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that attaches a context dict to every record it emits.

    Context given per call through ``extra={"context": {...}}`` is merged
    over the adapter's own.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, dict(context or {}))

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        context = dict(self.extra)
        context.update(extra.get(CONTEXT_ATTR) or {})
        extra[CONTEXT_ATTR] = context
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **context) -> 'LoggerAdapter':
        """New adapter with this adapter's context plus ``context``."""
        merged = dict(self.extra)
        merged.update(context)
        return LoggerAdapter(self.logger, merged)


def get_app_logger() -> logging.Logger:
    """
    Return the application logger, configuring it on first use.

    Level, JSON output and an optional log file come from the ``LOG_LEVEL``,
    ``LOG_JSON`` and ``LOG_FILE`` environment variables. Once the settings
    are loaded, ``adaptive_practice.config.configure_logging`` applies the
    ``logging`` section instead.
    """
    logger = logging.getLogger(APP_LOGGER_NAME)
    if logger.handlers:
        return logger

    return configure_logger(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        use_json=os.environ.get("LOG_JSON", "false").lower() in ("1", "true", "yes"),
        log_file=os.environ.get("LOG_FILE")
    )


app_logger = get_app_logger()


def log_execution_time(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG
) -> Callable[[F], F]:
    """
    Decorator that logs how long each call took.

    Successful calls are logged at ``level``; a call that raises is logged
    at ERROR and the exception propagates unchanged.
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            target = logger or app_logger
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                target.error(f"{func.__qualname__} failed after {elapsed_ms:.1f} ms: {e}")
                raise
            elapsed_ms = (time.perf_counter() - started) * 1000
            target.log(level, f"{func.__qualname__} took {elapsed_ms:.1f} ms")
            return result

        return wrapper
    return decorator
