"""
Common Components

Logging and exception types shared across the adaptive practice engine.
"""

from adaptive_practice.common.logger import (
    app_logger,
    configure_logger,
    get_app_logger,
    LoggerAdapter,
    ContextFormatter,
    JsonFormatter,
    log_execution_time
)
from adaptive_practice.common.exceptions import (
    BaseError,
    ValidationError,
    ConfigurationError,
    NotFoundError,
    ConcurrentUpdateError
)

__all__ = [
    'app_logger',
    'configure_logger',
    'get_app_logger',
    'LoggerAdapter',
    'ContextFormatter',
    'JsonFormatter',
    'log_execution_time',
    'BaseError',
    'ValidationError',
    'ConfigurationError',
    'NotFoundError',
    'ConcurrentUpdateError'
]
