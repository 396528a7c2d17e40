"""The logging configuration module."""

import json
import logging
import sys
from datetime import datetime
from typing import Optional

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "custom_dimensions",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Every record becomes one JSON object; custom dimensions attached through
    ContextualLogger.with_context end up under "custom_dimensions".
    """

    def _module_path(self, record: logging.LogRecord) -> str:
        """Dotted module path starting at the totaldash package, if possible."""
        parts = record.pathname.replace("\\", "/").split("/")
        if "totaldash" not in parts:
            return record.module

        start = len(parts) - 1 - parts[::-1].index("totaldash")
        module_parts = parts[start:]
        if module_parts[-1].endswith(".py"):
            module_parts[-1] = module_parts[-1][:-3]
        return ".".join(module_parts)

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
        ----
            record (logging.LogRecord): The log record to format

        Returns:
        -------
            str: JSON-formatted log message

        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": self._module_path(record),
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "custom_dimensions", None):
            log_entry["custom_dimensions"] = record.custom_dimensions

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class _ContextualLogger(logging.LoggerAdapter):
    """A LoggerAdapter that carries custom dimensions."""

    def __init__(
        self,
        logger: logging.Logger,
        dimensions: Optional[dict] = None,
    ) -> None:
        """Initialize the contextual logger.

        Args:
        ----
            logger (logging.Logger): Base logger instance
            dimensions (Optional[dict]): Custom dimensions for structured logging

        """
        super().__init__(logger, {})
        self.dimensions = dimensions or {}

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Merge dimensions into the record's extra."""
        extra = kwargs.setdefault("extra", {})
        if self.dimensions:
            extra["custom_dimensions"] = {
                **extra.get("custom_dimensions", {}),
                **self.dimensions,
            }

        return msg, kwargs

    def with_context(self, **dimensions: str | int | float | bool) -> "_ContextualLogger":
        """Create a new logger with additional context dimensions.

        Args:
        ----
            dimensions: Keyword arguments to add to dimensions

        Returns:
        -------
            _ContextualLogger: New logger instance with updated dimensions

        """
        return _ContextualLogger(self.logger, {**self.dimensions, **dimensions})


ContextualLogger = _ContextualLogger


class LoggerConfigurator:
    """Configures loggers with support for dimensions.

    The base context is attached where a unit of work starts: the API context for
    HTTP requests, the webhook processor for provider events and the job services
    for scheduled runs. Dimensions such as tenant_id, event_type or request_id can
    then be chained on with ``with_context``.

    Uses settings from totaldash.core.config:
    - text format when LOCAL_DEVELOPMENT=True, JSON format otherwise
    - LOG_LEVEL for the level

    Example:
    -------
    ```python
    logger = LoggerConfigurator.configure_logger(__name__)
    logger.with_context(tenant_id="...", operation="start_trial").info("Trial created")
    ```

    """

    @staticmethod
    def configure_logger(
        name: str,
        dimensions: Optional[dict] = None,
    ) -> _ContextualLogger:
        """Configure and return a logger with the given name and initial context.

        Args:
        ----
            name (str): Logger name (typically __name__)
            dimensions (Optional[dict]): Initial custom dimensions

        Returns:
        -------
            _ContextualLogger: Configured logger with context support

        """
        logger = logging.getLogger(name)

        # Import settings here to avoid circular imports
        from totaldash.core.config import settings

        logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

        if getattr(logger, "_totaldash_configured", False):
            return _ContextualLogger(logger, dimensions)

        logger.propagate = False
        logger.handlers.clear()

        stream_handler = logging.StreamHandler(sys.stdout)
        if settings.LOCAL_DEVELOPMENT:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        else:
            formatter = JSONFormatter()

        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
        logger._totaldash_configured = True

        return _ContextualLogger(logger, dimensions)


# Default logger instance
logger = LoggerConfigurator.configure_logger(__name__)
