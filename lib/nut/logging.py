"""Structured logging for the NUT client."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "lib.nut"

# Default logger
_logger: logging.Logger | None = None


def setup_logging(
    level: int = logging.INFO,
    json_output: bool = False,
    log_file: str | None = None,
    stream: Any = None,
) -> None:
    """Set up logging configuration.

    Parameters
    ----------
    level : int, optional
        Logging level, by default logging.INFO
    json_output : bool, optional
        Enable JSON output format, by default False
    log_file : str | None, optional
        Log file path, by default None (console only)
    stream : Any, optional
        Console stream, by default None (stderr, so stdout carries results)
    """
    global _logger

    _logger = logging.getLogger(LOGGER_NAME)
    _logger.setLevel(level)
    _logger.handlers.clear()
    _logger.propagate = False

    formatter: logging.Formatter = JsonFormatter() if json_output else TextFormatter()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    _logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)


def get_logger() -> logging.Logger:
    """Get the client logger.

    Returns
    -------
    logging.Logger
        Logger instance
    """
    global _logger

    if _logger is None:
        setup_logging(level=logging.WARNING)

    return _logger


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters
        ----------
        record : logging.LogRecord
            Log record

        Returns
        -------
        str
            JSON-formatted log entry
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in ("host", "ups", "command", "direction"):
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Plain text formatter with a ``[host/ups]`` prefix."""

    def __init__(self) -> None:
        """Initialize text formatter."""
        super().__init__(
            fmt="[%(asctime)s] [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text.

        Parameters
        ----------
        record : logging.LogRecord
            Log record

        Returns
        -------
        str
            Text-formatted log entry
        """
        text = super().format(record)

        target = getattr(record, "host", None)
        if target and getattr(record, "ups", None):
            target = f"{target}/{record.ups}"
        if not target:
            return text

        head, sep, rest = text.partition("] ")
        head2, sep2, message = rest.partition("] ")
        return f"{head}{sep}{head2}{sep2}[{target}] {message}"


def _log(level: int, message: str, host: str | None, **kwargs: Any) -> None:
    logger = get_logger()
    extra = {key: value for key, value in kwargs.items() if value is not None}
    if host:
        extra["host"] = host
    logger.log(level, message, extra=extra)


def log_debug(message: str, host: str | None = None, **kwargs: Any) -> None:
    """Log debug message.

    Parameters
    ----------
    message : str
        Log message
    host : str | None, optional
        NUT server host, by default None
    **kwargs : Any
        Additional log fields (``ups``, ``command``, ``direction``)
    """
    _log(logging.DEBUG, message, host, **kwargs)


def log_info(message: str, host: str | None = None, **kwargs: Any) -> None:
    """Log info message.

    Parameters
    ----------
    message : str
        Log message
    host : str | None, optional
        NUT server host, by default None
    **kwargs : Any
        Additional log fields
    """
    _log(logging.INFO, message, host, **kwargs)


def log_warn(message: str, host: str | None = None, **kwargs: Any) -> None:
    """Log warning message."""
    _log(logging.WARNING, message, host, **kwargs)


def log_success(message: str, host: str | None = None, **kwargs: Any) -> None:
    """Log success message at info level with a ``SUCCESS:`` prefix."""
    _log(logging.INFO, f"SUCCESS: {message}", host, **kwargs)
