"""
Structured logging utilities using structlog.

Provides JSON-formatted logging for production and
human-readable logging for development.
"""

import logging
import sys
import structlog
from pathlib import Path
from datetime import datetime
from typing import Optional


def setup_logger(
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
    log_format: str = "json",
    service_name: str = "binance-sdk"
) -> structlog.BoundLogger:
    """
    Configure and return a structured logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (None logs to stdout)
        log_format: "json" for production, "console" for development
        service_name: Name of the service for log context

    Returns:
        Configured structlog logger instance
    """
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
        timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    else:  # console format for development
        renderer = structlog.dev.ConsoleRenderer(colors=log_dir is None)
        timestamper = structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=True)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer
    ]

    if log_dir:
        # Create log directory if it doesn't exist
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Generate log filename with current date
        log_file = log_path / f"sdk_{datetime.utcnow().strftime('%Y-%m-%d')}.log"
        logger_factory = structlog.PrintLoggerFactory(file=open(log_file, "a"))
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stdout)

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )

    # Get logger with service context
    return structlog.get_logger(service=service_name)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Get a logger instance with optional name context.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        Logger instance
    """
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


# Event type constants for structured logging
class EventType:
    """Standard event types for SDK logging."""

    # System events
    STARTUP = "STARTUP"
    SHUTDOWN = "SHUTDOWN"
    ERROR = "ERROR"

    # Listen key events
    LISTEN_KEY_OPENED = "LISTEN_KEY_OPENED"
    LISTEN_KEY_REFRESHED = "LISTEN_KEY_REFRESHED"
    LISTEN_KEY_ROTATED = "LISTEN_KEY_ROTATED"
    LISTEN_KEY_CLOSED = "LISTEN_KEY_CLOSED"

    # Connection events
    WEBSOCKET_CONNECTED = "WEBSOCKET_CONNECTED"
    WEBSOCKET_DISCONNECTED = "WEBSOCKET_DISCONNECTED"
    WEBSOCKET_DUPLICATE = "WEBSOCKET_DUPLICATE"
    WEBSOCKET_ABORTED = "WEBSOCKET_ABORTED"
    API_ERROR = "API_ERROR"


def log_stream_event(
    logger: structlog.BoundLogger,
    event_type: str,
    url: str,
    **kwargs
) -> None:
    """
    Log a stream-related event with standard fields.

    Args:
        logger: Logger instance
        event_type: Event type from EventType class
        url: Stream URL
        **kwargs: Additional event-specific fields
    """
    logger.info(
        event_type,
        event_type=event_type,
        url=url,
        timestamp=datetime.utcnow().isoformat(),
        **kwargs
    )


def log_system_event(
    logger: structlog.BoundLogger,
    event_type: str,
    message: str,
    **kwargs
) -> None:
    """
    Log a system event.

    Args:
        logger: Logger instance
        event_type: Event type from EventType class
        message: Event message
        **kwargs: Additional context
    """
    logger.info(
        message,
        event_type=event_type,
        timestamp=datetime.utcnow().isoformat(),
        **kwargs
    )
