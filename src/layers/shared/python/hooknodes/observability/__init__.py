"""Structured logging and redaction for node executions."""

from hooknodes.observability.logger import (
    LogEntry,
    LoggerConfig,
    LogLevel,
    NodeLogger,
    create_logger,
)
from hooknodes.observability.redaction import (
    mask_sensitive_data,
    mask_sensitive_headers,
    mask_url,
    mask_value,
)

__all__ = [
    # Logger
    "LogEntry",
    "LoggerConfig",
    "LogLevel",
    "NodeLogger",
    "create_logger",
    # Redaction
    "mask_sensitive_data",
    "mask_sensitive_headers",
    "mask_url",
    "mask_value",
]
