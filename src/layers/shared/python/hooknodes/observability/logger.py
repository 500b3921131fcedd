"""Per-execution structured logger for workflow nodes.

Keeps a bounded in-memory buffer of log entries so a node run can report
what happened, and mirrors every entry to the process log through structlog.
Values under sensitive keys and webhook keys in URLs are masked before
anything is stored or emitted.

Usage:
    node_logger = create_logger("WeworkBot")
    node_logger.info("Sending message", {"webhook_url": url})

    client_logger = node_logger.create_child("ApiClient")
"""

import json
import os
import traceback
from collections import deque
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any

import structlog

from hooknodes.observability.redaction import (
    mask_sensitive_data,
    mask_sensitive_headers,
    mask_url,
)

logger = structlog.get_logger()


class LogLevel(IntEnum):
    """Log levels, ordered by severity."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    NONE = 4


def _default_level() -> LogLevel:
    name = os.environ.get("HOOKNODES_LOG_LEVEL", "INFO").upper()
    if name == "WARNING":
        name = "WARN"
    return LogLevel.__members__.get(name, LogLevel.INFO)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class LoggerConfig:
    """Configuration for a NodeLogger."""

    level: LogLevel = field(default_factory=_default_level)
    enable_console: bool = True
    enable_structured_logging: bool = True
    max_log_entries: int = 1000
    include_stack_trace: bool = False
    mask_sensitive_data: bool = True


@dataclass
class LogEntry:
    """A single buffered log entry."""

    timestamp: str
    level: str
    message: str
    context: str
    data: Any = None
    execution_id: str | None = None
    node_id: str | None = None
    workflow_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize, dropping unset fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}


_CONSOLE_METHODS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
}


class NodeLogger:
    """Buffered, redacting logger scoped to one node execution.

    Entries are stored in a FIFO buffer capped at ``max_log_entries``; the
    oldest entry is evicted first. Children get their own buffer.
    """

    def __init__(self, context: str = "WeworkBot", config: LoggerConfig | None = None):
        """Initialize the logger.

        Args:
            context: Label attached to every entry.
            config: Logger configuration.
        """
        self.context = context
        self.config = config or LoggerConfig()
        self._entries: deque[LogEntry] = deque(maxlen=max(self.config.max_log_entries, 1))
        self._execution_ids: tuple[str, str, str] | None = None
        self._console = logger.bind(context=context)

    def debug(self, message: str, data: Any = None) -> None:
        """Log a debug message."""
        self.log(LogLevel.DEBUG, message, data)

    def info(self, message: str, data: Any = None) -> None:
        """Log an info message."""
        self.log(LogLevel.INFO, message, data)

    def warn(self, message: str, data: Any = None) -> None:
        """Log a warning."""
        self.log(LogLevel.WARN, message, data)

    def error(self, message: str, data: Any = None) -> None:
        """Log an error."""
        self.log(LogLevel.ERROR, message, data)

    def log(self, level: LogLevel, message: str, data: Any = None) -> None:
        """Record an entry if ``level`` passes the configured minimum.

        Args:
            level: Entry level.
            message: Log message.
            data: Optional structured payload, masked before storage.
        """
        if level == LogLevel.NONE or level < self.config.level:
            return

        if data is not None and self.config.mask_sensitive_data:
            data = mask_sensitive_data(data)

        entry = LogEntry(
            timestamp=_utc_now_iso(),
            level=level.name,
            message=message,
            context=self.context,
            data=data,
        )
        if self._execution_ids:
            entry.execution_id, entry.node_id, entry.workflow_id = self._execution_ids

        if self.config.enable_structured_logging:
            self._entries.append(entry)

        if self.config.enable_console:
            emit = getattr(self._console, _CONSOLE_METHODS[level])
            if data is None:
                emit(message)
            else:
                emit(message, data=data)

    def log_execution_start(
        self,
        execution_id: str,
        node_id: str,
        workflow_id: str,
        input_data: Any = None,
    ) -> None:
        """Log the start of a node execution."""
        self.info("Node execution started", {
            "execution_id": execution_id,
            "node_id": node_id,
            "workflow_id": workflow_id,
            "input_data": input_data,
        })

    def log_execution_end(
        self,
        execution_id: str,
        success: bool,
        duration: float,
        output_data: Any = None,
        error: BaseException | None = None,
    ) -> None:
        """Log the end of a node execution.

        Args:
            execution_id: Execution identifier.
            success: Whether the execution succeeded.
            duration: Elapsed time in seconds.
            output_data: Output summary for successful runs.
            error: Exception for failed runs.
        """
        data: dict[str, Any] = {
            "execution_id": execution_id,
            "success": success,
            "duration_ms": round(duration * 1000),
        }

        if success:
            if output_data is not None:
                data["output_data"] = output_data
            self.info("Node execution succeeded", data)
        elif error is not None:
            data["error"] = self._describe_error(error)
            self.error("Node execution failed", data)

    def log_api_request(
        self,
        method: str,
        url: str,
        headers: dict[str, Any] | None = None,
        body: Any = None,
    ) -> None:
        """Log an outbound HTTP request with the URL key and auth headers masked."""
        self.debug("Sending API request", {
            "method": method,
            "url": mask_url(url),
            "headers": mask_sensitive_headers(headers or {}),
            "body_size": len(json.dumps(body, ensure_ascii=False)) if body is not None else 0,
        })

    def log_api_response(
        self,
        status: int,
        reason: str,
        headers: dict[str, Any] | None = None,
        body: Any = None,
        duration: float | None = None,
    ) -> None:
        """Log an inbound HTTP response."""
        data: dict[str, Any] = {
            "status": status,
            "reason": reason,
            "headers": mask_sensitive_headers(headers or {}),
            "body_size": len(json.dumps(body, ensure_ascii=False)) if body is not None else 0,
        }
        if duration is not None:
            data["duration_ms"] = round(duration * 1000)
        self.debug("Received API response", data)

    def log_retry(self, attempt: int, max_retries: int, delay: float, error: BaseException) -> None:
        """Log a retry decision."""
        self.warn("Retrying operation", {
            "attempt": attempt,
            "max_retries": max_retries,
            "delay_ms": round(delay * 1000),
            "error": {"name": type(error).__name__, "message": str(error)},
        })

    def log_performance(self, operation: str, duration: float, **metrics: Any) -> None:
        """Log a named performance measurement.

        Args:
            operation: Name of the measured operation.
            duration: Elapsed time in seconds.
            **metrics: Additional metrics to record.
        """
        self.info("Performance metric", {
            "operation": operation,
            "duration_ms": round(duration * 1000),
            **metrics,
        })

    def log_validation(self, message_type: str, is_valid: bool, errors: list[str] | None = None) -> None:
        """Log a message validation result."""
        if is_valid:
            self.debug("Message validation passed", {"message_type": message_type})
        else:
            self.warn("Message validation failed", {
                "message_type": message_type,
                "errors": list(errors or []),
            })

    def get_log_entries(self) -> list[LogEntry]:
        """Get a copy of the buffered entries, oldest first."""
        return list(self._entries)

    def get_log_entries_by_level(self, level: LogLevel) -> list[LogEntry]:
        """Get buffered entries at exactly ``level``."""
        return [entry for entry in self._entries if entry.level == level.name]

    def clear_log_entries(self) -> None:
        """Drop all buffered entries."""
        self._entries.clear()

    def get_log_stats(self) -> dict[str, Any]:
        """Get entry counts per level and the oldest/newest timestamps."""
        entries_by_level: dict[str, int] = {}
        for entry in self._entries:
            entries_by_level[entry.level] = entries_by_level.get(entry.level, 0) + 1

        return {
            "total_entries": len(self._entries),
            "entries_by_level": entries_by_level,
            "oldest_entry": self._entries[0].timestamp if self._entries else None,
            "newest_entry": self._entries[-1].timestamp if self._entries else None,
        }

    def set_log_level(self, level: LogLevel) -> None:
        """Change the minimum level."""
        self.config.level = level

    def set_execution_context(self, execution_id: str, node_id: str, workflow_id: str) -> None:
        """Stamp execution identifiers on existing and future entries.

        Existing entries that already carry an execution id keep it.
        """
        self._execution_ids = (execution_id, node_id, workflow_id)
        self._console = self._console.bind(
            execution_id=execution_id,
            node_id=node_id,
            workflow_id=workflow_id,
        )
        for entry in self._entries:
            if not entry.execution_id:
                entry.execution_id = execution_id
                entry.node_id = node_id
                entry.workflow_id = workflow_id

    def create_child(self, label: str) -> "NodeLogger":
        """Create a logger with context ``{parent}:{label}`` and a copy of this config.

        The child has its own buffer and does not inherit execution ids.
        """
        return NodeLogger(f"{self.context}:{label}", replace(self.config))

    def export_logs_as_json(self) -> str:
        """Export config, stats and entries as a JSON document."""
        config = asdict(self.config)
        config["level"] = self.config.level.name
        return json.dumps(
            {
                "config": config,
                "stats": self.get_log_stats(),
                "entries": [entry.to_dict() for entry in self._entries],
            },
            indent=2,
            ensure_ascii=False,
            default=str,
        )

    def export_logs_as_text(self) -> str:
        """Export entries as one line each: ``[ts] [LEVEL] [context] message {data}``."""
        lines = []
        for entry in self._entries:
            data = f" {json.dumps(entry.data, ensure_ascii=False, default=str)}" if entry.data is not None else ""
            lines.append(f"[{entry.timestamp}] [{entry.level}] [{entry.context}] {entry.message}{data}")
        return "\n".join(lines)

    def _describe_error(self, error: BaseException) -> dict[str, Any]:
        described: dict[str, Any] = {"name": type(error).__name__, "message": str(error)}
        if self.config.include_stack_trace and error.__traceback__ is not None:
            described["stack"] = "".join(traceback.format_exception(error))
        return described


def create_logger(context: str = "WeworkBot", config: LoggerConfig | None = None) -> NodeLogger:
    """Create a NodeLogger.

    Args:
        context: Label attached to every entry.
        config: Logger configuration.

    Returns:
        NodeLogger instance.
    """
    return NodeLogger(context, config)
