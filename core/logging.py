# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across controller, API and clients
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured logging for the sync primitives controller.

Features:
- Contextual fields (kind, namespace, name, holder, worker_id)
- JSON output for log aggregation
- Named checkpoints for phase transitions

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("controller.loop")

    with log_context(kind="Mutex", namespace="default", name="db-lock"):
        logger.info("Reconciling")
"""

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

_CONTEXT_FIELDS = ("kind", "namespace", "name", "holder", "worker_id", "operation")


@dataclass
class LogContext:
    """
    Context for structured logging.

    Thread-local storage for contextual fields.
    """
    kind: Optional[str] = None
    namespace: Optional[str] = None
    name: Optional[str] = None
    holder: Optional[str] = None
    worker_id: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result

    @property
    def resource(self) -> Optional[str]:
        """Kind/namespace/name when all three are known."""
        if self.kind and self.namespace and self.name:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return None


# Thread-local context storage. Each asyncio worker sets its context around
# a single synchronous section, so the stack never interleaves across awaits
# within one key.
_context_stack = threading.local()


def _get_context_stack() -> list:
    """Get thread-local context stack."""
    if not hasattr(_context_stack, "stack"):
        _context_stack.stack = []
    return _context_stack.stack


def get_current_context() -> LogContext:
    """Get current logging context."""
    stack = _get_context_stack()
    if stack:
        return stack[-1]
    return LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Args:
        **kwargs: Context fields to add

    Example:
        with log_context(kind="Lease", name="leader"):
            logger.info("Granting lease")
    """
    parent = get_current_context()
    values = {f: kwargs.get(f, getattr(parent, f)) for f in _CONTEXT_FIELDS}
    new_context = LogContext(
        **values,
        extra={**parent.extra, **kwargs.get("extra", {})},
    )

    stack = _get_context_stack()
    stack.append(new_context)
    try:
        yield new_context
    finally:
        stack.pop()


def _utc_stamp() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_context: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = _utc_stamp().isoformat().replace("+00:00", "Z")

        if self.include_level:
            log_data["level"] = record.levelname

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if hasattr(record, "extra") and record.extra:
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Includes context fields inline for easy reading.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        timestamp = _utc_stamp().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context = get_current_context()
        context_parts = []
        if context.resource:
            context_parts.append(context.resource)
        if context.holder:
            context_parts.append(f"holder={context.holder}")
        if context.worker_id:
            context_parts.append(f"worker={context.worker_id}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        message = record.getMessage()

        extra_str = ""
        if hasattr(record, "extra") and record.extra:
            extra_str = f" {record.extra}"

        result = f"{timestamp} {level} {record.name}{context_str}: {message}{extra_str}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in log records.

    Automatically includes thread-local context in all log messages.
    """

    def process(self, msg, kwargs):
        """Process log record to include context."""
        context = get_current_context()

        extra = dict(kwargs.get("extra", {}))
        extra.update(context.to_dict())

        # Store as attribute for formatter access
        kwargs["extra"] = {"extra": extra}

        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "controller.loop")

    Returns:
        ContextLogger instance
    """
    return ContextLogger(logging.getLogger(name), {})


def configure_logging(
    level: Union[str, int, None] = None,
    json_output: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); defaults to $LOG_LEVEL
        json_output: Use JSON format (for production); also set by LOG_FORMAT=json
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter(include_context=True)
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)


# ============================================================================
# CHECKPOINT LOGGING
# ============================================================================

def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named checkpoint.

    Checkpoints mark phase transitions (e.g. "barrier_opened",
    "lease_granted") so a resource's history can be queried from logs.

    Args:
        name: Checkpoint name
        data: Optional checkpoint data
        logger: Optional specific logger to use
    """
    if logger is None:
        logger = logging.getLogger("checkpoint")

    checkpoint_data: Dict[str, Any] = {
        "checkpoint": name,
        "timestamp": _utc_stamp().isoformat().replace("+00:00", "Z"),
    }
    checkpoint_data.update(get_current_context().to_dict())

    if data:
        checkpoint_data["data"] = data

    logger.info(f"CHECKPOINT: {name}", extra={"extra": checkpoint_data})


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
]
