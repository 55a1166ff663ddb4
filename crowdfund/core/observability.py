"""
Observability module for the crowdfunding core.

Provides:
- Structured logging with JSON format and correlation IDs
- Request correlation ID (request_id) and caller ID propagation
- Prometheus metrics for gate operations, authorization denials,
  storage failures and visibility misuse

Usage:
    from crowdfund.core.observability import correlation_context, metrics

    with correlation_context() as request_id:
        ...  # gate calls made here log with this request_id
"""

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime

from prometheus_client import CollectorRegistry, Counter, generate_latest

# ============================================================================
# Context Variables for Request Tracking
# ============================================================================

# Correlation ID - links all logs for a single request
_request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

# Resolved caller - tracks the identity behind the session token
_caller_id_ctx: ContextVar[str] = ContextVar("caller_id", default="")


def generate_request_id() -> str:
    """Generate a unique request ID for correlation."""
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get the current request ID from context."""
    return _request_id_ctx.get()


def set_correlation_id(request_id: str) -> Token[str]:
    """Set the correlation ID; pass the returned token to `reset_correlation_id`."""
    return _request_id_ctx.set(request_id)


def reset_correlation_id(token: Token[str]) -> None:
    _request_id_ctx.reset(token)


def get_caller_id() -> str:
    """Get the current caller ID from context."""
    return _caller_id_ctx.get()


def set_caller_id(caller_id: str) -> Token[str]:
    """Set the caller ID; pass the returned token to `reset_caller_id`."""
    return _caller_id_ctx.set(caller_id)


def reset_caller_id(token: Token[str]) -> None:
    _caller_id_ctx.reset(token)


@contextmanager
def correlation_context(request_id: str | None = None) -> Iterator[str]:
    """
    Tag every log line emitted inside the block with one request ID.

    A new ID is generated when none is given. The previous ID is restored
    on exit.
    """
    request_id = request_id or generate_request_id()
    token = set_correlation_id(request_id)
    try:
        yield request_id
    finally:
        reset_correlation_id(token)


# ============================================================================
# Structured Logging Configuration
# ============================================================================

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
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs as JSON with standard fields:
    - timestamp: ISO 8601 format
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - logger: Logger name
    - message: Log message
    - request_id: Correlation ID (if available)
    - caller_id: Resolved caller (if available)
    - extra: Any additional context from logging.extra
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        caller_id = get_caller_id()
        if caller_id:
            log_entry["caller_id"] = caller_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        log_entry["file"] = record.pathname
        log_entry["line"] = record.lineno
        log_entry["function"] = record.funcName

        extra_keys = {
            k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_KEYS
        }
        if extra_keys:
            log_entry["extra"] = extra_keys

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: str = "INFO") -> None:
    """
    Configure root logger with structured JSON formatting.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    root_logger.addHandler(handler)


# ============================================================================
# Prometheus Metrics
# ============================================================================

# Use a custom registry to avoid conflicts with other Prometheus metrics
_registry = CollectorRegistry()


class Metrics:
    """
    Centralized metrics collection for the repository gates.

    Metrics groups:
    - Gate: operation outcomes per entity type
    - Authorization: denials per entity type and operation
    - Storage: translated storage failures
    - Visibility: filtered/unfiltered projection misuse
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry

        self.gate_operations_total = Counter(
            "gate_operations_total",
            "Total repository gate operations",
            ["entity", "operation", "outcome"],
            registry=self.registry,
        )

        self.authorization_denials_total = Counter(
            "authorization_denials_total",
            "Total operations rejected by the authorization gate",
            ["entity", "operation"],
            registry=self.registry,
        )

        self.storage_errors_total = Counter(
            "storage_errors_total",
            "Total storage failures translated at the gate boundary",
            ["entity", "operation"],
            registry=self.registry,
        )

        self.visibility_misuse_total = Counter(
            "visibility_misuse_total",
            "Projections requested in a way that probably leaks or hides data",
            ["entity", "kind"],
            registry=self.registry,
        )


# Global metrics instance
metrics = Metrics(_registry)


def export_metrics() -> bytes:
    """Render the private registry in the Prometheus text exposition format."""
    return generate_latest(_registry)
