"""
Structured logging configuration for the docledger chaincode host.

All logs are JSON-formatted with these standard fields:
- timestamp: ISO 8601 timestamp
- event: The log event name (first positional argument)
- tx_id: Transaction identifier of the invocation being executed
- function: Chaincode function name (when available)
- duration_ms: Operation duration in milliseconds
- outcome: Result of the invocation

Note: In structlog, the first positional argument to logger.info/warning/error
becomes the 'event' field in the JSON output automatically.
"""
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog

from docledger.config import settings

# Context variables for invocation-scoped data
tx_id_ctx: ContextVar[str] = ContextVar("tx_id", default="")
function_ctx: ContextVar[str] = ContextVar("function", default="")


def add_context_vars(
    logger: structlog.typing.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor that adds context variables to log entries."""
    tx_id = tx_id_ctx.get()
    function = function_ctx.get()

    if tx_id:
        event_dict.setdefault("tx_id", tx_id)
    if function:
        event_dict.setdefault("function", function)

    return event_dict


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structlog with JSON output and context processors."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=(level or settings.log_level).upper(),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            add_context_vars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def set_invocation_context(tx_id: str, function: Optional[str] = None) -> None:
    """Set the invocation context for logging."""
    tx_id_ctx.set(tx_id)
    if function:
        function_ctx.set(function)


def clear_invocation_context() -> None:
    """Clear the invocation context after the transaction completes."""
    tx_id_ctx.set("")
    function_ctx.set("")


def generate_tx_id() -> str:
    """Generate a unique transaction ID."""
    return uuid.uuid4().hex


class TimedOperation:
    """Context manager for timing operations and logging duration."""

    def __init__(
        self,
        event: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        **extra_fields: Any,
    ):
        self.event = event
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time: float = 0
        self.duration_ms: float = 0

    def __enter__(self) -> "TimedOperation":
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.event}_started", **self.extra_fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.event}_failed",
                duration_ms=round(self.duration_ms, 2),
                error=str(exc_val),
                **self.extra_fields,
            )
        else:
            self.logger.debug(
                f"{self.event}_completed",
                duration_ms=round(self.duration_ms, 2),
                **self.extra_fields,
            )


def log_invocation(
    logger: structlog.stdlib.BoundLogger,
    function: str,
    arg_count: int,
    status: int,
    message: str,
    payload_size: int,
    committed: bool,
    duration_ms: float,
) -> None:
    """Log a chaincode invocation with standard fields."""
    outcome = "success" if committed else "error"

    log = logger.info if committed else logger.warning
    log(
        "invocation_completed",
        function=function,
        arg_count=arg_count,
        outcome=outcome,
        status=status,
        message=message or None,
        payload_size=payload_size,
        committed=committed,
        duration_ms=round(duration_ms, 2),
    )
