"""
Structured Logging with Structlog.

Every entry carries the service name and version plus whatever request
context is bound through log_context. Receipt payloads and shared secrets
are masked before rendering, whichever logger call passed them in.
"""

import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from appstore_receipts.config import settings

REDACTED = "[REDACTED]"

# Wire and Python spellings of the verifyReceipt body fields
SENSITIVE_KEYS = frozenset({"receipt_data", "receipt-data", "password", "shared_secret"})


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application-level context to all log entries."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: REDACTED if key in SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [_redact(item) for item in value]
    return value


def redact_receipt_payloads(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Mask receipts and shared secrets anywhere in the event.

    Nested mappings are walked too, so a logged request body such as
    {"receipt-data": ..., "password": ...} is masked as well.
    """
    return _redact(event_dict)  # type: ignore[no-any-return]


def build_processors(log_level: str, log_format: str) -> list[Processor]:
    """Processor chain for the given level and output format."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    # Runs after context merging so bound values are masked too
    processors.append(redact_receipt_payloads)

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def setup_logging() -> None:
    """
    Configure structured logging with structlog.

    JSON entries look like:
    {
        "event": "receipt_sandbox_redirect",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "appstore_receipts.services.receipt_verifier",
        "service": "appstore-receipts-api",
        "version": "0.1.0",
        "request_id": "4f1c...",
        "transaction_id": "1000000123456789"
    }
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    structlog.configure(
        processors=build_processors(settings.log_level, settings.log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind structured logging context for the duration of a block.

    Usage:
        with log_context(request_id=request_id, transaction_id=transaction_id):
            await client.verify(receipt_data, transaction_id)

    Only the keys bound here are removed on exit, so nested blocks keep the
    outer request_id.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
