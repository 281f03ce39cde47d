"""
Structured JSON logging for the billing kernel.

Every record leaves as one JSON object per line: a fixed envelope (ts,
level, logger, message), the request-scoped fields held in LogContext, and
whatever the call site passed through ``extra``.  Billing exceptions logged
with ``exc_info`` contribute their ``code`` and structured attributes.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = (
    "tenant_id",
    "correlation_id",
    "actor_id",
    "invoice_id",
    "source_event_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("billing_log_context", default={})


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Only the names in ``_CONTEXT_FIELDS`` are carried; values are stored as
    strings.  The stored mapping is replaced, never mutated, so a bound
    scope can always restore what it found.
    """

    @staticmethod
    def _merged(values: dict[str, Any]) -> dict[str, str]:
        merged = dict(_context.get())
        for name, val in values.items():
            if name in _CONTEXT_FIELDS and val is not None:
                merged[name] = str(val)
        return merged

    @classmethod
    def set(
        cls,
        *,
        tenant_id: str | None = None,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        invoice_id: str | None = None,
        source_event_id: str | None = None,
    ) -> None:
        """Set context fields. None leaves a field as it is."""
        _context.set(
            cls._merged(
                {
                    "tenant_id": tenant_id,
                    "correlation_id": correlation_id,
                    "actor_id": actor_id,
                    "invoice_id": invoice_id,
                    "source_event_id": source_event_id,
                }
            )
        )

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Fields currently set, in declaration order."""
        current = _context.get()
        return {name: current[name] for name in _CONTEXT_FIELDS if name in current}

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """
        Set fields for the duration of a ``with`` block.

        Unknown names and None values are skipped; the previous context is
        restored on exit, exception or not.
        """
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # BillingError subclasses keep their identifiers as instance attributes
    for name, val in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = val
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, val in vars(record).items():
            if name not in _RESERVED:
                payload.setdefault(name, val)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------

ROOT_LOGGER_NAME = "billing_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger ``billing_kernel.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``billing_kernel`` logger.

    Only the first call has an effect until ``reset_logging()``.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging(). FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
