"""
Structured JSON logging for the waqf kernel.

Every module logs through ``get_logger(name)``, which places it under the
``waqf_kernel`` logger.  Records are rendered by ``StructuredFormatter`` as
one JSON object per line: a fixed envelope (ts, level, logger, message),
the request-scoped fields held by ``LogContext``, then the record's
``extra`` fields.  Kernel exceptions attached with ``exc_info`` contribute
their ``code`` and structured attributes as ``exc_*`` keys.

Request-scoped fields live in context variables, so concurrent executions
on different threads never see each other's distribution or period ids.
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
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "waqf_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "distribution_id",
    "fiscal_period_id",
    "actor_id",
    "trace_id",
)

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"waqf_log_{name}", default=None) for name in CONTEXT_FIELDS
}


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------


class LogContext:
    """Request-scoped log fields (distribution, period, actor, ...)."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Set the given fields; None values and unknown names are ignored."""
        for name, value in fields.items():
            if value is not None and name in _context:
                _context[name].set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _context.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context.values():
            var.set(None)

    @staticmethod
    def bind(**fields: Any) -> "_BoundContext":
        """Set fields for the duration of a ``with`` block, then restore them.

        UUIDs and other values are stored as strings.
        """
        return _BoundContext(fields)


class _BoundContext:
    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar[str | None], Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            var = _context.get(name)
            if var is not None and value is not None:
                self._tokens.append((var, var.set(str(value))))
        return LogContext

    def __exit__(self, *exc_info: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
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
    for key, value in vars(exc).items():
        if not key.startswith("_") and key != "code":
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``waqf_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_setup_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to ``waqf_kernel``.  Later calls are no-ops."""
    global _configured
    with _setup_lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(_LOGGER_PREFIX)
        root.setLevel(level)
        root.propagate = False
        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and the configured flag. FOR TESTING ONLY."""
    global _configured
    with _setup_lock:
        _configured = False
        root = logging.getLogger(_LOGGER_PREFIX)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
