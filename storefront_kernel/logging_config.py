"""
Structured JSON logging for the storefront kernel.

Every record under the ``storefront`` logger is written as one JSON object
per line.  Request-scoped identifiers (correlation, actor, customer, order)
live in ``LogContext`` and are merged into each record, so the kernel never
passes them around just for logging.

Typical event::

    {"ts": "...", "level": "INFO", "logger": "storefront.services.inventory_ledger",
     "message": "stock_delta_applied", "correlation_id": "...",
     "sku_id": "...", "delta": -3, "balance_after": 2}
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

ROOT_LOGGER_NAME = "storefront"

_CONTEXT_FIELDS = ("correlation_id", "actor_id", "customer_id", "order_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("storefront_log_context", default=_EMPTY)


def _known_fields(fields: Mapping[str, Any]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in fields.items()
        if name in _CONTEXT_FIELDS and value is not None
    }


class LogContext:
    """
    Request-scoped log fields, isolated per thread and per asyncio task.

    Only the names in ``_CONTEXT_FIELDS`` are kept; anything else handed to
    ``set`` or ``bind`` is dropped, as are None values.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        merged = dict(_context.get())
        merged.update(_known_fields(fields))
        _context.set(MappingProxyType(merged))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Overlay fields for the duration of a ``with`` block."""
        merged = dict(_context.get())
        merged.update(_known_fields(fields))
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__}
    to_dict = getattr(exc, "to_dict", None)
    if callable(to_dict):
        fields.update({f"exc_{key}": value for key, value in to_dict().items()})
    else:
        fields["exc_message"] = str(exc)
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON line per record: timestamp, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                entry.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            entry.update(_exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Child logger of ``storefront``, e.g. ``get_logger("services.gateway")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_state_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the ``storefront`` logger.

    Only the first call has an effect until ``reset_logging()``; later calls
    keep the handler already installed.
    """
    global _installed_handler
    with _state_lock:
        if _installed_handler is not None:
            return
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        _installed_handler = handler

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Detach every handler from ``storefront``.  Tests only."""
    global _installed_handler
    with _state_lock:
        _installed_handler = None
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(logging.WARNING)
