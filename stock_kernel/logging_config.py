"""
Structured logging for the stock kernel.

Every record leaves as one JSON line.  Event names are the message
(``stock_transferred``, ``transfer_stock_rejected``); everything else is a
field.  Fields come from three places, merged in this order:

1. the operation context bound by the movement engine (``LogContext``)
2. ``extra=`` on the logging call
3. the exception, when one is attached (``exc_type``, ``exc_code`` and
   every public attribute of an InventoryKernelError)

Usage::

    logger = get_logger("services.movement_engine")
    with LogContext.bind(actor="alice", operation="transfer_stock"):
        logger.info("stock_transferred", extra={"quantity": 4})
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import IO, Any
from uuid import UUID

ROOT_LOGGER_NAME = "stock_kernel"

CONTEXT_FIELDS = ("correlation_id", "transaction_id", "actor", "operation")


class LogContext:
    """
    Operation-scoped log fields held in context variables.

    Each thread (and each asyncio task) sees its own values, so concurrent
    movements never mix actors or transaction ids in their log lines.
    """

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"stock_log_{name}", default=None) for name in CONTEXT_FIELDS
    }

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context.  None is ignored."""
        for name, value in fields.items():
            if value is not None:
                cls._var(name).set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: value
            for name, var in cls._vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Set fields for the duration of a block, then restore the old values."""
        tokens = [
            (cls._var(name), cls._var(name).set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @classmethod
    def _var(cls, name: str) -> ContextVar[str | None]:
        try:
            return cls._vars[name]
        except KeyError:
            raise ValueError(f"Unknown log context field: {name}") from None


# Attributes every LogRecord carries; anything else arrived through extra=
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}

_EXCEPTION_SKIP = frozenset({"args", "code"})


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(str(v) for v in value)
    return str(value)


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
        payload.update(self._extra_fields(record, payload))
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _extra_fields(record: logging.LogRecord, taken: dict[str, Any]) -> dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in taken
        }

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name not in _EXCEPTION_SKIP:
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``stock_kernel`` namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_configure_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``stock_kernel`` logger.

    Only the first call has an effect; later calls return without touching
    the hierarchy.  ``reset_logging`` undoes it.
    """
    global _installed_handler
    with _configure_lock:
        if _installed_handler is not None:
            return
        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(target)
        _installed_handler = target


def reset_logging() -> None:
    """Remove every handler from the ``stock_kernel`` logger.  For tests."""
    global _installed_handler
    with _configure_lock:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        for existing in list(root.handlers):
            root.removeHandler(existing)
        root.setLevel(logging.WARNING)
        root.propagate = True
        _installed_handler = None
