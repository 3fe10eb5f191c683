"""
Structured logging for the inventory core (``inventory_kernel.logging_config``).

Every record leaves the ``inventory_kernel`` logger tree as one JSON line:

    {"ts": ..., "level": "INFO", "logger": "inventory_kernel.services.stock_ledger",
     "message": "stock_reserved", "operation": "create_order",
     "tenant_id": "...", "actor_id": "...", "sku": "TS-RED-M", "quantity": 6}

The message is an event name.  Per-event data travels in ``extra=``.  The
operation context (which tenant, which actor, which service operation) is
bound once at the service boundary with ``log_operation`` / ``LogContext.bind``
and is merged into every record emitted underneath it: ledger updates,
movements, retries and post-commit delivery failures alike.

Domain exceptions logged with ``exc_info`` contribute their ``code`` and
public attributes as ``exc_*`` fields.
"""

from __future__ import annotations

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "log_operation",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import functools
import inspect
import json
import logging
import sys
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, TypeVar
from uuid import UUID

from inventory_kernel.exceptions import InventoryError, error_payload

F = TypeVar("F", bound=Callable[..., Any])

LOGGER_NAMESPACE = "inventory_kernel"

CONTEXT_FIELDS: tuple[str, ...] = ("correlation_id", "tenant_id", "actor_id", "operation")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("inventory_log_context", default=_EMPTY)


# ---------------------------------------------------------------------------
# Operation context
# ---------------------------------------------------------------------------


def _merged(fields: Mapping[str, Any]) -> Mapping[str, str]:
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"unknown log context field(s): {', '.join(unknown)}")
    current = dict(_context.get())
    current.update({key: str(value) for key, value in fields.items() if value is not None})
    return MappingProxyType(current)


class LogContext:
    """Operation-scoped fields merged into every record (contextvar-backed)."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Overlay ``fields`` on the current context; ``None`` values are skipped."""
        _context.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Overlay ``fields`` for the duration of the block, then restore."""
        token = _context.set(_merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


def log_operation(operation: str) -> Callable[[F], F]:
    """
    Decorate a service method so its records carry the operation context.

    ``tenant_id`` and ``actor_id`` are taken from the call's arguments when
    the method has parameters of those names.
    """

    def decorator(fn: F) -> F:
        signature = inspect.signature(fn)

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            arguments = signature.bind_partial(*args, **kwargs).arguments
            with LogContext.bind(
                operation=operation,
                tenant_id=arguments.get("tenant_id"),
                actor_id=arguments.get("actor_id"),
            ):
                return fn(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, InventoryError):
        for key, value in error_payload(exc).items():
            if key != "message":
                fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: event, operation context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``inventory_kernel`` namespace."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_setup_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``inventory_kernel`` logger.

    Only the first call has any effect until ``reset_logging()``.
    """
    global _configured
    with _setup_lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(LOGGER_NAMESPACE)
        root.setLevel(level)
        root.propagate = False
        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Drop the handlers installed by ``configure_logging``. FOR TESTING ONLY."""
    global _configured
    with _setup_lock:
        _configured = False
        root = logging.getLogger(LOGGER_NAMESPACE)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
