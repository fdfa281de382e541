"""
Structured JSON logging for the CropChain kernel.

Every logger handed out by ``get_logger`` lives under ``cropchain_kernel``.
Records are rendered as one JSON object per line. Keys passed through
``extra=`` become top-level fields, and so do the ``actor_id`` / ``batch_id``
bound on the current context. Exceptions attached to a record contribute
``exc_type``, ``exc_message``, ``exc_code`` and their public attributes
(``exc_batch_id``, ``exc_owner_id`` and so on).
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
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

LOGGER_NAMESPACE = "cropchain_kernel"

_CONTEXT_FIELDS = ("actor_id", "batch_id")

_bound: ContextVar[Mapping[str, str]] = ContextVar("cropchain_log_context", default={})


class LogContext:
    """
    Per-thread / per-task fields stamped on every record.

    Only ``actor_id`` and ``batch_id`` are carried: who is acting, and on
    which batch. Values are replaced, never mutated, so a ContextVar copy
    taken by another thread or task is unaffected.
    """

    @staticmethod
    def _merge(fields: Mapping[str, str | None]) -> dict[str, str]:
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"unsupported log context field(s): {sorted(unknown)}")
        merged = dict(_bound.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(cls, *, actor_id: str | None = None, batch_id: str | None = None) -> None:
        _bound.set(cls._merge({"actor_id": actor_id, "batch_id": batch_id}))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_bound.get())

    @staticmethod
    def clear() -> None:
        _bound.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[None]:
        """Bind fields for the duration of the block; None values are skipped."""
        token = _bound.set(cls._merge(fields))
        try:
            yield
        finally:
            _bound.reset(token)


# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return repr(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name == "code":
            continue
        fields[f"exc_{name}"] = value
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
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a StructuredFormatter handler to the ``cropchain_kernel`` logger.

    Only the first call has an effect until ``reset_logging()`` is called.
    Records do not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
    kernel_logger.setLevel(level)
    kernel_logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    kernel_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` to run again. Tests only."""
    global _configured
    with _lock:
        _configured = False
    kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
