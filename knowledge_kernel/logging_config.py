"""
Structured JSON logging for the approval workflow.

Every record is a single JSON object whose ``message`` is an event name::

    {"ts": "...", "level": "INFO", "logger": "knowledge_kernel.services...",
     "message": "fact_decision_recorded", "actor_id": "...", "fact_id": "...",
     "action": "approve", "from_status": "Under_Review", "to_status": "Approved"}

Workflow context (who is acting, on which fact, inside which bulk batch,
under which approval action) is bound once with ``LogContext.bind`` and is
stamped on every record emitted underneath it, including records from the
kernel writer and the audit sink, which never see the caller directly.

Domain errors logged with ``exc_info`` carry ``error_code`` and
``error_category`` (not_found / forbidden / invalid_request / conflict /
config), the same grouping the request layer maps to responses.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "error_fields",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from knowledge_kernel.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    KnowledgeKernelError,
    NotFoundError,
    WorkflowConfigError,
)

LOGGER_ROOT = "knowledge_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "fact_id",
    "batch_id",
    "action",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar(
    "knowledge_log_context", default=_EMPTY,
)


def _as_text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class LogContext:
    """Workflow fields stamped on every record emitted inside ``bind()``.

    Values are stored as text: UUIDs are stringified and enums (approval
    actions, statuses) contribute their value.  ``None`` leaves a field
    as it was.  Unknown field names raise TypeError.
    """

    @staticmethod
    def _merged(fields: dict[str, Any]) -> Mapping[str, str]:
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
        merged = dict(_context.get())
        merged.update(
            {name: _as_text(value) for name, value in fields.items() if value is not None}
        )
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: Any) -> None:
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Layer fields over the current context; the previous one returns on exit."""
        token = _context.set(cls._merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Record formatting
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}

_ERROR_CATEGORIES: tuple[tuple[type[KnowledgeKernelError], str], ...] = (
    (NotFoundError, "not_found"),
    (ForbiddenError, "forbidden"),
    (InvalidRequestError, "invalid_request"),
    (ConflictError, "conflict"),
    (WorkflowConfigError, "config"),
)


def error_fields(exc: BaseException) -> dict[str, Any]:
    """Log fields describing an exception.

    Kernel errors add their code, category and structured attributes
    (``error_fact_id``, ``error_from_status``, ...).
    """
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, KnowledgeKernelError):
        fields["error_code"] = exc.code
        fields["error_category"] = next(
            (name for base, name in _ERROR_CATEGORIES if isinstance(exc, base)),
            "kernel",
        )
        for key, value in vars(exc).items():
            if not key.startswith("_"):
                fields[f"error_{key}"] = value
    return fields


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(str(v) for v in obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """Envelope, then bound context, then ``extra=`` fields, then error fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        # Bound context wins over a same-named extra.
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_HANDLER_MARK = "_knowledge_structured"
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the knowledge_kernel namespace, e.g. ``services.batch_processor``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the structured handler on the knowledge_kernel logger.

    Only one structured handler is ever installed; later calls are no-ops
    until reset_logging().  Handlers added by others (pytest capture,
    an application's own) are left alone.
    """
    root = logging.getLogger(LOGGER_ROOT)
    with _lock:
        if any(getattr(h, _HANDLER_MARK, False) for h in root.handlers):
            return
        installed = handler if handler is not None else logging.StreamHandler(
            stream or sys.stderr
        )
        installed.setFormatter(StructuredFormatter())
        setattr(installed, _HANDLER_MARK, True)
        root.addHandler(installed)
        root.setLevel(level)
        root.propagate = False


def reset_logging() -> None:
    """Remove the structured handler and restore default propagation."""
    root = logging.getLogger(LOGGER_ROOT)
    with _lock:
        for h in [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]:
            root.removeHandler(h)
        root.setLevel(logging.NOTSET)
        root.propagate = True
