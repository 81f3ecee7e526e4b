"""
Audit sinks -- best-effort side channel for workflow audit records.

Contract:
    ``AuditSink.record()`` accepts one audit entry.  Callers treat the
    sink as fire-and-forget: a failing sink never fails the operation
    that produced the entry.

Implementations:
    LoggingAuditSink -- writes each entry as a structured ``audit_record``
        log line.
    QueuedAuditSink -- bounded in-process queue drained by a daemon thread
        into another sink.  ``record()`` never blocks; when the queue is
        full the entry is dropped with a warning.

Non-goals:
    - Durable storage format of audit entries (owned by the consuming
      system).
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from knowledge_kernel.logging_config import get_logger

logger = get_logger("services.audit_sink")


@dataclass(frozen=True)
class AuditEntry:
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = field(default=None)


@runtime_checkable
class AuditSink(Protocol):
    """Anything that can accept an audit record."""

    def record(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> None:
        ...


class LoggingAuditSink:
    """Emit each audit entry as a structured log line."""

    def __init__(self, logger_name: str = "audit"):
        self._logger = get_logger(logger_name)

    def record(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> None:
        self._logger.info(
            "audit_record",
            extra={
                "audit_user_id": str(user_id),
                "audit_action": action,
                "audit_entity_type": entity_type,
                "audit_entity_id": str(entity_id),
                "old_values": old_values,
                "new_values": new_values,
            },
        )


class QueuedAuditSink:
    """Bounded fire-and-forget queue in front of another sink.

    Contract:
        - ``start()`` / ``close()`` manage the drain thread.  The owner
          (application bootstrap) calls both.
        - ``flush()`` blocks until every queued entry reached the inner
          sink.  Without a running thread it drains on the caller's
          thread.
        - Entries recorded after ``close()`` are dropped.  Every entry
          accepted before it is delivered by close()'s final drain.
    """

    _POLL_SECONDS = 0.1

    def __init__(self, inner: AuditSink, maxsize: int = 1000):
        self._inner = inner
        self._queue: queue.Queue[AuditEntry] = queue.Queue(maxsize=maxsize)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._closed = False
        # Guards _closed and enqueueing so close() cannot miss a late put.
        self._accept_lock = threading.Lock()
        self.dropped = 0

    def record(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> None:
        entry = AuditEntry(
            user_id=str(user_id),
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            old_values=old_values,
            new_values=new_values,
        )
        drop_reason = None
        with self._accept_lock:
            if self._closed:
                drop_reason = "closed"
            else:
                try:
                    self._queue.put_nowait(entry)
                except queue.Full:
                    drop_reason = "queue_full"
            if drop_reason is not None:
                self.dropped += 1
        if drop_reason is not None:
            logger.warning(
                "audit_entry_dropped",
                extra={"audit_action": action, "drop_reason": drop_reason},
            )

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="audit-sink-drain",
            daemon=True,
        )
        self._thread.start()
        logger.info("audit_sink_started", extra={"maxsize": self._queue.maxsize})

    def flush(self) -> None:
        if self.is_running:
            self._queue.join()
        else:
            self._drain_pending()

    def close(self, timeout: float = 5.0) -> None:
        """Stop accepting entries, deliver what is queued, stop the thread."""
        with self._accept_lock:
            self._closed = True
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._drain_pending()
        logger.info("audit_sink_stopped", extra={"dropped": self.dropped})

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                entry = self._queue.get(timeout=self._POLL_SECONDS)
            except queue.Empty:
                continue
            self._deliver(entry)

    def _drain_pending(self) -> None:
        while True:
            try:
                entry = self._queue.get_nowait()
            except queue.Empty:
                return
            self._deliver(entry)

    def _deliver(self, entry: AuditEntry) -> None:
        try:
            self._inner.record(
                entry.user_id,
                entry.action,
                entry.entity_type,
                entry.entity_id,
                old_values=entry.old_values,
                new_values=entry.new_values,
            )
        except Exception:
            logger.exception(
                "audit_record_failed",
                extra={
                    "audit_action": entry.action,
                    "audit_entity_id": entry.entity_id,
                },
            )
        finally:
            self._queue.task_done()
