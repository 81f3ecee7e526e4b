"""Services for the knowledge kernel (write side)."""

from knowledge_kernel.services.audit_sink import (
    AuditEntry,
    AuditSink,
    LoggingAuditSink,
    QueuedAuditSink,
)
from knowledge_kernel.services.fact_writer import FactWriter

__all__ = [
    "AuditEntry",
    "AuditSink",
    "FactWriter",
    "LoggingAuditSink",
    "QueuedAuditSink",
]
