"""
Module: knowledge_kernel.models.fact
Responsibility: ORM persistence for facts under the approval workflow.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for DTO conversion only).

Invariants enforced:
    - At most one provenance reference: CHECK constraint forbids a row with
      both source_document_id and source_communication_id.
    - Confidence bounds: CHECK constraints keep confidence and
      base_confidence in [0, 1].
    - Status values: CHECK constraint limits approval_status to the
      ApprovalStatus enum.
    - version is bumped on every write; the status writer uses it for
      conditional (optimistic) updates.

Failure modes:
    - IntegrityError on constraint violations (service layer validates
      first, so these indicate a bypassed service).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from knowledge_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from knowledge_kernel.domain.facts import FactRecord


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FactModel(Base):
    """Persistent fact.

    Contract:
        Approval fields (approval_status, approved_*, rejection_reason,
        reviewed_*, decided_*) are written only by the status writer.
        Content fields are written by FactService.  Rows are never
        deleted; is_active=False is a soft delete.
    """

    __tablename__ = "facts"

    __table_args__ = (
        CheckConstraint(
            "approval_status IN ('Pending', 'Under_Review', 'Needs_Review', "
            "'Escalated', 'Approved', 'Rejected')",
            name="ck_facts_valid_status",
        ),
        CheckConstraint(
            "NOT (source_document_id IS NOT NULL AND source_communication_id IS NOT NULL)",
            name="ck_facts_single_source",
        ),
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1",
            name="ck_facts_confidence_range",
        ),
        CheckConstraint(
            "base_confidence >= 0 AND base_confidence <= 1",
            name="ck_facts_base_confidence_range",
        ),
        # Approval queue scans
        Index("ix_facts_queue", "is_active", "approval_status", "created_at"),
        Index("ix_facts_type", "fact_type"),
        Index("ix_facts_source_document", "source_document_id"),
        Index("ix_facts_source_communication", "source_communication_id"),
    )

    fact_type: Mapped[str] = mapped_column(String(50), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    base_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    extraction_metadata: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict,
    )

    source_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("source_documents.id"), nullable=True,
    )
    source_communication_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("source_communications.id"), nullable=True,
    )

    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Pending",
    )
    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    decided_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    security_classification: Mapped[str | None] = mapped_column(
        String(20), nullable=True,
    )

    extracted_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    extracted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<Fact {self.id} {self.fact_type} "
            f"status={self.approval_status} v{self.version}>"
        )

    def to_dto(self) -> FactRecord:
        """Convert ORM model to frozen domain DTO."""
        from knowledge_kernel.domain.facts import (
            ApprovalStatus,
            FactRecord,
            FactType,
            SecurityClassification,
        )

        return FactRecord(
            fact_id=self.id,
            fact_type=FactType(self.fact_type),
            content=self.content,
            summary=self.summary,
            confidence=self.confidence,
            base_confidence=self.base_confidence,
            extraction_metadata=dict(self.extraction_metadata or {}),
            approval_status=ApprovalStatus(self.approval_status),
            source_document_id=self.source_document_id,
            source_communication_id=self.source_communication_id,
            security_classification=(
                SecurityClassification(self.security_classification)
                if self.security_classification else None
            ),
            approved_by=self.approved_by,
            approved_at=_aware(self.approved_at),
            rejection_reason=self.rejection_reason,
            reviewed_by=self.reviewed_by,
            reviewed_at=_aware(self.reviewed_at),
            decided_by=self.decided_by,
            decided_at=_aware(self.decided_at),
            extracted_by=self.extracted_by,
            extracted_at=_aware(self.extracted_at),
            created_at=_aware(self.created_at),
            updated_at=_aware(self.updated_at),
            is_active=self.is_active,
            version=self.version,
        )
