"""
FactService -- fact submission, content edits and soft delete.

Contract:
    - submit_fact(): validates the submitted confidence and provenance,
      stores the adjusted confidence and starts the fact in Pending (or
      Needs_Review when the extractor asks for it).
    - edit_fact(): content fields only.  Approval fields belong to the
      decision processor.  Editing confidence or metadata re-runs the
      confidence adjuster.  Editing a Rejected or Needs_Review fact
      resubmits it: status returns to Pending and the rejection reason
      is cleared, in the same version-checked write.
    - deactivate_fact(): soft delete; rows are never removed.

Failure modes:
    - InvalidConfidenceError for confidence outside [0, 1].
    - InvalidSourceReferenceError when both a document and a
      communication are referenced.
    - SourceNotFoundError when the referenced source is missing or
      inactive.
    - FactNotFoundError on edits/deletes of missing or inactive facts.
    - ConflictError when a concurrent writer bumped the version
      (TransitionConflictError when a resubmission loses the race).

Audit:
    CREATE_FACT / UPDATE_FACT / DELETE_FACT, best-effort.
"""

from __future__ import annotations

import math
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from knowledge_engines import adjust_confidence
from knowledge_kernel.domain.clock import Clock, SystemClock
from knowledge_kernel.domain.facts import (
    ApprovalStatus,
    FactChanges,
    FactRecord,
    FactSubmission,
    SourceType,
)
from knowledge_kernel.exceptions import (
    FactNotFoundError,
    InvalidConfidenceError,
    InvalidRequestError,
    InvalidSourceReferenceError,
    SourceNotFoundError,
)
from knowledge_kernel.logging_config import LogContext, get_logger
from knowledge_kernel.selectors.fact_selector import FactSelector, SourceSelector
from knowledge_kernel.services.audit_sink import AuditSink, LoggingAuditSink
from knowledge_kernel.services.fact_writer import FactWriter

logger = get_logger("services.fact_service")

_INITIAL_STATUSES = (ApprovalStatus.PENDING, ApprovalStatus.NEEDS_REVIEW)
_RESUBMIT_STATUSES = (ApprovalStatus.REJECTED, ApprovalStatus.NEEDS_REVIEW)


def _validate_confidence(value: float) -> None:
    if value is None or math.isnan(value) or not 0.0 <= value <= 1.0:
        raise InvalidConfidenceError(value)


def _source_of(
    document_id: UUID | None,
    communication_id: UUID | None,
) -> SourceType:
    if document_id is not None:
        return SourceType.DOCUMENT
    if communication_id is not None:
        return SourceType.COMMUNICATION
    return SourceType.OTHER


class FactService:
    """Write side for fact content."""

    def __init__(
        self,
        session: Session,
        audit_sink: AuditSink | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._audit = audit_sink or LoggingAuditSink()
        self._clock = clock or SystemClock()
        self._facts = FactSelector(session)
        self._sources = SourceSelector(session)
        self._writer = FactWriter(session)

    def submit_fact(self, submission: FactSubmission, user_id: UUID) -> FactRecord:
        if not submission.content or not submission.content.strip():
            raise InvalidRequestError("Fact content must not be empty")
        _validate_confidence(submission.confidence)
        if submission.initial_status not in _INITIAL_STATUSES:
            raise InvalidRequestError(
                f"New facts cannot start in status {submission.initial_status.value}"
            )

        document_id = submission.source_document_id
        communication_id = submission.source_communication_id
        if document_id is not None and communication_id is not None:
            raise InvalidSourceReferenceError(
                "A fact may reference a source document or a source "
                "communication, not both"
            )

        source_type = _source_of(document_id, communication_id)
        source_id = document_id or communication_id
        if source_id is not None and not self._sources.is_active_source(
            source_type, source_id,
        ):
            raise SourceNotFoundError(source_type.value, str(source_id))

        now = self._clock.now()
        metadata = dict(submission.metadata or {})
        confidence = adjust_confidence(submission.confidence, metadata, source_type)

        fact = self._writer.insert(
            fact_type=submission.fact_type.value,
            content=submission.content,
            summary=submission.summary,
            base_confidence=submission.confidence,
            confidence=confidence,
            extraction_metadata=metadata,
            source_document_id=document_id,
            source_communication_id=communication_id,
            security_classification=(
                submission.security_classification.value
                if submission.security_classification is not None else None
            ),
            approval_status=submission.initial_status.value,
            extracted_by=user_id,
            extracted_at=submission.extracted_at or now,
            created_at=now,
            updated_at=now,
            is_active=True,
            version=1,
        )

        with LogContext.bind(actor_id=user_id, fact_id=fact.fact_id):
            logger.info(
                "fact_submitted",
                extra={
                    "fact_type": fact.fact_type.value,
                    "source_type": source_type.value,
                    "base_confidence": fact.base_confidence,
                    "adjusted_confidence": fact.confidence,
                },
            )
        self._record_audit(
            user_id, "CREATE_FACT", fact.fact_id,
            new_values={
                "fact_type": fact.fact_type.value,
                "confidence": fact.confidence,
                "approval_status": fact.approval_status.value,
            },
        )
        return fact

    def edit_fact(
        self,
        fact_id: UUID,
        changes: FactChanges,
        user_id: UUID,
    ) -> FactRecord:
        fact = self._facts.get(fact_id)
        if fact is None:
            raise FactNotFoundError(str(fact_id))

        values: dict[str, Any] = {}
        if changes.fact_type is not None:
            values["fact_type"] = changes.fact_type.value
        if changes.content is not None:
            if not changes.content.strip():
                raise InvalidRequestError("Fact content must not be empty")
            values["content"] = changes.content
        if changes.summary is not None:
            values["summary"] = changes.summary
        if changes.security_classification is not None:
            values["security_classification"] = changes.security_classification.value

        if changes.confidence is not None or changes.metadata is not None:
            base = fact.base_confidence
            if changes.confidence is not None:
                _validate_confidence(changes.confidence)
                base = changes.confidence
            metadata = (
                dict(changes.metadata)
                if changes.metadata is not None
                else dict(fact.extraction_metadata)
            )
            values["base_confidence"] = base
            values["extraction_metadata"] = metadata
            values["confidence"] = adjust_confidence(base, metadata, fact.source_type)

        if not values:
            return fact

        now = self._clock.now()
        resubmitted = fact.approval_status in _RESUBMIT_STATUSES
        if resubmitted:
            values["approval_status"] = ApprovalStatus.PENDING.value
            values["rejection_reason"] = None
            updated = self._writer.apply_transition(
                fact.fact_id, fact.approval_status, fact.version, values, now,
            )
        else:
            updated = self._writer.apply_changes(fact.fact_id, fact.version, values, now)

        old_values = {
            key: _dto_value(fact, key) for key in values
        }
        new_values = {
            key: _dto_value(updated, key) for key in values
        }
        with LogContext.bind(actor_id=user_id, fact_id=fact_id):
            logger.info("fact_updated", extra={"changed_fields": sorted(values)})
            if resubmitted:
                logger.info(
                    "fact_resubmitted",
                    extra={
                        "from_status": fact.approval_status.value,
                        "to_status": ApprovalStatus.PENDING.value,
                    },
                )
        self._record_audit(
            user_id, "UPDATE_FACT", fact_id,
            old_values=old_values, new_values=new_values,
        )
        return updated

    def deactivate_fact(self, fact_id: UUID, user_id: UUID) -> FactRecord:
        fact = self._facts.get(fact_id)
        if fact is None:
            raise FactNotFoundError(str(fact_id))

        updated = self._writer.apply_changes(
            fact.fact_id, fact.version, {"is_active": False}, self._clock.now(),
        )
        with LogContext.bind(actor_id=user_id, fact_id=fact_id):
            logger.info("fact_deactivated")
        self._record_audit(
            user_id, "DELETE_FACT", fact_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return updated

    def _record_audit(
        self,
        user_id: UUID,
        action: str,
        fact_id: UUID,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> None:
        try:
            self._audit.record(
                str(user_id), action, "Fact", str(fact_id),
                old_values=old_values, new_values=new_values,
            )
        except Exception:
            logger.exception("audit_record_failed", extra={"audit_action": action})


def _dto_value(fact: FactRecord, column: str) -> Any:
    value = getattr(fact, column)
    return getattr(value, "value", value)
