"""
Module: knowledge_kernel.selectors.fact_selector
Responsibility: Read-only fact queries behind the approval queue and the
    review view: filtered/sorted/paged queue rows, global queue counters,
    single-fact lookup and related-fact discovery.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/ or
    outer layers.

Invariants enforced:
    - Soft-deleted facts (is_active=False) are never returned.
    - Every ordering ends with the primary key so pages are deterministic.
    - Search terms are LIKE-escaped; user input never acts as a wildcard.

Failure modes:
    - Returns empty lists / zero counts when nothing matches.

The security classification overlay is NOT applied here.  Counts are
pre-overlay; the service layer filters the fetched page.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.sql.elements import ColumnElement

from knowledge_kernel.domain.facts import (
    OPEN_QUEUE_STATUSES,
    ApprovalStatus,
    FactRecord,
    SourceType,
)
from knowledge_kernel.domain.queue import (
    QueueFilters,
    QueueOptions,
    SortBy,
    SortOrder,
)
from knowledge_kernel.models.fact import FactModel
from knowledge_kernel.models.source import (
    SourceCommunicationModel,
    SourceDocumentModel,
)
from knowledge_kernel.selectors.base import BaseSelector


def build_queue_predicates(filters: QueueFilters) -> list[ColumnElement[bool]]:
    """Translate queue filters into SQL predicates (combined with AND).

    Statuses default to the open queue set when none are given.
    """
    statuses = filters.statuses or OPEN_QUEUE_STATUSES
    predicates: list[ColumnElement[bool]] = [
        FactModel.is_active.is_(True),
        FactModel.approval_status.in_([s.value for s in statuses]),
    ]

    if filters.min_confidence is not None:
        predicates.append(FactModel.confidence >= filters.min_confidence)
    if filters.max_confidence is not None:
        predicates.append(FactModel.confidence <= filters.max_confidence)

    if filters.fact_types:
        predicates.append(
            FactModel.fact_type.in_([t.value for t in filters.fact_types])
        )

    if filters.source_type == SourceType.DOCUMENT:
        predicates.append(FactModel.source_document_id.is_not(None))
    elif filters.source_type == SourceType.COMMUNICATION:
        predicates.append(FactModel.source_communication_id.is_not(None))
    elif filters.source_type == SourceType.OTHER:
        predicates.append(FactModel.source_document_id.is_(None))
        predicates.append(FactModel.source_communication_id.is_(None))

    if filters.extracted_from is not None:
        predicates.append(FactModel.extracted_at >= filters.extracted_from)
    if filters.extracted_to is not None:
        predicates.append(FactModel.extracted_at <= filters.extracted_to)

    if filters.reviewer_id is not None:
        predicates.append(FactModel.reviewed_by == filters.reviewer_id)
    if filters.submitter_id is not None:
        predicates.append(FactModel.extracted_by == filters.submitter_id)

    if filters.security_classification is not None:
        predicates.append(
            FactModel.security_classification
            == filters.security_classification.value
        )

    term = (filters.search or "").strip().lower()
    if term:
        predicates.append(
            or_(
                func.lower(FactModel.content).contains(term, autoescape=True),
                func.lower(FactModel.summary).contains(term, autoescape=True),
            )
        )

    return predicates


def apply_queue_ordering(stmt: Select, options: QueueOptions) -> Select:
    """Order a fact query per the queue options, id last."""
    if options.sort_by == SortBy.PRIORITY:
        return stmt.order_by(
            FactModel.confidence.desc(),
            FactModel.extracted_at.desc(),
            FactModel.id.asc(),
        )

    column = (
        FactModel.confidence
        if options.sort_by == SortBy.CONFIDENCE
        else FactModel.created_at
    )
    primary = column.asc() if options.sort_order == SortOrder.ASC else column.desc()
    return stmt.order_by(primary, FactModel.id.asc())


class FactSelector(BaseSelector[FactModel]):
    """
    Selector for fact queries.

    Contract:
        Returns FactRecord DTOs, never ORM instances.  Only active facts
        are visible.
    """

    def get(self, fact_id: UUID) -> FactRecord | None:
        """Active fact by id, or None."""
        model = self.session.execute(
            select(FactModel).where(
                FactModel.id == fact_id,
                FactModel.is_active.is_(True),
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def count_queue(self, filters: QueueFilters) -> int:
        """Number of facts matching the filters."""
        stmt = (
            select(func.count())
            .select_from(FactModel)
            .where(*build_queue_predicates(filters))
        )
        return int(self.session.execute(stmt).scalar_one())

    def fetch_queue(
        self,
        filters: QueueFilters,
        options: QueueOptions,
    ) -> list[FactRecord]:
        """One page of facts matching the filters, in queue order."""
        stmt = select(FactModel).where(*build_queue_predicates(filters))
        stmt = apply_queue_ordering(stmt, options)
        stmt = stmt.limit(options.limit).offset(options.offset)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def status_counts(
        self,
        statuses: Iterable[ApprovalStatus],
    ) -> dict[ApprovalStatus, int]:
        """Active fact counts per status; absent statuses count 0."""
        wanted = list(statuses)
        counts = {status: 0 for status in wanted}
        rows = self.session.execute(
            select(FactModel.approval_status, func.count())
            .where(
                FactModel.is_active.is_(True),
                FactModel.approval_status.in_([s.value for s in wanted]),
            )
            .group_by(FactModel.approval_status)
        ).all()
        for status_value, count in rows:
            counts[ApprovalStatus(status_value)] = int(count)
        return counts

    def average_confidence(self, statuses: Iterable[ApprovalStatus]) -> float:
        """Mean confidence of active facts in the given statuses (0.0 if none)."""
        value = self.session.execute(
            select(func.avg(FactModel.confidence)).where(
                FactModel.is_active.is_(True),
                FactModel.approval_status.in_([s.value for s in statuses]),
            )
        ).scalar_one()
        return float(value) if value is not None else 0.0

    def related(self, fact: FactRecord, limit: int = 10) -> list[FactRecord]:
        """Other active facts sharing the type or the source of ``fact``.

        Highest confidence first.  Source matching only applies to the
        reference the fact actually has.
        """
        shared: list[ColumnElement[bool]] = [
            FactModel.fact_type == fact.fact_type.value,
        ]
        if fact.source_document_id is not None:
            shared.append(FactModel.source_document_id == fact.source_document_id)
        if fact.source_communication_id is not None:
            shared.append(
                FactModel.source_communication_id == fact.source_communication_id
            )

        stmt = (
            select(FactModel)
            .where(
                FactModel.is_active.is_(True),
                FactModel.id != fact.fact_id,
                or_(*shared),
            )
            .order_by(FactModel.confidence.desc(), FactModel.id.asc())
            .limit(limit)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]


class SourceSelector(BaseSelector[SourceDocumentModel]):
    """Existence checks for the documents and communications facts cite."""

    def is_active_source(self, source_type: SourceType, source_id: UUID) -> bool:
        if source_type == SourceType.DOCUMENT:
            model = SourceDocumentModel
        elif source_type == SourceType.COMMUNICATION:
            model = SourceCommunicationModel
        else:
            return False
        found = self.session.execute(
            select(model.id).where(
                model.id == source_id,
                model.is_active.is_(True),
            )
        ).scalar_one_or_none()
        return found is not None
