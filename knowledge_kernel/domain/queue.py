"""
Approval queue query types (``knowledge_kernel.domain.queue``).

Frozen request and result objects for the approval queue view.  Every
filter group is optional; set groups combine with logical AND.

Pagination counts: ``Pagination.total`` is the number of rows matching
the filters BEFORE the security classification overlay.  ``returned``
and ``hidden`` describe what the overlay did to the current page.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from knowledge_kernel.domain.facts import (
    ApprovalStatus,
    FactRecord,
    FactType,
    SecurityClassification,
    SourceType,
)
from knowledge_kernel.domain.workflow import AllowedTransition


class SortBy(str, Enum):
    CONFIDENCE = "confidence"
    CREATED_AT = "created_at"
    PRIORITY = "priority"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class QueueFilters:
    statuses: tuple[ApprovalStatus, ...] | None = None
    min_confidence: float | None = None
    max_confidence: float | None = None
    fact_types: tuple[FactType, ...] = ()
    source_type: SourceType | None = None
    extracted_from: datetime | None = None
    extracted_to: datetime | None = None
    reviewer_id: UUID | None = None
    submitter_id: UUID | None = None
    security_classification: SecurityClassification | None = None
    search: str | None = None


@dataclass(frozen=True)
class QueueOptions:
    sort_by: SortBy = SortBy.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True)
class Pagination:
    total: int
    limit: int
    offset: int
    has_more: bool
    returned: int
    hidden: int


@dataclass(frozen=True)
class FactStatistics:
    """Aggregates over a list of facts."""

    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    average_confidence: float = 0.0


@dataclass(frozen=True)
class QueueSummary:
    """Global queue counters plus statistics for the returned page.

    The global counters ignore the request's filters.
    """

    total_pending: int
    total_under_review: int
    total_needs_review: int
    average_confidence: float
    page: FactStatistics = field(default_factory=FactStatistics)


@dataclass(frozen=True)
class QueuePage:
    items: tuple[FactRecord, ...]
    pagination: Pagination
    summary: QueueSummary


@dataclass(frozen=True)
class FactReview:
    """A single fact prepared for a reviewer."""

    fact: FactRecord
    related_facts: tuple[FactRecord, ...]
    allowed_transitions: tuple[AllowedTransition, ...]
