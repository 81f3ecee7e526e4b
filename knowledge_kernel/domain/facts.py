"""
Fact domain types (``knowledge_kernel.domain.facts``).

Responsibility
--------------
Closed enums and frozen value objects describing facts, their
provenance, their classification and the caller's identity.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* ``SecurityClassification`` carries an explicit total order via
  ``rank``; comparisons never rely on string ordering.
* ``FactRecord`` is immutable; a changed fact is a new record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


# =========================================================================
# Enumerations
# =========================================================================


class ApprovalStatus(str, Enum):
    """Fact approval lifecycle states."""

    PENDING = "Pending"
    UNDER_REVIEW = "Under_Review"
    NEEDS_REVIEW = "Needs_Review"
    ESCALATED = "Escalated"
    APPROVED = "Approved"
    REJECTED = "Rejected"


# Statuses shown by the approval queue when the caller gives none.
OPEN_QUEUE_STATUSES: tuple[ApprovalStatus, ...] = (
    ApprovalStatus.PENDING,
    ApprovalStatus.UNDER_REVIEW,
    ApprovalStatus.NEEDS_REVIEW,
)


class FactType(str, Enum):
    """Category of an extracted fact."""

    ENTITY = "Entity"
    RELATIONSHIP = "Relationship"
    EVENT = "Event"
    METRIC = "Metric"
    CLASSIFICATION = "Classification"
    TECHNICAL_SPECIFICATION = "Technical_Specification"
    CONTACT_INFORMATION = "Contact_Information"
    OTHER = "Other"


class SourceType(str, Enum):
    """Where a fact was extracted from."""

    DOCUMENT = "DOCUMENT"
    COMMUNICATION = "COMMUNICATION"
    OTHER = "OTHER"


class SecurityClassification(str, Enum):
    """Security tier, ordered UNCLASSIFIED < ... < TOP_SECRET."""

    UNCLASSIFIED = "UNCLASSIFIED"
    CONFIDENTIAL = "CONFIDENTIAL"
    SECRET = "SECRET"
    TOP_SECRET = "TOP_SECRET"

    @property
    def rank(self) -> int:
        return _CLASSIFICATION_RANKS[self]

    @classmethod
    def parse(cls, value: Any) -> SecurityClassification | None:
        """Return the member for ``value`` or None when unrecognized."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


_CLASSIFICATION_RANKS: dict[SecurityClassification, int] = {
    SecurityClassification.UNCLASSIFIED: 0,
    SecurityClassification.CONFIDENTIAL: 1,
    SecurityClassification.SECRET: 2,
    SecurityClassification.TOP_SECRET: 3,
}


class Role(str, Enum):
    """Role names understood by the default workflow configuration.

    Callers may hold roles outside this set; they simply match no rule.
    """

    KNOWLEDGE_MANAGER = "Knowledge_Manager"
    PROGRAM_MANAGER = "Program_Manager"
    APPROVER = "approver"
    REVIEWER = "reviewer"
    ADMIN = "admin"


class ApprovalAction(str, Enum):
    """Decisions a caller can make on a fact."""

    APPROVE = "approve"
    REJECT = "reject"
    NEEDS_REVIEW = "needs_review"
    ESCALATE = "escalate"
    REVIEW = "review"


ACTION_TARGET_STATUS: dict[ApprovalAction, ApprovalStatus] = {
    ApprovalAction.APPROVE: ApprovalStatus.APPROVED,
    ApprovalAction.REJECT: ApprovalStatus.REJECTED,
    ApprovalAction.NEEDS_REVIEW: ApprovalStatus.NEEDS_REVIEW,
    ApprovalAction.ESCALATE: ApprovalStatus.ESCALATED,
    ApprovalAction.REVIEW: ApprovalStatus.UNDER_REVIEW,
}


def action_for_status(status: ApprovalStatus) -> ApprovalAction:
    """Map a target status back to the action category that reaches it."""
    for action, target in ACTION_TARGET_STATUS.items():
        if target == status:
            return action
    # Pending is only reachable by sending a fact back for review.
    return ApprovalAction.REVIEW


def normalize_roles(roles: Any) -> frozenset[str]:
    """Coerce a caller's role collection into a frozenset of role names."""
    if not roles:
        return frozenset()
    if isinstance(roles, str):
        roles = (roles,)
    return frozenset(r.value if isinstance(r, Enum) else str(r) for r in roles)


# =========================================================================
# Identity
# =========================================================================


@dataclass(frozen=True)
class UserContext:
    """Request-scoped caller identity handed over by the auth layer.

    ``clearance_level`` is kept as the raw string so that unrecognized
    values can fail closed in the classification filter.
    """

    user_id: UUID
    roles: frozenset[str] = frozenset()
    clearance_level: str = SecurityClassification.UNCLASSIFIED.value

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", normalize_roles(self.roles))
        if isinstance(self.clearance_level, Enum):
            object.__setattr__(self, "clearance_level", self.clearance_level.value)


# =========================================================================
# Fact snapshot
# =========================================================================


@dataclass(frozen=True)
class FactRecord:
    """Immutable snapshot of a fact row."""

    fact_id: UUID
    fact_type: FactType
    content: str
    confidence: float
    base_confidence: float
    approval_status: ApprovalStatus
    summary: str | None = None
    extraction_metadata: dict[str, Any] = field(default_factory=dict)
    source_document_id: UUID | None = None
    source_communication_id: UUID | None = None
    security_classification: SecurityClassification | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    decided_by: UUID | None = None
    decided_at: datetime | None = None
    extracted_by: UUID | None = None
    extracted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_active: bool = True
    version: int = 1

    @property
    def source_type(self) -> SourceType:
        if self.source_document_id is not None:
            return SourceType.DOCUMENT
        if self.source_communication_id is not None:
            return SourceType.COMMUNICATION
        return SourceType.OTHER


# =========================================================================
# Submission and edit payloads
# =========================================================================


@dataclass(frozen=True)
class FactSubmission:
    """Input for creating a fact from an extraction."""

    fact_type: FactType
    content: str
    confidence: float
    summary: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    source_document_id: UUID | None = None
    source_communication_id: UUID | None = None
    security_classification: SecurityClassification | None = SecurityClassification.UNCLASSIFIED
    extracted_at: datetime | None = None
    initial_status: ApprovalStatus = ApprovalStatus.PENDING


@dataclass(frozen=True)
class FactChanges:
    """Content edits to an existing fact.  ``None`` means unchanged."""

    fact_type: FactType | None = None
    content: str | None = None
    summary: str | None = None
    confidence: float | None = None
    metadata: dict[str, Any] | None = None
    security_classification: SecurityClassification | None = None
