"""
Approval workflow domain types (``knowledge_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the fact approval engine: transition rules and
their auto-approval predicates, the indexed transition table, decision
requests, validation results and bulk operation reports.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``domain/facts``.

Invariants enforced
-------------------
* At most one rule per ``(from_status, to_status)`` pair;
  ``TransitionTable`` refuses duplicates.
* ``TransitionTable`` is indexed by ``from_status`` once, at construction.
* ``BulkSummary.total == successful + failed``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator
from uuid import UUID

from knowledge_kernel.domain.facts import (
    ApprovalAction,
    ApprovalStatus,
    FactRecord,
    FactType,
)


# =========================================================================
# Rules
# =========================================================================


@dataclass(frozen=True)
class AutoApprovalRule:
    """Conditions under which a fact may be approved without review.

    ``allowed_fact_types`` empty means any type.  ``enforce`` makes the
    decision processor refuse the transition for facts that fail the
    conditions instead of treating the rule as advisory only.
    """

    min_confidence: float | None = None
    allowed_fact_types: frozenset[FactType] = frozenset()
    trusted_sources: bool = False
    enforce: bool = True


@dataclass(frozen=True)
class WorkflowTransition:
    """A single allowed status change."""

    from_status: ApprovalStatus
    to_status: ApprovalStatus
    allowed_roles: frozenset[str]
    requires_comment: bool = False
    auto_approval: AutoApprovalRule | None = None

    @property
    def key(self) -> tuple[ApprovalStatus, ApprovalStatus]:
        return (self.from_status, self.to_status)

    def permits(self, caller_roles: frozenset[str]) -> bool:
        return bool(self.allowed_roles & caller_roles)


class TransitionTable:
    """Immutable transition rules indexed by source status.

    Lookups are O(1) per ``from_status``; rule order inside a source
    status is preserved from the configuration.
    """

    def __init__(self, transitions: Iterable[WorkflowTransition]):
        rules = tuple(transitions)
        index: dict[ApprovalStatus, dict[ApprovalStatus, WorkflowTransition]] = {}
        for rule in rules:
            outgoing = index.setdefault(rule.from_status, {})
            if rule.to_status in outgoing:
                raise ValueError(
                    f"Duplicate transition rule {rule.from_status.value} -> "
                    f"{rule.to_status.value}"
                )
            outgoing[rule.to_status] = rule
        self._rules = rules
        self._index = index

    def find(
        self,
        from_status: ApprovalStatus,
        to_status: ApprovalStatus,
    ) -> WorkflowTransition | None:
        return self._index.get(from_status, {}).get(to_status)

    def outgoing(self, from_status: ApprovalStatus) -> tuple[WorkflowTransition, ...]:
        return tuple(self._index.get(from_status, {}).values())

    def __iter__(self) -> Iterator[WorkflowTransition]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return self.find(key[0], key[1]) is not None


@dataclass(frozen=True)
class TransitionCheck:
    """Result of validating a status change for a caller."""

    allowed: bool
    requires_comment: bool = False
    reason: str = ""
    rule: WorkflowTransition | None = None


@dataclass(frozen=True)
class AllowedTransition:
    """A next step offered to a caller in the review view."""

    to_status: ApprovalStatus
    requires_comment: bool
    auto_approval: AutoApprovalRule | None = None


@dataclass(frozen=True)
class ActionPermission:
    """Roles that may perform an action category at all."""

    action: ApprovalAction
    roles: frozenset[str]
    label: str
    verb: str


# =========================================================================
# Decisions
# =========================================================================


@dataclass(frozen=True)
class ApprovalDecision:
    """A caller's decision on one fact."""

    fact_id: UUID
    action: ApprovalAction
    comments: str | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BulkApprovalRequest:
    """One decision applied to many facts."""

    fact_ids: tuple[UUID, ...]
    action: ApprovalAction
    comments: str | None = None
    reason: str | None = None

    def decision_for(self, fact_id: UUID) -> ApprovalDecision:
        return ApprovalDecision(
            fact_id=fact_id,
            action=self.action,
            comments=self.comments,
            reason=self.reason,
        )


@dataclass(frozen=True)
class BulkItemSuccess:
    fact_id: UUID
    fact: FactRecord


@dataclass(frozen=True)
class BulkItemFailure:
    fact_id: UUID
    error: str
    code: str


@dataclass(frozen=True)
class BulkSummary:
    total: int
    successful: int
    failed: int


@dataclass(frozen=True)
class BulkApprovalResult:
    """Per-item report of a bulk operation, in input order."""

    successful: tuple[BulkItemSuccess, ...]
    failed: tuple[BulkItemFailure, ...]
    summary: BulkSummary

    @property
    def failed_ids(self) -> tuple[UUID, ...]:
        return tuple(f.fact_id for f in self.failed)

    @property
    def successful_ids(self) -> tuple[UUID, ...]:
        return tuple(s.fact_id for s in self.successful)
