"""
knowledge_engines.auto_approval -- Auto-approval rule evaluation.

Responsibility:
    Decide whether a fact qualifies for approval without manual review
    under the auxiliary rules attached to Pending -> Approved transitions.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A rule is satisfied only when ALL of its conditions hold:
      confidence floor, allowed fact types (when specified) and the
      trusted-source floor (when the rule asks for trusted sources).
    - Only rules the caller's roles permit are candidates; the first
      satisfied candidate wins.
    - Advisory only: nothing is persisted here.
"""

from __future__ import annotations

from collections.abc import Iterable

from knowledge_kernel.domain.facts import (
    ApprovalStatus,
    FactRecord,
    normalize_roles,
)
from knowledge_kernel.domain.workflow import (
    AutoApprovalRule,
    TransitionTable,
    WorkflowTransition,
)

from knowledge_engines.tracer import traced_engine

# Confidence an adjusted score must reach before its source counts as trusted.
TRUSTED_SOURCE_FLOOR = 0.8


def evaluate_auto_approval(rule: AutoApprovalRule, fact: FactRecord) -> bool:
    if rule.min_confidence is not None and fact.confidence < rule.min_confidence:
        return False
    if rule.allowed_fact_types and fact.fact_type not in rule.allowed_fact_types:
        return False
    if rule.trusted_sources and fact.confidence < TRUSTED_SOURCE_FLOOR:
        return False
    return True


def candidate_rules(
    table: TransitionTable,
    caller_roles: Iterable[str],
) -> tuple[WorkflowTransition, ...]:
    roles = normalize_roles(caller_roles)
    rule = table.find(ApprovalStatus.PENDING, ApprovalStatus.APPROVED)
    if rule is None or rule.auto_approval is None or not rule.permits(roles):
        return ()
    return (rule,)


@traced_engine("auto_approval", "1.0", fingerprint_fields=("caller_roles",))
def check_auto_approval(
    table: TransitionTable,
    fact: FactRecord,
    caller_roles: Iterable[str],
) -> bool:
    """True when some Pending -> Approved rule the caller may use is satisfied."""
    return any(
        evaluate_auto_approval(rule.auto_approval, fact)
        for rule in candidate_rules(table, caller_roles)
    )
