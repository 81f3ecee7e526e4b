"""
knowledge_engines.transitions -- Table-driven approval status state machine.

Responsibility:
    Decide whether a caller may move a fact from one approval status to
    another and whether the move needs a comment; list the moves a
    caller may make from a status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import knowledge_kernel/domain/ types.

Invariants enforced:
    - A (from, to) pair absent from the table is never allowed, whatever
      the caller's roles.  There are no X -> X rules.
    - A present rule allows the move iff the caller holds at least one
      of its roles.

Failure modes:
    - Never raises; rejections are reported as ``TransitionCheck(allowed=False)``
      with a human-readable reason.  The decision processor turns them
      into typed errors.
"""

from __future__ import annotations

from collections.abc import Iterable

from knowledge_kernel.domain.facts import ApprovalStatus, normalize_roles
from knowledge_kernel.domain.workflow import (
    AllowedTransition,
    TransitionCheck,
    TransitionTable,
)

from knowledge_engines.tracer import traced_engine


@traced_engine(
    "transitions", "1.0",
    fingerprint_fields=("from_status", "to_status", "caller_roles"),
)
def validate_transition(
    table: TransitionTable,
    from_status: ApprovalStatus,
    to_status: ApprovalStatus,
    caller_roles: Iterable[str],
) -> TransitionCheck:
    rule = table.find(from_status, to_status)
    if rule is None:
        return TransitionCheck(
            allowed=False,
            reason=(
                f"Transition from {from_status.value} to {to_status.value} "
                "is not allowed"
            ),
        )

    if not rule.permits(normalize_roles(caller_roles)):
        required = ", ".join(sorted(rule.allowed_roles))
        return TransitionCheck(
            allowed=False,
            reason=f"User does not have required role. Required: {required}",
            rule=rule,
        )

    return TransitionCheck(
        allowed=True,
        requires_comment=rule.requires_comment,
        rule=rule,
    )


def allowed_transitions(
    table: TransitionTable,
    from_status: ApprovalStatus,
    caller_roles: Iterable[str],
) -> tuple[AllowedTransition, ...]:
    """Moves the caller may make from ``from_status``, in table order."""
    roles = normalize_roles(caller_roles)
    return tuple(
        AllowedTransition(
            to_status=rule.to_status,
            requires_comment=rule.requires_comment,
            auto_approval=rule.auto_approval,
        )
        for rule in table.outgoing(from_status)
        if rule.permits(roles)
    )
