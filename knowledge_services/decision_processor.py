"""
ApprovalDecisionProcessor -- applies one caller's decision to one fact.

Contract:
    ``decide()`` maps an action to its target status; ``update_status()``
    takes the target status directly.  Both run the same pipeline:

        0. action/status parsing        -> UnknownValueError
        1. action-category gate         -> InsufficientPermissionError
        2. active fact lookup           -> FactNotFoundError
        3. transition table             -> TransitionNotAllowedError /
                                           InsufficientRoleError
        4. required comment             -> CommentRequiredError
        5. rejection reason             -> RejectionReasonRequiredError
        6. enforced auto-approval rule  -> AutoApprovalCriteriaError
        7. conditional write            -> TransitionConflictError

    Nothing is written unless every check passes.

Side effects on the fact:
    - decided_by/decided_at always record the caller and the clock.
    - approved_by/approved_at are set on entering Approved and cleared
      otherwise.
    - rejection_reason is set on entering Rejected (structured reason,
      else the comment) and cleared otherwise.
    - reviewed_by/reviewed_at are set on entering Under_Review.

Audit:
    APPROVE_FACT / REJECT_FACT / UPDATE_APPROVAL_STATUS through the
    injected sink.  Sink failures are logged and never fail the decision.

Non-goals:
    - Does NOT commit.  The caller owns the transaction.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from knowledge_config import WorkflowConfig
from knowledge_engines import evaluate_auto_approval, validate_transition
from knowledge_kernel.domain.clock import Clock, SystemClock
from knowledge_kernel.domain.facts import (
    ACTION_TARGET_STATUS,
    ApprovalAction,
    ApprovalStatus,
    FactRecord,
    action_for_status,
    normalize_roles,
)
from knowledge_kernel.domain.workflow import ApprovalDecision
from knowledge_kernel.exceptions import (
    AutoApprovalCriteriaError,
    CommentRequiredError,
    FactNotFoundError,
    InsufficientRoleError,
    RejectionReasonRequiredError,
    TransitionNotAllowedError,
    UnknownValueError,
)
from knowledge_kernel.logging_config import LogContext, get_logger
from knowledge_kernel.selectors.fact_selector import FactSelector
from knowledge_kernel.services.audit_sink import AuditSink, LoggingAuditSink
from knowledge_kernel.services.fact_writer import FactWriter

from knowledge_services.role_authority import require_action_permission

logger = get_logger("services.decision_processor")

_AUDIT_ACTIONS: dict[ApprovalStatus, str] = {
    ApprovalStatus.APPROVED: "APPROVE_FACT",
    ApprovalStatus.REJECTED: "REJECT_FACT",
}


def parse_action(value: Any) -> ApprovalAction:
    try:
        return ApprovalAction(value)
    except ValueError:
        raise UnknownValueError("action", value) from None


def parse_status(value: Any) -> ApprovalStatus:
    try:
        return ApprovalStatus(value)
    except ValueError:
        raise UnknownValueError("status", value) from None


class ApprovalDecisionProcessor:
    """Single-fact transition orchestrator."""

    def __init__(
        self,
        session: Session,
        config: WorkflowConfig,
        audit_sink: AuditSink | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._config = config
        self._audit = audit_sink or LoggingAuditSink()
        self._clock = clock or SystemClock()
        self._facts = FactSelector(session)
        self._writer = FactWriter(session)

    def decide(
        self,
        fact_id: UUID,
        decision: ApprovalDecision,
        caller_id: UUID,
        caller_roles: Iterable[str],
    ) -> FactRecord:
        action = parse_action(decision.action)
        return self._apply(
            fact_id,
            action,
            ACTION_TARGET_STATUS[action],
            caller_id,
            caller_roles,
            comments=decision.comments,
            reason=decision.reason,
            metadata=decision.metadata,
        )

    def update_status(
        self,
        fact_id: UUID,
        new_status: ApprovalStatus,
        caller_id: UUID,
        caller_roles: Iterable[str],
        comments: str | None = None,
    ) -> FactRecord:
        target = parse_status(new_status)
        return self._apply(
            fact_id,
            action_for_status(target),
            target,
            caller_id,
            caller_roles,
            comments=comments,
        )

    def _apply(
        self,
        fact_id: UUID,
        action: ApprovalAction,
        target: ApprovalStatus,
        caller_id: UUID,
        caller_roles: Iterable[str],
        comments: str | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> FactRecord:
        roles = normalize_roles(caller_roles)

        with LogContext.bind(actor_id=caller_id, fact_id=fact_id, action=action):
            require_action_permission(self._config.action_permissions, action, roles)

            fact = self._facts.get(fact_id)
            if fact is None:
                raise FactNotFoundError(str(fact_id))

            check = validate_transition(
                self._config.table, fact.approval_status, target, roles,
            )
            if not check.allowed:
                if check.rule is None:
                    raise TransitionNotAllowedError(
                        fact.approval_status.value, target.value, check.reason,
                    )
                raise InsufficientRoleError(
                    fact.approval_status.value,
                    target.value,
                    tuple(sorted(check.rule.allowed_roles)),
                    check.reason,
                )

            comment_text = (comments or "").strip()
            if check.requires_comment and not comment_text:
                raise CommentRequiredError(fact.approval_status.value, target.value)

            rejection_reason = None
            if target == ApprovalStatus.REJECTED:
                rejection_reason = (reason or "").strip() or comment_text
                if not rejection_reason:
                    raise RejectionReasonRequiredError(str(fact_id))

            auto = check.rule.auto_approval if check.rule is not None else None
            if auto is not None and auto.enforce and not evaluate_auto_approval(auto, fact):
                raise AutoApprovalCriteriaError(
                    str(fact_id), fact.confidence, fact.fact_type.value,
                )

            now = self._clock.now()
            updated = self._writer.apply_transition(
                fact.fact_id,
                fact.approval_status,
                fact.version,
                self._transition_values(target, caller_id, now, rejection_reason),
                now,
            )

            logger.info(
                "fact_decision_recorded",
                extra={
                    "from_status": fact.approval_status.value,
                    "to_status": target.value,
                    "version": updated.version,
                },
            )

            self._record_audit(
                caller_id,
                _AUDIT_ACTIONS.get(target, "UPDATE_APPROVAL_STATUS"),
                fact,
                updated,
                comments=comments,
                reason=rejection_reason,
                metadata=metadata,
            )

            return updated

    @staticmethod
    def _transition_values(
        target: ApprovalStatus,
        caller_id: UUID,
        now: datetime,
        rejection_reason: str | None,
    ) -> dict[str, Any]:
        values: dict[str, Any] = {
            "approval_status": target.value,
            "decided_by": caller_id,
            "decided_at": now,
            "approved_by": None,
            "approved_at": None,
            "rejection_reason": None,
        }
        if target == ApprovalStatus.APPROVED:
            values["approved_by"] = caller_id
            values["approved_at"] = now
        elif target == ApprovalStatus.REJECTED:
            values["rejection_reason"] = rejection_reason
        elif target == ApprovalStatus.UNDER_REVIEW:
            values["reviewed_by"] = caller_id
            values["reviewed_at"] = now
        return values

    def _record_audit(
        self,
        caller_id: UUID,
        audit_action: str,
        before: FactRecord,
        after: FactRecord,
        comments: str | None,
        reason: str | None,
        metadata: dict[str, Any] | None,
    ) -> None:
        new_values: dict[str, Any] = {
            "approval_status": after.approval_status.value,
            "comments": comments,
        }
        if reason is not None:
            new_values["rejection_reason"] = reason
        if metadata:
            new_values["metadata"] = dict(metadata)

        try:
            self._audit.record(
                str(caller_id),
                audit_action,
                "Fact",
                str(after.fact_id),
                old_values={"approval_status": before.approval_status.value},
                new_values=new_values,
            )
        except Exception:
            logger.exception(
                "audit_record_failed",
                extra={"audit_action": audit_action},
            )
