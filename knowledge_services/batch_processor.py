"""
BulkApprovalProcessor -- one decision applied to many facts.

Contract:
    - The caller-level gate runs once, before any item.  Failing it
      raises InsufficientPermissionError and nothing is processed.
    - Items are processed sequentially in input order.  Each runs inside
      its own SAVEPOINT; a failing item is rolled back alone and reported,
      and processing continues.
    - Domain errors become ``BulkItemFailure(fact_id, str(exc), exc.code)``;
      anything else is reported with code ``UNHANDLED_EXCEPTION``.
    - ``summary.total == summary.successful + summary.failed`` and the
      successful and failed ids partition the input.
    - Each successful item writes its own APPROVE_FACT / REJECT_FACT
      record through the decision processor; a rolled-back item writes
      none.  One batch record ``BULK_{ACTION}_FACTS`` (entity id
      ``bulk_operation``) follows the items.

Non-goals:
    - Size/duplicate validation of the id list (done at the service
      boundary, ApprovalQueueService.bulk_apply).
    - Does NOT commit.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from knowledge_config import WorkflowConfig
from knowledge_kernel.domain.clock import Clock, SystemClock
from knowledge_kernel.domain.facts import ApprovalAction, normalize_roles
from knowledge_kernel.domain.workflow import (
    BulkApprovalRequest,
    BulkApprovalResult,
    BulkItemFailure,
    BulkItemSuccess,
    BulkSummary,
)
from knowledge_kernel.exceptions import KnowledgeKernelError
from knowledge_kernel.logging_config import LogContext, get_logger
from knowledge_kernel.services.audit_sink import AuditSink, LoggingAuditSink

from knowledge_services.decision_processor import ApprovalDecisionProcessor, parse_action
from knowledge_services.role_authority import require_action_permission

logger = get_logger("services.batch_processor")

BULK_ENTITY_ID = "bulk_operation"


class BulkApprovalProcessor:
    """Applies a bulk request item by item with per-item isolation."""

    def __init__(
        self,
        session: Session,
        config: WorkflowConfig,
        audit_sink: AuditSink | None = None,
        clock: Clock | None = None,
        decision_processor: ApprovalDecisionProcessor | None = None,
    ) -> None:
        self._session = session
        self._config = config
        self._audit = audit_sink or LoggingAuditSink()
        self._clock = clock or SystemClock()
        self._processor = decision_processor or ApprovalDecisionProcessor(
            session, config, self._audit, self._clock,
        )

    def bulk_apply(
        self,
        request: BulkApprovalRequest,
        caller_id: UUID,
        caller_roles: Iterable[str],
    ) -> BulkApprovalResult:
        roles = normalize_roles(caller_roles)
        action = parse_action(request.action)
        require_action_permission(self._config.action_permissions, action, roles)

        batch_id = uuid4()
        successful: list[BulkItemSuccess] = []
        failed: list[BulkItemFailure] = []

        with LogContext.bind(actor_id=caller_id, batch_id=batch_id, action=action):
            logger.info(
                "bulk_operation_started",
                extra={"item_count": len(request.fact_ids)},
            )

            for fact_id in request.fact_ids:
                with LogContext.bind(fact_id=fact_id):
                    outcome = self._apply_item(request, fact_id, caller_id, roles)
                if isinstance(outcome, BulkItemSuccess):
                    successful.append(outcome)
                else:
                    failed.append(outcome)

            summary = BulkSummary(
                total=len(request.fact_ids),
                successful=len(successful),
                failed=len(failed),
            )

            logger.info(
                "bulk_operation_completed",
                extra={
                    "total": summary.total,
                    "successful": summary.successful,
                    "failed": summary.failed,
                },
            )

            self._record_audit(caller_id, action, request, summary)

        return BulkApprovalResult(
            successful=tuple(successful),
            failed=tuple(failed),
            summary=summary,
        )

    def _apply_item(
        self,
        request: BulkApprovalRequest,
        fact_id: UUID,
        caller_id: UUID,
        roles: frozenset[str],
    ) -> BulkItemSuccess | BulkItemFailure:
        savepoint = self._session.begin_nested()
        try:
            fact = self._processor.decide(
                fact_id, request.decision_for(fact_id), caller_id, roles,
            )
            savepoint.commit()
            return BulkItemSuccess(fact_id=fact_id, fact=fact)

        except KnowledgeKernelError as exc:
            savepoint.rollback()
            logger.info("bulk_item_failed", extra={"error_code": exc.code})
            return BulkItemFailure(fact_id=fact_id, error=str(exc), code=exc.code)

        except Exception as exc:
            savepoint.rollback()
            logger.exception("bulk_item_unhandled_exception")
            return BulkItemFailure(
                fact_id=fact_id, error=str(exc), code="UNHANDLED_EXCEPTION",
            )

    def _record_audit(
        self,
        caller_id: UUID,
        action: ApprovalAction,
        request: BulkApprovalRequest,
        summary: BulkSummary,
    ) -> None:
        audit_action = f"BULK_{action.value.upper()}_FACTS"
        try:
            self._audit.record(
                str(caller_id),
                audit_action,
                "Fact",
                BULK_ENTITY_ID,
                new_values={
                    "fact_ids": [str(fid) for fid in request.fact_ids],
                    "action": action.value,
                    "comments": request.comments,
                    "reason": request.reason,
                    "summary": {
                        "total": summary.total,
                        "successful": summary.successful,
                        "failed": summary.failed,
                    },
                },
            )
        except Exception:
            logger.exception(
                "audit_record_failed",
                extra={"audit_action": audit_action},
            )
