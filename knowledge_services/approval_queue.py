"""
ApprovalQueueService -- the approval workflow's public surface.

Responsibility:
    Backs the approval queue view and the review screen, and fronts the
    decision and batch processors for the request-handling layer.

Contract:
    - get_queue(): filtered, sorted, paged queue with global counters and
      page statistics.  Rows pass through the security classification
      filter after fetch.  ``pagination.total`` and ``has_more`` are
      computed BEFORE that filter; ``returned``/``hidden`` report what
      the filter did to the page.
    - get_fact_for_review(): one fact with related facts and the moves
      the caller may make.  A fact above the caller's clearance raises
      ClassificationAccessError, distinct from FactNotFoundError.
    - decide() / update_status(): single-fact transitions.
    - bulk_apply(): validates the id list (non-empty, no duplicates,
      bounded, approve/reject only), then delegates to the batch
      processor.
    - check_auto_approval() / auto_approve(): auto-approval evaluation
      and the approval it permits.

Non-goals:
    - Does NOT commit.
    - No full-text ranking; search is a case-insensitive substring match.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from knowledge_config import WorkflowConfig
from knowledge_engines import (
    allowed_transitions,
    check_auto_approval,
    filter_by_clearance,
    is_visible,
    summarize_facts,
)
from knowledge_kernel.domain.clock import Clock, SystemClock
from knowledge_kernel.domain.facts import (
    OPEN_QUEUE_STATUSES,
    ApprovalAction,
    ApprovalStatus,
    FactRecord,
    UserContext,
)
from knowledge_kernel.domain.queue import (
    FactReview,
    Pagination,
    QueueFilters,
    QueueOptions,
    QueuePage,
    QueueSummary,
)
from knowledge_kernel.domain.workflow import (
    ApprovalDecision,
    BulkApprovalRequest,
    BulkApprovalResult,
)
from knowledge_kernel.exceptions import (
    AutoApprovalCriteriaError,
    ClassificationAccessError,
    FactNotFoundError,
    InvalidBatchError,
    InvalidQueryError,
)
from knowledge_kernel.logging_config import get_logger
from knowledge_kernel.selectors.fact_selector import FactSelector
from knowledge_kernel.services.audit_sink import AuditSink, LoggingAuditSink

from knowledge_services.batch_processor import BulkApprovalProcessor
from knowledge_services.decision_processor import ApprovalDecisionProcessor, parse_action

logger = get_logger("services.approval_queue")

_BULK_ACTIONS = (ApprovalAction.APPROVE, ApprovalAction.REJECT)
_AVERAGE_STATUSES = (ApprovalStatus.PENDING, ApprovalStatus.UNDER_REVIEW)


class ApprovalQueueService:
    """Facade over the queue query engine and the decision processors."""

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
        self._decisions = ApprovalDecisionProcessor(
            session, config, self._audit, self._clock,
        )
        self._bulk = BulkApprovalProcessor(
            session,
            config,
            self._audit,
            self._clock,
            decision_processor=self._decisions,
        )

    # -------------------------------------------------------------------------
    # Queue
    # -------------------------------------------------------------------------

    def get_queue(
        self,
        filters: QueueFilters | None,
        options: QueueOptions | None,
        context: UserContext,
    ) -> QueuePage:
        filters = filters or QueueFilters()
        options = options or QueueOptions(limit=self._config.default_limit)
        self._validate_query(filters, options)

        total = self._facts.count_queue(filters)
        rows = self._facts.fetch_queue(filters, options)
        visible = filter_by_clearance(rows, context.clearance_level)

        pagination = Pagination(
            total=total,
            limit=options.limit,
            offset=options.offset,
            has_more=options.offset + options.limit < total,
            returned=len(visible),
            hidden=len(rows) - len(visible),
        )

        counts = self._facts.status_counts(OPEN_QUEUE_STATUSES)
        summary = QueueSummary(
            total_pending=counts[ApprovalStatus.PENDING],
            total_under_review=counts[ApprovalStatus.UNDER_REVIEW],
            total_needs_review=counts[ApprovalStatus.NEEDS_REVIEW],
            average_confidence=self._facts.average_confidence(_AVERAGE_STATUSES),
            page=summarize_facts(visible),
        )

        logger.debug(
            "approval_queue_fetched",
            extra={
                "total": total,
                "returned": pagination.returned,
                "hidden": pagination.hidden,
                "sort_by": options.sort_by.value,
            },
        )

        return QueuePage(items=tuple(visible), pagination=pagination, summary=summary)

    def _validate_query(self, filters: QueueFilters, options: QueueOptions) -> None:
        if not 1 <= options.limit <= self._config.max_limit:
            raise InvalidQueryError(
                "limit", f"must be between 1 and {self._config.max_limit}",
            )
        if options.offset < 0:
            raise InvalidQueryError("offset", "must not be negative")

        for name in ("min_confidence", "max_confidence"):
            value = getattr(filters, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise InvalidQueryError(name, "must be between 0.0 and 1.0")
        if (
            filters.min_confidence is not None
            and filters.max_confidence is not None
            and filters.min_confidence > filters.max_confidence
        ):
            raise InvalidQueryError(
                "confidence range", "min_confidence exceeds max_confidence",
            )

        if (
            filters.extracted_from is not None
            and filters.extracted_to is not None
            and filters.extracted_from > filters.extracted_to
        ):
            raise InvalidQueryError(
                "extraction date range", "extracted_from is after extracted_to",
            )

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def get_fact_for_review(self, fact_id: UUID, context: UserContext) -> FactReview:
        fact = self._visible_fact(fact_id, context)
        related = filter_by_clearance(
            self._facts.related(fact, limit=self._config.related_facts_limit),
            context.clearance_level,
        )
        return FactReview(
            fact=fact,
            related_facts=tuple(related),
            allowed_transitions=allowed_transitions(
                self._config.table, fact.approval_status, context.roles,
            ),
        )

    def _visible_fact(self, fact_id: UUID, context: UserContext) -> FactRecord:
        fact = self._facts.get(fact_id)
        if fact is None:
            raise FactNotFoundError(str(fact_id))
        if not is_visible(fact.security_classification, context.clearance_level):
            logger.warning(
                "fact_access_denied",
                extra={
                    "denied_fact_id": str(fact_id),
                    "clearance_level": context.clearance_level,
                },
            )
            raise ClassificationAccessError(str(fact_id), context.clearance_level)
        return fact

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    def decide(
        self,
        fact_id: UUID,
        decision: ApprovalDecision,
        caller_id: UUID,
        caller_roles: Iterable[str],
    ) -> FactRecord:
        return self._decisions.decide(fact_id, decision, caller_id, caller_roles)

    def update_status(
        self,
        fact_id: UUID,
        new_status: ApprovalStatus,
        caller_id: UUID,
        caller_roles: Iterable[str],
        comments: str | None = None,
    ) -> FactRecord:
        return self._decisions.update_status(
            fact_id, new_status, caller_id, caller_roles, comments,
        )

    def bulk_apply(
        self,
        request: BulkApprovalRequest,
        caller_id: UUID,
        caller_roles: Iterable[str],
    ) -> BulkApprovalResult:
        size = len(request.fact_ids)
        if size == 0:
            raise InvalidBatchError("Bulk request contains no fact ids", size)
        if size > self._config.max_batch_size:
            raise InvalidBatchError(
                f"Bulk request exceeds the maximum of "
                f"{self._config.max_batch_size} facts",
                size,
            )
        if len(set(request.fact_ids)) != size:
            raise InvalidBatchError("Bulk request contains duplicate fact ids", size)
        if parse_action(request.action) not in _BULK_ACTIONS:
            raise InvalidBatchError(
                "Bulk operations support approve and reject only", size,
            )
        return self._bulk.bulk_apply(request, caller_id, caller_roles)

    # -------------------------------------------------------------------------
    # Auto-approval
    # -------------------------------------------------------------------------

    def check_auto_approval(self, fact_id: UUID, caller_roles: Iterable[str]) -> bool:
        fact = self._facts.get(fact_id)
        if fact is None:
            raise FactNotFoundError(str(fact_id))
        return check_auto_approval(self._config.table, fact, caller_roles)

    def auto_approve(
        self,
        fact_id: UUID,
        caller_id: UUID,
        caller_roles: Iterable[str],
    ) -> FactRecord:
        """Approve a Pending fact directly when it qualifies."""
        fact = self._facts.get(fact_id)
        if fact is None:
            raise FactNotFoundError(str(fact_id))
        if not check_auto_approval(self._config.table, fact, caller_roles):
            raise AutoApprovalCriteriaError(
                str(fact_id), fact.confidence, fact.fact_type.value,
            )
        return self._decisions.decide(
            fact_id,
            ApprovalDecision(
                fact_id=fact_id,
                action=ApprovalAction.APPROVE,
                comments="Auto-approved",
                metadata={"auto_approved": True},
            ),
            caller_id,
            caller_roles,
        )
