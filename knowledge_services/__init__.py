"""
knowledge_services -- orchestration over the kernel, engines and config.

Public surface for the request-handling layer:
    ApprovalQueueService   queue view, review view, decisions, bulk, auto-approval
    FactService            submission, content edits, soft delete

Lower-level pieces (ApprovalDecisionProcessor, BulkApprovalProcessor,
role_authority) are importable for composition and tests.
"""

from knowledge_services.approval_queue import ApprovalQueueService
from knowledge_services.batch_processor import BulkApprovalProcessor
from knowledge_services.decision_processor import ApprovalDecisionProcessor
from knowledge_services.fact_service import FactService
from knowledge_services.role_authority import (
    check_action_permission,
    require_action_permission,
)

__all__ = [
    "ApprovalDecisionProcessor",
    "ApprovalQueueService",
    "BulkApprovalProcessor",
    "FactService",
    "check_action_permission",
    "require_action_permission",
]
