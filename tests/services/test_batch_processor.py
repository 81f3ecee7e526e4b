"""
Tests for BulkApprovalProcessor -- per-item isolation of bulk decisions.

Covers:
- Mixed batches: successes, domain failures, missing facts
- Caller-level gate failing the whole call before any item
- Savepoint rollback of a failing item leaves other items committed
- Unexpected exceptions reported as UNHANDLED_EXCEPTION
- Per-item decision records followed by one batch record
"""

from uuid import uuid4

import pytest

from knowledge_kernel.domain.facts import ApprovalAction, ApprovalStatus
from knowledge_kernel.domain.workflow import BulkApprovalRequest
from knowledge_kernel.exceptions import InsufficientPermissionError
from knowledge_kernel.selectors.fact_selector import FactSelector
from knowledge_services.batch_processor import BULK_ENTITY_ID, BulkApprovalProcessor
from knowledge_services.decision_processor import ApprovalDecisionProcessor

KM = ("Knowledge_Manager",)


@pytest.fixture
def bulk(session, workflow_config, audit_sink, deterministic_clock):
    return BulkApprovalProcessor(
        session, workflow_config, audit_sink, deterministic_clock,
    )


class ExplodingDecisionProcessor(ApprovalDecisionProcessor):
    """Raises a non-domain error for one chosen fact."""

    def __init__(self, *args, explode_on, **kwargs):
        super().__init__(*args, **kwargs)
        self.explode_on = explode_on

    def decide(self, fact_id, decision, caller_id, caller_roles):
        if fact_id == self.explode_on:
            raise RuntimeError("storage hiccup")
        return super().decide(fact_id, decision, caller_id, caller_roles)


class TestBulkApply:

    def test_two_approved_one_missing(self, bulk, make_fact, actor_id):
        first = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        second = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        missing = uuid4()

        result = bulk.bulk_apply(
            BulkApprovalRequest(
                fact_ids=(first.fact_id, missing, second.fact_id),
                action=ApprovalAction.APPROVE,
            ),
            actor_id,
            KM,
        )

        assert result.summary.total == 3
        assert result.summary.successful == 2
        assert result.summary.failed == 1
        assert result.successful_ids == (first.fact_id, second.fact_id)
        assert result.failed_ids == (missing,)
        failure = result.failed[0]
        assert failure.code == "FACT_NOT_FOUND"
        assert failure.error == f"Fact not found: {missing}"
        assert all(
            s.fact.approval_status == ApprovalStatus.APPROVED for s in result.successful
        )

    def test_ids_partition_input(self, bulk, make_fact, actor_id):
        ok = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        wrong_state = make_fact(status=ApprovalStatus.APPROVED)
        ids = (ok.fact_id, wrong_state.fact_id)

        result = bulk.bulk_apply(
            BulkApprovalRequest(fact_ids=ids, action=ApprovalAction.APPROVE),
            actor_id,
            KM,
        )

        assert set(result.successful_ids) | set(result.failed_ids) == set(ids)
        assert not set(result.successful_ids) & set(result.failed_ids)
        assert result.failed[0].code == "TRANSITION_NOT_ALLOWED"

    def test_reject_without_comment_fails_per_item(self, bulk, make_fact, actor_id):
        facts = [make_fact(status=ApprovalStatus.UNDER_REVIEW) for _ in range(2)]

        result = bulk.bulk_apply(
            BulkApprovalRequest(
                fact_ids=tuple(f.fact_id for f in facts),
                action=ApprovalAction.REJECT,
            ),
            actor_id,
            KM,
        )

        assert result.summary.failed == 2
        assert {f.code for f in result.failed} == {"COMMENT_REQUIRED"}

    def test_reject_with_comment(self, bulk, make_fact, actor_id):
        fact = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        result = bulk.bulk_apply(
            BulkApprovalRequest(
                fact_ids=(fact.fact_id,),
                action=ApprovalAction.REJECT,
                comments="Superseded by Q3 report",
            ),
            actor_id,
            KM,
        )
        rejected = result.successful[0].fact
        assert rejected.approval_status == ApprovalStatus.REJECTED
        assert rejected.rejection_reason == "Superseded by Q3 report"

    def test_gate_failure_processes_nothing(
        self, session, bulk, make_fact, actor_id, audit_sink,
    ):
        fact = make_fact(status=ApprovalStatus.UNDER_REVIEW)

        with pytest.raises(InsufficientPermissionError):
            bulk.bulk_apply(
                BulkApprovalRequest(fact_ids=(fact.fact_id,), action=ApprovalAction.APPROVE),
                actor_id,
                ["user"],
            )

        assert FactSelector(session).get(fact.fact_id).approval_status == (
            ApprovalStatus.UNDER_REVIEW
        )
        assert audit_sink.records == []

    def test_unhandled_exception_isolated(
        self,
        session,
        workflow_config,
        audit_sink,
        deterministic_clock,
        make_fact,
        actor_id,
        captured_logs,
    ):
        before = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        boom = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        after = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        processor = ExplodingDecisionProcessor(
            session, workflow_config, audit_sink, deterministic_clock,
            explode_on=boom.fact_id,
        )
        bulk = BulkApprovalProcessor(
            session, workflow_config, audit_sink, deterministic_clock,
            decision_processor=processor,
        )

        result = bulk.bulk_apply(
            BulkApprovalRequest(
                fact_ids=(before.fact_id, boom.fact_id, after.fact_id),
                action=ApprovalAction.APPROVE,
            ),
            actor_id,
            KM,
        )

        assert result.successful_ids == (before.fact_id, after.fact_id)
        assert result.failed[0].code == "UNHANDLED_EXCEPTION"
        assert result.failed[0].error == "storage hiccup"
        assert any(
            r["message"] == "bulk_item_unhandled_exception" for r in captured_logs()
        )

        selector = FactSelector(session)
        assert selector.get(before.fact_id).approval_status == ApprovalStatus.APPROVED
        assert selector.get(boom.fact_id).approval_status == ApprovalStatus.UNDER_REVIEW
        assert selector.get(after.fact_id).approval_status == ApprovalStatus.APPROVED


class TestBulkAudit:

    def test_item_records_then_batch_record(self, bulk, make_fact, actor_id, audit_sink):
        facts = [make_fact(status=ApprovalStatus.UNDER_REVIEW) for _ in range(3)]
        missing = uuid4()
        ids = tuple(f.fact_id for f in facts) + (missing,)

        bulk.bulk_apply(
            BulkApprovalRequest(fact_ids=ids, action=ApprovalAction.APPROVE, comments="Batch OK"),
            actor_id,
            KM,
        )

        assert audit_sink.actions() == ["APPROVE_FACT"] * 3 + ["BULK_APPROVE_FACTS"]
        assert [r["entity_id"] for r in audit_sink.records[:3]] == [
            str(f.fact_id) for f in facts
        ]
        record = audit_sink.records[-1]
        assert record["entity_type"] == "Fact"
        assert record["entity_id"] == BULK_ENTITY_ID
        assert record["new_values"]["fact_ids"] == [str(i) for i in ids]
        assert record["new_values"]["comments"] == "Batch OK"
        assert record["new_values"]["summary"] == {
            "total": 4, "successful": 3, "failed": 1,
        }

    def test_reject_batch_action_name(self, bulk, make_fact, actor_id, audit_sink):
        fact = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        bulk.bulk_apply(
            BulkApprovalRequest(
                fact_ids=(fact.fact_id,), action=ApprovalAction.REJECT, comments="No",
            ),
            actor_id,
            KM,
        )
        assert audit_sink.actions() == ["REJECT_FACT", "BULK_REJECT_FACTS"]

    def test_rolled_back_item_writes_no_item_record(
        self, bulk, make_fact, actor_id, audit_sink,
    ):
        approved = make_fact(status=ApprovalStatus.APPROVED)
        reviewing = make_fact(status=ApprovalStatus.UNDER_REVIEW)

        bulk.bulk_apply(
            BulkApprovalRequest(
                fact_ids=(approved.fact_id, reviewing.fact_id),
                action=ApprovalAction.APPROVE,
            ),
            actor_id,
            KM,
        )

        assert audit_sink.actions() == ["APPROVE_FACT", "BULK_APPROVE_FACTS"]
        assert audit_sink.records[0]["entity_id"] == str(reviewing.fact_id)

    def test_lifecycle_logged(self, bulk, make_fact, actor_id, captured_logs):
        fact = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        bulk.bulk_apply(
            BulkApprovalRequest(fact_ids=(fact.fact_id, uuid4()), action=ApprovalAction.APPROVE),
            actor_id,
            KM,
        )

        messages = [r["message"] for r in captured_logs()]
        assert messages.index("bulk_operation_started") < messages.index(
            "bulk_operation_completed"
        )
        assert "bulk_item_failed" in messages
        completed = next(r for r in captured_logs() if r["message"] == "bulk_operation_completed")
        assert completed["successful"] == 1
        assert completed["failed"] == 1
        assert "batch_id" in completed
        assert completed["action"] == "approve"
        assert "fact_id" not in completed

    def test_item_logs_carry_batch_and_fact(self, bulk, make_fact, actor_id, captured_logs):
        fact = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        missing = uuid4()
        bulk.bulk_apply(
            BulkApprovalRequest(fact_ids=(fact.fact_id, missing), action=ApprovalAction.APPROVE),
            actor_id,
            KM,
        )

        logs = captured_logs()
        batch_ids = {r["batch_id"] for r in logs if r["message"].startswith("bulk_operation")}
        assert len(batch_ids) == 1

        decided = next(r for r in logs if r["message"] == "fact_decision_recorded")
        assert decided["fact_id"] == str(fact.fact_id)
        assert decided["batch_id"] in batch_ids
        assert decided["action"] == "approve"

        item_failed = next(r for r in logs if r["message"] == "bulk_item_failed")
        assert item_failed["fact_id"] == str(missing)
        assert item_failed["batch_id"] in batch_ids
        assert item_failed["error_code"] == "FACT_NOT_FOUND"
