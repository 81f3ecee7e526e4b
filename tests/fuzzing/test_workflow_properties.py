"""
Hypothesis-based property tests for the workflow engines.

Properties:
- Adjusted confidence always lies in [0, 1] for any base and flags
- A (from, to) pair absent from the table is never allowed, for any roles
- allowed_transitions only offers pairs validate_transition accepts
- The classification filter never shows an item above a known clearance
- Bulk results partition the input ids
"""

from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from knowledge_config import get_workflow_config
from knowledge_engines import (
    adjust_confidence,
    allowed_transitions,
    clearance_rank,
    filter_by_clearance,
    validate_transition,
)
from knowledge_kernel.domain.facts import (
    ApprovalAction,
    ApprovalStatus,
    Role,
    SecurityClassification,
    SourceType,
)
from knowledge_kernel.domain.workflow import BulkApprovalRequest
from knowledge_services.batch_processor import BulkApprovalProcessor

CONFIG = get_workflow_config()

statuses = st.sampled_from(list(ApprovalStatus))
role_sets = st.frozensets(
    st.one_of(st.sampled_from([r.value for r in Role]), st.text(max_size=12)),
    max_size=6,
)
flags = st.fixed_dictionaries(
    {},
    optional={
        "verified": st.one_of(st.booleans(), st.none(), st.text(max_size=4)),
        "uncertain": st.one_of(st.booleans(), st.integers()),
        "automated": st.booleans(),
    },
)
source_types = st.one_of(
    st.none(),
    st.sampled_from(list(SourceType)),
    st.text(max_size=15),
)


class TestConfidenceProperties:

    @given(
        base=st.floats(allow_nan=True, allow_infinity=True),
        metadata=flags,
        source_type=source_types,
    )
    def test_always_in_unit_interval(self, base, metadata, source_type):
        result = adjust_confidence(base, metadata, source_type)
        assert 0.0 <= result <= 1.0


class TestTransitionProperties:

    @given(from_status=statuses, to_status=statuses, roles=role_sets)
    def test_unlisted_pairs_never_allowed(self, from_status, to_status, roles):
        check = validate_transition(CONFIG.table, from_status, to_status, roles)
        if (from_status, to_status) not in CONFIG.table:
            assert not check.allowed
            assert check.rule is None

    @given(from_status=statuses, roles=role_sets)
    def test_offered_moves_are_valid(self, from_status, roles):
        for move in allowed_transitions(CONFIG.table, from_status, roles):
            check = validate_transition(CONFIG.table, from_status, move.to_status, roles)
            assert check.allowed
            assert check.requires_comment == move.requires_comment


class TestClassificationProperties:

    @given(
        labels=st.lists(
            st.one_of(
                st.none(),
                st.sampled_from([c.value for c in SecurityClassification]),
                st.text(max_size=10),
            ),
            max_size=20,
        ),
        clearance=st.sampled_from(list(SecurityClassification)),
    )
    def test_nothing_above_clearance(self, labels, clearance):
        items = [{"security_classification": label} for label in labels]
        for item in filter_by_clearance(items, clearance):
            rank = clearance_rank(item["security_classification"])
            if item["security_classification"] is None:
                continue
            if rank is None:
                assert clearance == SecurityClassification.TOP_SECRET
            else:
                assert rank <= clearance.rank


class TestBulkPartition:

    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(
        plan=st.lists(
            st.sampled_from(["review", "approved", "missing"]),
            min_size=1,
            max_size=8,
        ),
    )
    def test_results_partition_input(
        self, session, make_fact, actor_id, audit_sink, deterministic_clock, plan,
    ):
        status_for = {
            "review": ApprovalStatus.UNDER_REVIEW,
            "approved": ApprovalStatus.APPROVED,
        }
        ids = tuple(
            make_fact(status=status_for[kind]).fact_id if kind in status_for else uuid4()
            for kind in plan
        )
        bulk = BulkApprovalProcessor(session, CONFIG, audit_sink, deterministic_clock)

        result = bulk.bulk_apply(
            BulkApprovalRequest(fact_ids=ids, action=ApprovalAction.APPROVE),
            actor_id,
            ("Knowledge_Manager",),
        )

        assert result.summary.total == len(ids)
        assert result.summary.successful + result.summary.failed == len(ids)
        assert set(result.successful_ids).isdisjoint(result.failed_ids)
        assert set(result.successful_ids) | set(result.failed_ids) == set(ids)
        assert result.summary.successful == plan.count("review")
