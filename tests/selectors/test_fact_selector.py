"""
Tests for FactSelector and SourceSelector.

Tests cover:
- Queue filters (status default, confidence range, type, source, dates,
  reviewer, submitter, classification, search)
- Ordering and pagination
- Global counters and average confidence
- Related fact discovery
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from knowledge_kernel.domain.facts import (
    ApprovalStatus,
    FactType,
    SecurityClassification,
    SourceType,
)
from knowledge_kernel.domain.queue import QueueFilters, QueueOptions, SortBy, SortOrder
from knowledge_kernel.selectors.fact_selector import FactSelector, SourceSelector

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def selector(session) -> FactSelector:
    return FactSelector(session)


def ids(facts):
    return [f.fact_id for f in facts]


class TestQueueFilters:

    def test_default_statuses_are_open_queue(self, selector, make_fact):
        pending = make_fact(status=ApprovalStatus.PENDING)
        review = make_fact(status=ApprovalStatus.UNDER_REVIEW)
        flagged = make_fact(status=ApprovalStatus.NEEDS_REVIEW)
        make_fact(status=ApprovalStatus.APPROVED)
        make_fact(status=ApprovalStatus.REJECTED)
        make_fact(status=ApprovalStatus.ESCALATED)

        found = set(ids(selector.fetch_queue(QueueFilters(), QueueOptions())))
        assert found == {pending.fact_id, review.fact_id, flagged.fact_id}
        assert selector.count_queue(QueueFilters()) == 3

    def test_explicit_statuses(self, selector, make_fact):
        escalated = make_fact(status=ApprovalStatus.ESCALATED)
        make_fact(status=ApprovalStatus.PENDING)
        filters = QueueFilters(statuses=(ApprovalStatus.ESCALATED,))
        assert ids(selector.fetch_queue(filters, QueueOptions())) == [escalated.fact_id]

    def test_inactive_facts_hidden(self, selector, make_fact):
        make_fact(is_active=False)
        assert selector.count_queue(QueueFilters()) == 0

    def test_confidence_range_inclusive(self, selector, make_fact):
        make_fact(confidence=0.3)
        low_edge = make_fact(confidence=0.5)
        high_edge = make_fact(confidence=0.8)
        make_fact(confidence=0.95)

        filters = QueueFilters(min_confidence=0.5, max_confidence=0.8)
        found = set(ids(selector.fetch_queue(filters, QueueOptions())))
        assert found == {low_edge.fact_id, high_edge.fact_id}

    def test_fact_types(self, selector, make_fact):
        metric = make_fact(fact_type=FactType.METRIC)
        event = make_fact(fact_type=FactType.EVENT)
        make_fact(fact_type=FactType.ENTITY)

        filters = QueueFilters(fact_types=(FactType.METRIC, FactType.EVENT))
        assert set(ids(selector.fetch_queue(filters, QueueOptions()))) == {
            metric.fact_id, event.fact_id,
        }

    def test_source_type(self, selector, make_fact, make_document, make_communication):
        from_doc = make_fact(source_document_id=make_document())
        from_comm = make_fact(source_communication_id=make_communication())
        orphan = make_fact()

        def found(source_type):
            filters = QueueFilters(source_type=source_type)
            return ids(selector.fetch_queue(filters, QueueOptions()))

        assert found(SourceType.DOCUMENT) == [from_doc.fact_id]
        assert found(SourceType.COMMUNICATION) == [from_comm.fact_id]
        assert found(SourceType.OTHER) == [orphan.fact_id]

    def test_extraction_date_range(self, selector, make_fact):
        make_fact(extracted_at=T0 - timedelta(days=10))
        inside = make_fact(extracted_at=T0)
        make_fact(extracted_at=T0 + timedelta(days=10))

        filters = QueueFilters(
            extracted_from=T0 - timedelta(days=1),
            extracted_to=T0 + timedelta(days=1),
        )
        assert ids(selector.fetch_queue(filters, QueueOptions())) == [inside.fact_id]

    def test_reviewer_and_submitter(self, selector, make_fact):
        reviewer, submitter = uuid4(), uuid4()
        reviewed = make_fact(status=ApprovalStatus.UNDER_REVIEW, reviewed_by=reviewer)
        submitted = make_fact(extracted_by=submitter)
        make_fact()

        assert ids(selector.fetch_queue(QueueFilters(reviewer_id=reviewer), QueueOptions())) == [
            reviewed.fact_id,
        ]
        assert ids(selector.fetch_queue(QueueFilters(submitter_id=submitter), QueueOptions())) == [
            submitted.fact_id,
        ]

    def test_security_classification(self, selector, make_fact):
        secret = make_fact(classification=SecurityClassification.SECRET)
        make_fact(classification=SecurityClassification.UNCLASSIFIED)
        filters = QueueFilters(security_classification=SecurityClassification.SECRET)
        assert ids(selector.fetch_queue(filters, QueueOptions())) == [secret.fact_id]

    def test_search_content_and_summary_case_insensitive(self, selector, make_fact):
        by_content = make_fact(content="The PUMP operates at 40 bar")
        by_summary = make_fact(content="Line 3 data", summary="Pump pressure limit")
        make_fact(content="Valve spec")

        filters = QueueFilters(search="  pump ")
        assert set(ids(selector.fetch_queue(filters, QueueOptions()))) == {
            by_content.fact_id, by_summary.fact_id,
        }

    def test_search_wildcards_are_literal(self, selector, make_fact):
        literal = make_fact(content="Yield improved 50% over baseline")
        make_fact(content="Yield improved 500 units")

        filters = QueueFilters(search="50%")
        assert ids(selector.fetch_queue(filters, QueueOptions())) == [literal.fact_id]

        assert selector.count_queue(QueueFilters(search="_")) == 0

    def test_blank_search_ignored(self, selector, make_fact):
        make_fact()
        assert selector.count_queue(QueueFilters(search="   ")) == 1

    def test_filters_combine_with_and(self, selector, make_fact):
        match = make_fact(fact_type=FactType.METRIC, confidence=0.9)
        make_fact(fact_type=FactType.METRIC, confidence=0.2)
        make_fact(fact_type=FactType.ENTITY, confidence=0.9)

        filters = QueueFilters(fact_types=(FactType.METRIC,), min_confidence=0.5)
        assert ids(selector.fetch_queue(filters, QueueOptions())) == [match.fact_id]


class TestQueueOrdering:

    def test_created_at_desc_default(self, selector, make_fact):
        old = make_fact(created_at=T0 - timedelta(hours=2))
        new = make_fact(created_at=T0)
        mid = make_fact(created_at=T0 - timedelta(hours=1))

        assert ids(selector.fetch_queue(QueueFilters(), QueueOptions())) == [
            new.fact_id, mid.fact_id, old.fact_id,
        ]

    def test_confidence_asc(self, selector, make_fact):
        high = make_fact(confidence=0.9)
        low = make_fact(confidence=0.1)
        options = QueueOptions(sort_by=SortBy.CONFIDENCE, sort_order=SortOrder.ASC)
        assert ids(selector.fetch_queue(QueueFilters(), options)) == [low.fact_id, high.fact_id]

    def test_priority_ignores_sort_order(self, selector, make_fact):
        older_high = make_fact(confidence=0.9, extracted_at=T0 - timedelta(days=1))
        newer_high = make_fact(confidence=0.9, extracted_at=T0)
        low = make_fact(confidence=0.4, extracted_at=T0 + timedelta(days=1))

        options = QueueOptions(sort_by=SortBy.PRIORITY, sort_order=SortOrder.ASC)
        assert ids(selector.fetch_queue(QueueFilters(), options)) == [
            newer_high.fact_id, older_high.fact_id, low.fact_id,
        ]

    def test_ties_broken_by_id(self, selector, make_fact):
        facts = [make_fact(created_at=T0) for _ in range(4)]
        expected = sorted(ids(facts), key=str)
        assert [str(i) for i in ids(selector.fetch_queue(QueueFilters(), QueueOptions()))] == [
            str(i) for i in expected
        ]


class TestPagination:

    def test_limit_and_offset(self, selector, make_fact):
        facts = [
            make_fact(created_at=T0 - timedelta(minutes=i)) for i in range(5)
        ]
        page = selector.fetch_queue(QueueFilters(), QueueOptions(limit=2, offset=2))
        assert ids(page) == [facts[2].fact_id, facts[3].fact_id]
        assert selector.count_queue(QueueFilters()) == 5

    def test_offset_past_end(self, selector, make_fact):
        make_fact()
        assert selector.fetch_queue(QueueFilters(), QueueOptions(offset=10)) == []


class TestCounters:

    def test_status_counts_fill_zeros(self, selector, make_fact):
        make_fact(status=ApprovalStatus.PENDING)
        make_fact(status=ApprovalStatus.PENDING)
        make_fact(status=ApprovalStatus.UNDER_REVIEW)
        make_fact(status=ApprovalStatus.PENDING, is_active=False)

        counts = selector.status_counts([
            ApprovalStatus.PENDING,
            ApprovalStatus.UNDER_REVIEW,
            ApprovalStatus.NEEDS_REVIEW,
        ])
        assert counts == {
            ApprovalStatus.PENDING: 2,
            ApprovalStatus.UNDER_REVIEW: 1,
            ApprovalStatus.NEEDS_REVIEW: 0,
        }

    def test_average_confidence(self, selector, make_fact):
        make_fact(status=ApprovalStatus.PENDING, confidence=0.4)
        make_fact(status=ApprovalStatus.UNDER_REVIEW, confidence=0.8)
        make_fact(status=ApprovalStatus.APPROVED, confidence=0.1)

        average = selector.average_confidence(
            [ApprovalStatus.PENDING, ApprovalStatus.UNDER_REVIEW],
        )
        assert average == pytest.approx(0.6)

    def test_average_confidence_empty(self, selector):
        assert selector.average_confidence([ApprovalStatus.PENDING]) == 0.0


class TestGetAndRelated:

    def test_get_active_only(self, selector, make_fact):
        live = make_fact()
        dead = make_fact(is_active=False)
        assert selector.get(live.fact_id) == live
        assert selector.get(dead.fact_id) is None
        assert selector.get(uuid4()) is None

    def test_related_by_type_or_source(self, selector, make_fact, make_document):
        doc_id = make_document()
        fact = make_fact(fact_type=FactType.METRIC, source_document_id=doc_id)
        same_type = make_fact(fact_type=FactType.METRIC, confidence=0.6)
        same_source = make_fact(
            fact_type=FactType.EVENT, source_document_id=doc_id, confidence=0.9,
        )
        make_fact(fact_type=FactType.EVENT)
        make_fact(fact_type=FactType.METRIC, is_active=False)

        related = selector.related(fact)
        assert ids(related) == [same_source.fact_id, same_type.fact_id]

    def test_related_without_source_matches_type_only(self, selector, make_fact):
        fact = make_fact(fact_type=FactType.ENTITY)
        make_fact(fact_type=FactType.EVENT)
        assert selector.related(fact) == []

    def test_related_respects_limit(self, selector, make_fact):
        fact = make_fact(fact_type=FactType.ENTITY)
        for _ in range(4):
            make_fact(fact_type=FactType.ENTITY)
        assert len(selector.related(fact, limit=3)) == 3


class TestSourceSelector:

    def test_active_sources(self, session, make_document, make_communication):
        selector = SourceSelector(session)
        doc_id = make_document()
        comm_id = make_communication()
        retired = make_document(is_active=False)

        assert selector.is_active_source(SourceType.DOCUMENT, doc_id)
        assert selector.is_active_source(SourceType.COMMUNICATION, comm_id)
        assert not selector.is_active_source(SourceType.DOCUMENT, retired)
        assert not selector.is_active_source(SourceType.DOCUMENT, comm_id)
        assert not selector.is_active_source(SourceType.OTHER, doc_id)
