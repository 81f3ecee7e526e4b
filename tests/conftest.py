"""
Pytest fixtures for the knowledge approval test suite.

Provides:
- A session-scoped database engine with tables created once
- Per-test sessions isolated by an outer transaction that is rolled back
- Deterministic clock, recording audit sink, workflow config
- Fact factory helpers and captured structured logs

Environment Variables:
- DATABASE_URL: database URL.  Defaults to an in-memory SQLite database;
  point it at PostgreSQL to run the suite against the production dialect.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from knowledge_config import WorkflowConfig, get_workflow_config
from knowledge_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from knowledge_kernel.domain.clock import DeterministicClock
from knowledge_kernel.domain.facts import (
    ApprovalStatus,
    FactType,
    Role,
    SecurityClassification,
    UserContext,
)
from knowledge_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from knowledge_kernel.models.fact import FactModel
from knowledge_kernel.models.source import (
    SourceCommunicationModel,
    SourceDocumentModel,
)

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"

# Test actor IDs
TEST_ACTOR_ID = uuid4()
TEST_EXTRACTOR_ID = uuid4()

KNOWLEDGE_MANAGER = (Role.KNOWLEDGE_MANAGER.value,)
PROGRAM_MANAGER = (Role.PROGRAM_MANAGER.value,)


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture knowledge_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, processor):
            processor.decide(...)
            logs = captured_logs()
            assert any(r["message"] == "fact_decision_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("knowledge_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    drop_tables()
    create_tables()
    yield
    drop_tables()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection;
    ``session.commit()`` and nested savepoints stay inside it, and the
    outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture(scope="session")
def workflow_config() -> WorkflowConfig:
    return get_workflow_config()


class RecordingAuditSink:
    """Audit sink that keeps every entry in memory."""

    def __init__(self):
        self.records: list[dict] = []

    def record(
        self,
        user_id,
        action,
        entity_type,
        entity_id,
        old_values=None,
        new_values=None,
    ):
        self.records.append(
            {
                "user_id": user_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "old_values": old_values,
                "new_values": new_values,
            }
        )

    def actions(self) -> list[str]:
        return [r["action"] for r in self.records]


class FailingAuditSink:
    """Audit sink whose every write fails."""

    def __init__(self):
        self.calls = 0

    def record(self, *args, **kwargs):
        self.calls += 1
        raise RuntimeError("audit store unavailable")


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def failing_audit_sink() -> FailingAuditSink:
    return FailingAuditSink()


@pytest.fixture
def actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def top_secret_user() -> UserContext:
    return UserContext(
        user_id=TEST_ACTOR_ID,
        roles=frozenset(KNOWLEDGE_MANAGER),
        clearance_level=SecurityClassification.TOP_SECRET.value,
    )


@pytest.fixture
def unclassified_user() -> UserContext:
    return UserContext(
        user_id=TEST_ACTOR_ID,
        roles=frozenset(KNOWLEDGE_MANAGER),
        clearance_level=SecurityClassification.UNCLASSIFIED.value,
    )


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def make_fact(session, deterministic_clock):
    """
    Insert a fact row directly and return it as a FactRecord.

    Bypasses FactService so tests control every stored field
    (status, adjusted confidence, timestamps).
    """

    def _make(
        status: ApprovalStatus = ApprovalStatus.PENDING,
        confidence: float = 0.75,
        fact_type: FactType = FactType.ENTITY,
        content: str = "Acme Corp is headquartered in Springfield",
        summary: str | None = None,
        classification: SecurityClassification | None = SecurityClassification.UNCLASSIFIED,
        source_document_id: UUID | None = None,
        source_communication_id: UUID | None = None,
        extracted_by: UUID = TEST_EXTRACTOR_ID,
        extracted_at=None,
        created_at=None,
        is_active: bool = True,
        **extra,
    ):
        now = deterministic_clock.now()
        model = FactModel(
            fact_type=fact_type.value,
            content=content,
            summary=summary,
            confidence=confidence,
            base_confidence=confidence,
            extraction_metadata={},
            source_document_id=source_document_id,
            source_communication_id=source_communication_id,
            approval_status=status.value,
            security_classification=classification.value if classification else None,
            extracted_by=extracted_by,
            extracted_at=extracted_at or now,
            created_at=created_at or now,
            updated_at=now,
            is_active=is_active,
            version=1,
            **extra,
        )
        session.add(model)
        session.flush()
        return model.to_dto()

    return _make


@pytest.fixture
def make_document(session):
    def _make(name: str = "Design Review.pdf", is_active: bool = True, **kwargs):
        doc = SourceDocumentModel(name=name, is_active=is_active, **kwargs)
        session.add(doc)
        session.flush()
        return doc.id

    return _make


@pytest.fixture
def make_communication(session):
    def _make(subject: str = "Re: Q3 roadmap", is_active: bool = True, **kwargs):
        comm = SourceCommunicationModel(subject=subject, is_active=is_active, **kwargs)
        session.add(comm)
        session.flush()
        return comm.id

    return _make
