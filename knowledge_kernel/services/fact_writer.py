"""
FactWriter -- the single write path for fact rows.

Responsibility:
    Inserts new facts and applies conditional updates.  Every update is
    keyed on the fact's id, its version and (for status changes) its
    current approval status, and bumps the version.  When the
    condition matches no row another writer got there first and the
    update fails with a conflict instead of overwriting.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Optimistic concurrency: no update is applied against a stale
      status or version.
    - Flush-only: the caller owns commit/rollback.

Failure modes:
    - TransitionConflictError when a status update matches no row.
    - ConflictError when a content update matches no row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update

from knowledge_kernel.domain.facts import ApprovalStatus, FactRecord
from knowledge_kernel.exceptions import ConflictError, TransitionConflictError
from knowledge_kernel.logging_config import get_logger
from knowledge_kernel.models.fact import FactModel
from knowledge_kernel.services.base import BaseService

logger = get_logger("services.fact_writer")


class FactWriter(BaseService[FactModel]):
    """Inserts facts and applies version-checked updates."""

    def insert(self, **values: Any) -> FactRecord:
        model = FactModel(**values)
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def apply_transition(
        self,
        fact_id: UUID,
        expected_status: ApprovalStatus,
        expected_version: int,
        values: dict[str, Any],
        now: datetime,
    ) -> FactRecord:
        """Write a status change only if the fact is still where we read it.

        Raises:
            TransitionConflictError: status or version moved underneath us.
        """
        matched = self._conditional_update(
            fact_id,
            expected_version,
            values,
            now,
            FactModel.approval_status == expected_status.value,
        )
        if not matched:
            logger.warning(
                "fact_transition_conflict",
                extra={
                    "fact_id": str(fact_id),
                    "expected_status": expected_status.value,
                    "expected_version": expected_version,
                },
            )
            raise TransitionConflictError(
                str(fact_id), expected_status.value, expected_version,
            )
        return self._reload(fact_id)

    def apply_changes(
        self,
        fact_id: UUID,
        expected_version: int,
        values: dict[str, Any],
        now: datetime,
    ) -> FactRecord:
        """Write content fields if the version is unchanged."""
        if not self._conditional_update(fact_id, expected_version, values, now):
            raise ConflictError(
                f"Fact {fact_id} was modified concurrently "
                f"(expected version {expected_version})"
            )
        return self._reload(fact_id)

    def _conditional_update(
        self,
        fact_id: UUID,
        expected_version: int,
        values: dict[str, Any],
        now: datetime,
        *extra_conditions: Any,
    ) -> bool:
        stmt = (
            update(FactModel)
            .where(
                FactModel.id == fact_id,
                FactModel.version == expected_version,
                FactModel.is_active.is_(True),
                *extra_conditions,
            )
            .values(**values, version=FactModel.version + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def _reload(self, fact_id: UUID) -> FactRecord:
        model = self.session.execute(
            select(FactModel)
            .where(FactModel.id == fact_id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        return model.to_dto()
