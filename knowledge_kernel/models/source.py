"""
Module: knowledge_kernel.models.source
Responsibility: Reference rows for the documents and communications facts
    are extracted from.

Architecture position: Kernel > Models.  May import from db/base.py only.

The approval engine only needs to know that a source exists, is active and
what classification it carries.  Upload, storage and content of the
underlying artifacts belong to other systems.
"""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from knowledge_kernel.db.base import Base


class SourceDocumentModel(Base):
    """A document facts may be extracted from."""

    __tablename__ = "source_documents"

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    security_classification: Mapped[str | None] = mapped_column(
        String(20), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<SourceDocument {self.id} {self.name!r}>"


class SourceCommunicationModel(Base):
    """An email, chat or call record facts may be extracted from."""

    __tablename__ = "source_communications"

    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    platform: Mapped[str] = mapped_column(String(20), nullable=False, default="OTHER")
    security_classification: Mapped[str | None] = mapped_column(
        String(20), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<SourceCommunication {self.id} {self.subject!r}>"
