"""ORM models. Importing this package registers every table on Base.metadata."""

from knowledge_kernel.models.fact import FactModel
from knowledge_kernel.models.source import (
    SourceCommunicationModel,
    SourceDocumentModel,
)

__all__ = [
    "FactModel",
    "SourceDocumentModel",
    "SourceCommunicationModel",
]
