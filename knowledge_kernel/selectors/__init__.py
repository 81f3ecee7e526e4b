"""Selectors for the knowledge kernel (read side)."""

from knowledge_kernel.selectors.fact_selector import (
    FactSelector,
    SourceSelector,
    apply_queue_ordering,
    build_queue_predicates,
)

__all__ = [
    "FactSelector",
    "SourceSelector",
    "apply_queue_ordering",
    "build_queue_predicates",
]
