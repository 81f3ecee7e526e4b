"""
Module: knowledge_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    workflow engines.  This is the canonical import surface for
    knowledge_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import knowledge_kernel/domain (and sibling engine modules).
    MUST NOT import knowledge_services or knowledge_config.

Invariants enforced:
    - Purity: engines never read the clock or the database; everything
      arrives as arguments.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from knowledge_engines import adjust_confidence, validate_transition
"""

from knowledge_engines.auto_approval import (
    TRUSTED_SOURCE_FLOOR,
    check_auto_approval,
    evaluate_auto_approval,
)
from knowledge_engines.classification import (
    clearance_rank,
    filter_by_clearance,
    is_visible,
)
from knowledge_engines.confidence import (
    adjust_confidence,
    clamp_confidence,
    confidence_bucket,
)
from knowledge_engines.statistics import summarize_facts
from knowledge_engines.transitions import allowed_transitions, validate_transition

__all__ = [
    "TRUSTED_SOURCE_FLOOR",
    "adjust_confidence",
    "allowed_transitions",
    "check_auto_approval",
    "clamp_confidence",
    "clearance_rank",
    "confidence_bucket",
    "evaluate_auto_approval",
    "filter_by_clearance",
    "is_visible",
    "summarize_facts",
    "validate_transition",
]
