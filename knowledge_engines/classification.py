"""
knowledge_engines.classification -- Security classification visibility filter.

Responsibility:
    Decide which classified items a caller may see given their clearance
    level.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Known clearance: an item is visible iff it carries no
      classification or its rank is <= the clearance rank.
    - Unrecognized clearance fails closed: only items explicitly
      classified UNCLASSIFIED are visible.
    - Input order is preserved.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from knowledge_kernel.domain.facts import SecurityClassification

T = TypeVar("T")


def clearance_rank(clearance_level: Any) -> int | None:
    """Rank of a clearance level, None when unrecognized."""
    parsed = SecurityClassification.parse(clearance_level)
    return parsed.rank if parsed is not None else None


def _item_classification(item: Any) -> Any:
    if isinstance(item, Mapping):
        return item.get("security_classification")
    return getattr(item, "security_classification", None)


def is_visible(classification: Any, clearance_level: Any) -> bool:
    rank = clearance_rank(clearance_level)
    if rank is None:
        return (
            SecurityClassification.parse(classification)
            == SecurityClassification.UNCLASSIFIED
        )

    if classification is None:
        return True
    parsed = SecurityClassification.parse(classification)
    if parsed is None:
        # Unknown labels on data are treated as the highest tier.
        return rank >= SecurityClassification.TOP_SECRET.rank
    return parsed.rank <= rank


def filter_by_clearance(items: Iterable[T], clearance_level: Any) -> list[T]:
    """Items the caller may see, in input order.

    Works on objects exposing ``security_classification`` and on
    mappings keyed by it.
    """
    return [
        item for item in items
        if is_visible(_item_classification(item), clearance_level)
    ]
