"""
knowledge_engines.confidence -- Confidence adjustment and bucketing.

Responsibility:
    Compute a fact's adjusted confidence from its submitted (base)
    confidence, the reliability of its source type and the extraction
    metadata flags; classify confidences into high/medium/low buckets.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import knowledge_kernel/domain/ types.

Invariants enforced:
    - Result always lies in [0.0, 1.0], whatever the inputs.
    - Multipliers are applied in a fixed order: source, verified,
      uncertain, automated.
    - Metadata flags count only when exactly ``True``.

Failure modes:
    - None.  Out-of-range base values are clamped; range validation of
      submitted confidence belongs to the service boundary.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from knowledge_kernel.domain.facts import SourceType

from knowledge_engines.tracer import traced_engine

SOURCE_MULTIPLIERS: dict[SourceType, float] = {
    SourceType.DOCUMENT: 1.1,
    SourceType.COMMUNICATION: 0.9,
    SourceType.OTHER: 1.0,
}

# Applied in order.
METADATA_MULTIPLIERS: tuple[tuple[str, float], ...] = (
    ("verified", 1.2),
    ("uncertain", 0.8),
    ("automated", 0.9),
)

HIGH_CONFIDENCE_FLOOR = 0.8
MEDIUM_CONFIDENCE_FLOOR = 0.5


def _coerce_source_type(source_type: SourceType | str | None) -> SourceType:
    if isinstance(source_type, SourceType):
        return source_type
    if isinstance(source_type, str):
        try:
            return SourceType(source_type.strip().upper())
        except ValueError:
            return SourceType.OTHER
    return SourceType.OTHER


def clamp_confidence(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


@traced_engine(
    "confidence", "1.0",
    fingerprint_fields=("base_confidence", "metadata", "source_type"),
)
def adjust_confidence(
    base_confidence: float,
    metadata: Mapping[str, Any] | None = None,
    source_type: SourceType | str | None = None,
) -> float:
    """Adjusted confidence in [0, 1].

    >>> round(adjust_confidence(0.7, {"verified": True}, SourceType.DOCUMENT), 3)
    0.924
    """
    value = float(base_confidence) * SOURCE_MULTIPLIERS[_coerce_source_type(source_type)]
    flags = metadata or {}
    for flag, multiplier in METADATA_MULTIPLIERS:
        if flags.get(flag) is True:
            value *= multiplier
    return clamp_confidence(value)


def confidence_bucket(value: float) -> str:
    """'high' (>= 0.8), 'medium' (>= 0.5) or 'low'."""
    if value >= HIGH_CONFIDENCE_FLOOR:
        return "high"
    if value >= MEDIUM_CONFIDENCE_FLOOR:
        return "medium"
    return "low"
