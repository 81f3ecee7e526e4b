"""
knowledge_engines.statistics -- Aggregates over a list of facts.

Pure helper used by the approval queue to describe the returned page:
per-status counts, confidence buckets and the mean confidence.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from knowledge_kernel.domain.facts import FactRecord
from knowledge_kernel.domain.queue import FactStatistics

from knowledge_engines.confidence import confidence_bucket
from knowledge_engines.tracer import traced_engine


@traced_engine("statistics", "1.0")
def summarize_facts(facts: Iterable[FactRecord]) -> FactStatistics:
    items = list(facts)
    if not items:
        return FactStatistics()

    by_status = Counter(f.approval_status.value for f in items)
    buckets = Counter(confidence_bucket(f.confidence) for f in items)
    return FactStatistics(
        total=len(items),
        by_status=dict(by_status),
        high_confidence=buckets["high"],
        medium_confidence=buckets["medium"],
        low_confidence=buckets["low"],
        average_confidence=sum(f.confidence for f in items) / len(items),
    )
