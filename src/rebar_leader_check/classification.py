"""Bucket reinforcement elements into review severities."""

from __future__ import annotations

from typing import AbstractSet, Dict, Iterable, Optional

from rebar_leader_check.contracts import (
    CheckManyResult,
    ConsistencyCheckItem,
    ElementId,
    Severity,
)


def classify(
    element_id: ElementId,
    structural_tagged_ids: AbstractSet[ElementId],
    host_ids: AbstractSet[ElementId],
    item: Optional[ConsistencyCheckItem] = None,
) -> Severity:
    """Severity of one element.

    Priority: mismatch > leader-not-found > no-tag-no-detail > other, so the
    buckets are disjoint.
    """
    if item is not None and item.is_mismatch:
        return Severity.MISMATCH
    if item is not None and item.is_leader_not_found:
        return Severity.LEADER_NOT_FOUND
    if element_id not in structural_tagged_ids and element_id not in host_ids:
        return Severity.NO_TAG_NO_DETAIL
    return Severity.OTHER


def classify_all(
    element_ids: Iterable[ElementId],
    structural_tagged_ids: AbstractSet[ElementId],
    host_ids: AbstractSet[ElementId],
    results: CheckManyResult,
) -> Dict[ElementId, Severity]:
    items = {item.element_id: item for item in results.items}
    return {
        element_id: classify(element_id, structural_tagged_ids, host_ids, items.get(element_id))
        for element_id in element_ids
    }


def severity_counts(severities: Iterable[Severity]) -> Dict[str, int]:
    counts = {severity.value: 0 for severity in Severity}
    for severity in severities:
        counts[severity.value] += 1
    return counts

