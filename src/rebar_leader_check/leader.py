"""Recover the trailing leader segment (elbow/head -> arrow tip) of a tag."""

from __future__ import annotations

import logging
from typing import List, Optional

from rebar_leader_check.collaborators import AnnotationTag, View, ViewAccessor
from rebar_leader_check.contracts import (
    FailureKind,
    LeaderSegment,
    Outcome,
    Vec3,
    to_vec3,
)

logger = logging.getLogger(__name__)

NO_LEADER_SEGMENT = "no leader segment obtainable"


def extract_last_segment(
    tag: AnnotationTag,
    view: Optional[View] = None,
    view_accessor: Optional[ViewAccessor] = None,
) -> Outcome[LeaderSegment]:
    """Trailing leader segment of the first reference that yields one.

    References are tried in the order the tag exposes them. For each, the
    segment ends at the leader end point and starts at the elbow, else the
    tag head, else the centre of the tag's bounding box in ``view``. A
    reference that fails is recorded and skipped; the whole tag fails only
    when no reference produces both points.
    """
    tag_id = getattr(tag, "id", "?")
    reasons: List[str] = []

    try:
        references = list(tag.tagged_references() or [])
    except Exception as exc:
        references = []
        reasons.append(f"tag {tag_id}: tagged references unreadable ({exc})")
    else:
        if not references:
            reasons.append(f"tag {tag_id}: no tagged references")

    for index, reference in enumerate(references):
        label = f"tag {tag_id} ref[{index}]"
        try:
            end = tag.leader_end(reference)
        except Exception as exc:
            reasons.append(f"{label}: leader end unreadable ({exc})")
            continue
        if end is None:
            reasons.append(f"{label}: no leader end")
            continue

        start = _segment_start(tag, reference, view, view_accessor, label, reasons)
        if start is None:
            reasons.append(f"{label}: no elbow, head or bounding box for segment start")
            continue

        try:
            segment = LeaderSegment(start=to_vec3(start), end=to_vec3(end))
        except (TypeError, ValueError, IndexError) as exc:
            reasons.append(f"{label}: leader end/start malformed ({exc})")
            continue
        return Outcome.success(segment)

    report = "\n".join([f"{NO_LEADER_SEGMENT} for tag {tag_id}"] + reasons)
    condition = _leader_end_condition(tag)
    if condition:
        report += f"\nleader end condition: {condition}"
    logger.debug("Leader extraction failed for tag %s (%d reasons)", tag_id, len(reasons))
    return Outcome.fail(FailureKind.GEOMETRY_UNAVAILABLE, report)


def _segment_start(
    tag: AnnotationTag,
    reference,
    view: Optional[View],
    view_accessor: Optional[ViewAccessor],
    label: str,
    reasons: List[str],
) -> Optional[Vec3]:
    try:
        elbow = tag.leader_elbow(reference)
    except Exception as exc:
        elbow = None
        reasons.append(f"{label}: elbow unreadable ({exc})")
    if elbow is not None:
        return elbow

    try:
        head = tag.head_position()
    except Exception as exc:
        head = None
        reasons.append(f"{label}: head position unreadable ({exc})")
    if head is not None:
        return head

    if view_accessor is None:
        return None
    try:
        box = view_accessor.bounding_box_of(tag, view)
    except Exception as exc:
        reasons.append(f"{label}: tag bounding box unreadable ({exc})")
        return None
    return None if box is None else box.center


def _leader_end_condition(tag: AnnotationTag) -> Optional[str]:
    try:
        condition = getattr(tag, "leader_end_condition", None)
    except Exception:
        return None
    return str(condition) if condition else None
