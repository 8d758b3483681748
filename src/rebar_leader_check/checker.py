"""
Leader / bending-detail consistency check.

For one reinforcement element in one view the checker walks a fixed stage
pipeline and stops at the first failing stage:

    collect-structure-tags -> resolve-tag-elements -> leader-selection
    -> resolve-tagged-element -> build-ray -> intersect -> resolve-host
    -> compare

Every element yields a ``ConsistencyCheckItem``. Failures carry a typed
stage and kind and a ``"<stage>: <reason>"`` message; collaborator
exceptions are downgraded to ``platform-fault`` at the stage that hit them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from rebar_leader_check.collaborators import (
    AnnotationTag,
    DetailAnnotation,
    ModelDatabase,
    ReinforcementElement,
    TagClassifier,
    View,
    ViewAccessor,
)
from rebar_leader_check.contracts import (
    INVALID_ELEMENT_ID,
    BoundingBox3D,
    CheckConfig,
    CheckManyResult,
    ConsistencyCheckItem,
    ElementId,
    Failure,
    FailureKind,
    FailureStage,
    LeaderSegment,
    Outcome,
    Ray,
    RayHit,
)
from rebar_leader_check.host_resolver import HostResolver
from rebar_leader_check.intersect import find_nearest_hit
from rebar_leader_check.leader import NO_LEADER_SEGMENT, extract_last_segment
from rebar_leader_check.projection import build_ray, project_direction, view_basis

logger = logging.getLogger(__name__)

MATCH_MESSAGE = "match"


def _by_id(element: Any) -> Tuple[int, int]:
    element_id = getattr(element, "id", None)
    return (0, element_id) if isinstance(element_id, int) else (1, 0)


class ConsistencyChecker:
    """Checks whether structural tags point at their element's bending detail."""

    def __init__(
        self,
        model: ModelDatabase,
        classifier: TagClassifier,
        view_accessor: ViewAccessor,
        host_resolver: Optional[HostResolver] = None,
        config: Optional[CheckConfig] = None,
    ):
        self.model = model
        self.classifier = classifier
        self.view_accessor = view_accessor
        self.host_resolver = host_resolver or HostResolver(model)
        self.config = config or CheckConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(self, element: ReinforcementElement, view: View) -> ConsistencyCheckItem:
        element_id = getattr(element, "id", INVALID_ELEMENT_ID)

        tag_ids = self._stage(FailureStage.COLLECT_STRUCTURE_TAGS, self._collect_structure_tag_ids, element, view)
        if not tag_ids.ok:
            return self._failed(element_id, FailureStage.COLLECT_STRUCTURE_TAGS, tag_ids.failure)

        tags = self._stage(FailureStage.RESOLVE_TAG_ELEMENTS, self._resolve_tags, tag_ids.value)
        if not tags.ok:
            return self._failed(element_id, FailureStage.RESOLVE_TAG_ELEMENTS, tags.failure)

        selected = self._stage(FailureStage.LEADER_SELECTION, self._select_leader, tags.value, view)
        if not selected.ok:
            return self._failed(element_id, FailureStage.LEADER_SELECTION, selected.failure)
        tag, segment = selected.value
        known: Dict[str, Any] = {"tag_id": tag.id, "leader_end_point": segment.end}

        tagged = self._stage(FailureStage.RESOLVE_TAGGED_ELEMENT, self._resolve_tagged_element, tag)
        if not tagged.ok:
            return self._failed(element_id, FailureStage.RESOLVE_TAGGED_ELEMENT, tagged.failure, **known)
        known["tagged_element_id"] = tagged.value

        ray = self._stage(FailureStage.BUILD_RAY, build_ray, segment, self.config.epsilon)
        if not ray.ok:
            return self._failed(element_id, FailureStage.BUILD_RAY, ray.failure, **known)

        details = self._stage(FailureStage.INTERSECT, self._detail_candidates, view)
        if not details.ok:
            return self._failed(element_id, FailureStage.INTERSECT, details.failure, **known)
        hit = self._stage(FailureStage.INTERSECT, self._intersect, ray.value, details.value, view)
        if not hit.ok:
            return self._failed(element_id, FailureStage.INTERSECT, hit.failure, **known)
        known["pointed_detail_id"] = hit.value.detail_id
        known["hit_distance"] = hit.value.t_enter

        detail = next(d for d in details.value if d.id == hit.value.detail_id)
        host = self._stage(FailureStage.RESOLVE_HOST, self.host_resolver.resolve_host, detail)
        if not host.ok:
            return self._failed(element_id, FailureStage.RESOLVE_HOST, host.failure, **known)
        known["pointed_host_id"] = host.value

        if host.value == tagged.value:
            logger.debug("Element %s: match via tag %s detail %s", element_id, tag.id, detail.id)
            return ConsistencyCheckItem(
                element_id=element_id,
                is_match=True,
                message=MATCH_MESSAGE,
                **known,
            )

        failure = Failure(
            kind=FailureKind.MISMATCH,
            reason=(
                f"mismatch: tag {tag.id} tags element {tagged.value} but its leader "
                f"points at detail {detail.id} hosted by element {host.value}"
            ),
        )
        return self._failed(element_id, FailureStage.COMPARE, failure, **known)

    def check_many(self, elements: Iterable[ReinforcementElement], view: View) -> CheckManyResult:
        """Check elements in the given order and bucket mismatch / leader-not-found."""
        result = CheckManyResult()
        for element in elements:
            item = self.check(element, view)
            result.items.append(item)
            if item.is_mismatch:
                result.mismatch_ids.append(item.element_id)
            elif item.is_leader_not_found:
                result.leader_not_found_ids.append(item.element_id)

        logger.info(
            "Checked %d element(s) in view %s: %d match, %d mismatch, %d leader-not-found",
            len(result.items),
            getattr(view, "id", "?"),
            sum(1 for item in result.items if item.is_match),
            len(result.mismatch_ids),
            len(result.leader_not_found_ids),
        )
        return result

    def reinforcement_in(self, view: View) -> List[ReinforcementElement]:
        """Reinforcement elements visible in ``view``, ordered by id."""
        elements = [
            e for e in self.model.elements_visible_in(view)
            if e is not None and self.model.is_reinforcement(e)
        ]
        return sorted(elements, key=_by_id)

    def check_view(self, view: View) -> CheckManyResult:
        return self.check_many(self.reinforcement_in(view), view)

    def structural_tags_of(self, element: ReinforcementElement, view: View) -> List[AnnotationTag]:
        """Structural tags of ``element`` owned by ``view``, ordered by id."""
        view_id = getattr(view, "id", None)
        tags = []
        for tag_id in self.model.dependent_annotations_of(element) or []:
            tag = self.model.get_element(tag_id)
            if tag is None or getattr(tag, "owner_view_id", None) != view_id:
                continue
            if self.classifier.is_structural_tag(tag):
                tags.append(tag)
        return sorted(tags, key=_by_id)

    def collect_structural_tagged_ids(
        self, elements: Iterable[ReinforcementElement], view: View
    ) -> Set[ElementId]:
        tagged: Set[ElementId] = set()
        for element in elements:
            try:
                has_tag = bool(self.structural_tags_of(element, view))
            except Exception as exc:
                logger.warning("Structural tag lookup failed for %s: %s", getattr(element, "id", "?"), exc)
                continue
            if has_tag:
                tagged.add(element.id)
        return tagged

    def bending_details_in(self, view: View) -> List[DetailAnnotation]:
        """Bending-detail annotations visible in ``view``, ordered by id."""
        details = [
            e for e in self.model.elements_visible_in(view)
            if e is not None and self.classifier.is_bending_detail_tag(e)
        ]
        return sorted(details, key=_by_id)

    def collect_host_ids_with_detail(self, view: View) -> Set[ElementId]:
        hosts: Set[ElementId] = set()
        try:
            details = self.bending_details_in(view)
        except Exception as exc:
            logger.warning("Bending detail lookup failed for view %s: %s", getattr(view, "id", "?"), exc)
            return hosts
        for detail in details:
            outcome = self.host_resolver.resolve_host(detail)
            if outcome.ok:
                hosts.add(outcome.value)
        return hosts

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _collect_structure_tag_ids(
        self, element: ReinforcementElement, view: View
    ) -> Outcome[List[ElementId]]:
        tags = self.structural_tags_of(element, view)
        if not tags:
            return Outcome.fail(
                FailureKind.TAG_UNAVAILABLE,
                f"no structural tag in view {getattr(view, 'id', '?')}",
            )
        return Outcome.success([tag.id for tag in tags])

    def _resolve_tags(self, tag_ids: Sequence[ElementId]) -> Outcome[List[AnnotationTag]]:
        tags = []
        for tag_id in tag_ids:
            tag = self.model.get_element(tag_id)
            if tag is not None and callable(getattr(tag, "tagged_references", None)):
                tags.append(tag)
        if not tags:
            return Outcome.fail(
                FailureKind.TAG_UNAVAILABLE,
                f"tag(s) {list(tag_ids)} could not be resolved to leader-bearing tags",
            )
        return Outcome.success(tags)

    def _select_leader(
        self, tags: Sequence[AnnotationTag], view: View
    ) -> Outcome[Tuple[AnnotationTag, LeaderSegment]]:
        reports = []
        for tag in tags:
            segment = extract_last_segment(tag, view, self.view_accessor)
            if segment.ok:
                return Outcome.success((tag, segment.value))
            reports.append(segment.failure.reason)
        return Outcome.fail(
            FailureKind.GEOMETRY_UNAVAILABLE,
            "\n".join([f"{NO_LEADER_SEGMENT} from {len(tags)} structural tag(s)"] + reports),
        )

    def _resolve_tagged_element(self, tag: AnnotationTag) -> Outcome[ElementId]:
        ids = list(tag.tagged_element_ids() or [])
        for element_id in ids:
            element = self.model.get_element(element_id)
            if element is not None and self.model.is_reinforcement(element):
                return Outcome.success(element_id)
        return Outcome.fail(
            FailureKind.TAG_UNAVAILABLE,
            f"tag {tag.id} tags no reinforcement element (tagged ids: {ids})",
        )

    def _detail_candidates(self, view: View) -> Outcome[List[DetailAnnotation]]:
        return Outcome.success(self.bending_details_in(view))

    def _intersect(self, ray: Ray, details: Sequence[DetailAnnotation], view: View) -> Outcome[RayHit]:
        basis = view_basis(view, self.config.epsilon)
        if not basis.ok:
            return Outcome(failure=basis.failure)
        direction = project_direction(ray.direction, basis.value, self.config.epsilon)
        if not direction.ok:
            return Outcome(failure=direction.failure)
        if not details:
            return Outcome.fail(FailureKind.INTERSECTION_MISS, "no bending detail in view")
        candidates = [(d.id, self._detail_box(d, view)) for d in details]
        return find_nearest_hit(ray, candidates, basis.value, self.config.epsilon)

    def _detail_box(self, detail: DetailAnnotation, view: View) -> Optional[BoundingBox3D]:
        try:
            box = self.view_accessor.bounding_box_of(detail, view)
            if box is None and self.config.bbox_view_fallback:
                box = self.view_accessor.bounding_box_of(detail, None)
        except Exception as exc:
            logger.warning("Bounding box of detail %s unreadable: %s", detail.id, exc)
            return None
        return box

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _stage(self, stage: FailureStage, fn: Callable[..., Outcome], *args: Any) -> Outcome:
        try:
            return fn(*args)
        except Exception as exc:
            logger.warning("Platform fault in stage %s: %s", stage.value, exc)
            return Outcome.fail(FailureKind.PLATFORM_FAULT, f"{type(exc).__name__}: {exc}")

    def _failed(
        self,
        element_id: ElementId,
        stage: FailureStage,
        failure: Failure,
        **known: Any,
    ) -> ConsistencyCheckItem:
        logger.debug("Element %s failed at %s: %s", element_id, stage.value, failure.kind.value)
        return ConsistencyCheckItem(
            element_id=element_id,
            is_match=False,
            message=f"{stage.value}: {failure.reason}",
            stage=stage,
            failure_kind=failure.kind,
            **known,
        )
