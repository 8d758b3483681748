"""Value types shared by the leader / bending-detail consistency engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, Sequence, Tuple, TypeVar

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
ElementId = int

INVALID_ELEMENT_ID: ElementId = -1
EPSILON = 1e-9

T = TypeVar("T")


@dataclass(frozen=True)
class CheckConfig:
    """Tunables for a consistency run."""

    epsilon: float = EPSILON
    # Detail annotations are view-specific; retry without a view when the
    # view-scoped bounding box query comes back empty.
    bbox_view_fallback: bool = True
    hide_tagged_without_detail: bool = True


class FailureStage(str, Enum):
    """Named steps of the per-element check, in pipeline order."""

    COLLECT_STRUCTURE_TAGS = "collect-structure-tags"
    RESOLVE_TAG_ELEMENTS = "resolve-tag-elements"
    LEADER_SELECTION = "leader-selection"
    RESOLVE_TAGGED_ELEMENT = "resolve-tagged-element"
    BUILD_RAY = "build-ray"
    INTERSECT = "intersect"
    RESOLVE_HOST = "resolve-host"
    COMPARE = "compare"


class FailureKind(str, Enum):
    GEOMETRY_UNAVAILABLE = "geometry-unavailable"
    INTERSECTION_MISS = "intersection-miss"
    HOST_INDETERMINATE = "host-indeterminate"
    MISMATCH = "mismatch"
    PLATFORM_FAULT = "platform-fault"
    TAG_UNAVAILABLE = "tag-unavailable"


class Severity(str, Enum):
    """Review-list buckets, highest priority first."""

    MISMATCH = "mismatch"
    LEADER_NOT_FOUND = "leader-not-found"
    NO_TAG_NO_DETAIL = "no-tag-no-detail"
    OTHER = "other"

    @property
    def color(self) -> str:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    Severity.MISMATCH: "red",
    Severity.LEADER_NOT_FOUND: "yellow",
    Severity.NO_TAG_NO_DETAIL: "blue",
    Severity.OTHER: "black",
}


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    reason: str


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or a failure; failures travel as data, not exceptions."""

    value: Optional[T] = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, reason: str) -> "Outcome[T]":
        return cls(failure=Failure(kind=kind, reason=reason))


@dataclass(frozen=True)
class BoundingBox3D:
    """Axis-aligned box in model coordinates."""

    minimum: Vec3
    maximum: Vec3

    @property
    def center(self) -> Vec3:
        return (
            0.5 * (self.minimum[0] + self.maximum[0]),
            0.5 * (self.minimum[1] + self.maximum[1]),
            0.5 * (self.minimum[2] + self.maximum[2]),
        )


@dataclass(frozen=True)
class LeaderSegment:
    """Trailing leader segment; ``end`` is the arrow tip."""

    start: Vec3
    end: Vec3


@dataclass(frozen=True)
class Ray:
    origin: Vec3
    direction: Vec3  # unit length


@dataclass(frozen=True)
class ViewBasis:
    """Orthonormal 2D frame spanned by a view's right/up directions."""

    right: Vec3
    up: Vec3


@dataclass(frozen=True)
class RayHit:
    detail_id: ElementId
    t_enter: float


@dataclass(frozen=True)
class ConsistencyCheckItem:
    """Outcome of checking one reinforcement element in one view.

    ``message`` is ``"match"`` on success, otherwise ``"<stage>: <reason>"``.
    """

    element_id: ElementId
    tag_id: ElementId = INVALID_ELEMENT_ID
    tagged_element_id: ElementId = INVALID_ELEMENT_ID
    leader_end_point: Optional[Vec3] = None
    pointed_detail_id: ElementId = INVALID_ELEMENT_ID
    pointed_host_id: ElementId = INVALID_ELEMENT_ID
    is_match: bool = False
    message: str = ""
    stage: Optional[FailureStage] = None
    failure_kind: Optional[FailureKind] = None
    hit_distance: Optional[float] = None

    @property
    def is_mismatch(self) -> bool:
        return self.failure_kind is FailureKind.MISMATCH

    @property
    def is_leader_not_found(self) -> bool:
        return (
            self.stage is FailureStage.LEADER_SELECTION
            and self.failure_kind is FailureKind.GEOMETRY_UNAVAILABLE
        )


@dataclass
class CheckManyResult:
    items: List[ConsistencyCheckItem] = field(default_factory=list)
    mismatch_ids: List[ElementId] = field(default_factory=list)
    leader_not_found_ids: List[ElementId] = field(default_factory=list)

    def item_for(self, element_id: ElementId) -> Optional[ConsistencyCheckItem]:
        for item in self.items:
            if item.element_id == element_id:
                return item
        return None


def is_valid_id(element_id: Optional[ElementId]) -> bool:
    return element_id is not None and element_id != INVALID_ELEMENT_ID


def to_vec3(values: Sequence[float]) -> Vec3:
    return (float(values[0]), float(values[1]), float(values[2]))


def to_vec2(values: Sequence[float]) -> Vec2:
    return (float(values[0]), float(values[1]))
