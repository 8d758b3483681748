"""
In-memory model snapshot.

Implements the collaborator contracts (model database, tag classifier, view
accessor, sheet index, host query) over a JSON export of drawing views, so
the engine can run offline and in tests.

Payload layout (ids are integers, points are ``[x, y, z]``)::

    {
      "classifier": {"structural_tag_name": "...", "bending_detail_name": "..."},
      "views":   [{"id", "name", "right", "up"}],
      "sheets":  [{"id", "number", "name", "view_ids"}],
      "types":   [{"id", "name"}],
      "rebars":  [{"id", "type_id", "view_ids", "bbox"?}],
      "tags":    [{"id", "view_id", "name", "family", "tagged_ids", "head"?,
                   "leader_end_condition"?, "bbox"?,
                   "references": [{"element_id", "end"?, "elbow"?}]}],
      "details": [{"id", "view_id", "name", "family", "bbox"?, "host_id"?,
                   "parameters": [{"name", "element_id"?}]}],
      "host_links": {"<detail id>": <rebar id>}
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from rebar_leader_check.checker import ConsistencyChecker
from rebar_leader_check.contracts import (
    BoundingBox3D,
    CheckConfig,
    ElementId,
    Vec3,
    to_vec3,
)
from rebar_leader_check.host_resolver import HostResolver, default_strategies

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = "rebar_leader_check.snapshot.v1"


@dataclass
class SnapshotType:
    id: ElementId
    name: str = ""


@dataclass
class SnapshotView:
    id: ElementId
    name: str = ""
    right_direction: Optional[Vec3] = None
    up_direction: Optional[Vec3] = None


@dataclass
class SnapshotSheet:
    id: ElementId
    number: str = ""
    name: str = ""
    view_ids: List[ElementId] = field(default_factory=list)


@dataclass
class SnapshotRebar:
    id: ElementId
    type_id: Optional[ElementId] = None
    view_ids: List[ElementId] = field(default_factory=list)
    bbox: Optional[BoundingBox3D] = None


@dataclass
class SnapshotReference:
    element_id: ElementId
    end: Optional[Vec3] = None
    elbow: Optional[Vec3] = None


@dataclass
class SnapshotTag:
    id: ElementId
    owner_view_id: ElementId
    name: str = ""
    family_name: str = ""
    tagged_ids: List[ElementId] = field(default_factory=list)
    references: List[SnapshotReference] = field(default_factory=list)
    head: Optional[Vec3] = None
    leader_end_condition: Optional[str] = None
    bbox: Optional[BoundingBox3D] = None

    def tagged_references(self) -> List[SnapshotReference]:
        return list(self.references)

    def tagged_element_ids(self) -> List[ElementId]:
        return list(self.tagged_ids)

    def leader_end(self, reference: SnapshotReference) -> Optional[Vec3]:
        return reference.end

    def leader_elbow(self, reference: SnapshotReference) -> Optional[Vec3]:
        return reference.elbow

    def head_position(self) -> Optional[Vec3]:
        return self.head


@dataclass
class SnapshotParameter:
    name: str
    element_id: Optional[ElementId] = None

    def as_element_id(self) -> Optional[ElementId]:
        return self.element_id


@dataclass
class SnapshotDetail:
    id: ElementId
    owner_view_id: ElementId
    name: str = ""
    family_name: str = ""
    bbox: Optional[BoundingBox3D] = None
    host_id: Optional[ElementId] = None
    params: List[SnapshotParameter] = field(default_factory=list)

    def parameters(self) -> List[SnapshotParameter]:
        return list(self.params)


class NameTagClassifier:
    """Classifies tags by substring match on element, type or family name."""

    def __init__(self, structural_tag_name: str = "", bending_detail_name: str = ""):
        self.structural_tag_name = structural_tag_name or ""
        self.bending_detail_name = bending_detail_name or ""

    def is_structural_tag(self, tag: Any) -> bool:
        return isinstance(tag, SnapshotTag) and self._matches(tag, self.structural_tag_name)

    def is_bending_detail_tag(self, tag: Any) -> bool:
        return isinstance(tag, SnapshotDetail) and self._matches(tag, self.bending_detail_name)

    @staticmethod
    def _matches(element: Any, expected: str) -> bool:
        if not expected.strip():
            return False
        names = (getattr(element, "name", ""), getattr(element, "family_name", ""))
        return any(name and expected in name for name in names)


class ModelSnapshot:
    """Read-only model database over snapshot records."""

    def __init__(
        self,
        *,
        views: Iterable[SnapshotView] = (),
        sheets: Iterable[SnapshotSheet] = (),
        types: Iterable[SnapshotType] = (),
        rebars: Iterable[SnapshotRebar] = (),
        tags: Iterable[SnapshotTag] = (),
        details: Iterable[SnapshotDetail] = (),
        host_links: Optional[Dict[ElementId, ElementId]] = None,
        classifier: Optional[NameTagClassifier] = None,
    ):
        self.views = {v.id: v for v in views}
        self.sheets = {s.id: s for s in sheets}
        self.types = {t.id: t for t in types}
        self.rebars = {r.id: r for r in rebars}
        self.tags = {t.id: t for t in tags}
        self.details = {d.id: d for d in details}
        self.host_links = dict(host_links or {})
        self.classifier = classifier or NameTagClassifier()

        self._elements: Dict[ElementId, Any] = {}
        for table in (self.views, self.sheets, self.types, self.rebars, self.tags, self.details):
            for element_id, element in table.items():
                if element_id in self._elements:
                    raise ValueError(f"Duplicate element id in snapshot: {element_id}")
                self._elements[element_id] = element

    # -- model database ----------------------------------------------------

    def get_element(self, element_id: ElementId) -> Optional[Any]:
        return self._elements.get(element_id)

    def is_reinforcement(self, element: Any) -> bool:
        return isinstance(element, SnapshotRebar)

    def dependent_annotations_of(self, element: Any) -> List[ElementId]:
        element_id = getattr(element, "id", None)
        return sorted(t.id for t in self.tags.values() if element_id in t.tagged_ids)

    def elements_visible_in(self, view: Any) -> List[Any]:
        view_id = getattr(view, "id", None)
        visible: List[Any] = [r for r in self.rebars.values() if view_id in r.view_ids]
        visible.extend(t for t in self.tags.values() if t.owner_view_id == view_id)
        visible.extend(d for d in self.details.values() if d.owner_view_id == view_id)
        return visible

    def type_name_of(self, element: Any) -> Optional[str]:
        type_id = getattr(element, "type_id", None)
        element_type = self.types.get(type_id) if type_id is not None else None
        return element_type.name if element_type is not None and element_type.name else None

    # -- view accessor -----------------------------------------------------

    def bounding_box_of(self, element: Any, view: Optional[Any]) -> Optional[BoundingBox3D]:
        box = getattr(element, "bbox", None)
        if view is None:
            # View-specific annotations have no view-independent extent.
            return None if hasattr(element, "owner_view_id") else box
        owner = getattr(element, "owner_view_id", None)
        if owner is not None and owner != getattr(view, "id", None):
            return None
        return box

    # -- sheet index -------------------------------------------------------

    def placed_views(self, sheet: Any) -> List[SnapshotView]:
        views = [self.views[v] for v in getattr(sheet, "view_ids", []) if v in self.views]
        unique = {v.id: v for v in views}
        return sorted(unique.values(), key=lambda v: v.name)

    # -- host query --------------------------------------------------------

    def host_query(self, document: Any, detail_id: ElementId) -> Optional[ElementId]:
        """Platform-level host lookup; only the (document, id) shape is accepted."""
        if document is not self:
            raise TypeError("host_query expects (document, detail_id)")
        if not isinstance(detail_id, int):
            raise TypeError("detail_id must be an element id")
        return self.host_links.get(detail_id)

    # -- loading -----------------------------------------------------------

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ModelSnapshot":
        if not isinstance(payload, dict):
            raise ValueError("Snapshot payload must be a JSON object")
        version = payload.get("schema_version", SNAPSHOT_SCHEMA_VERSION)
        if version != SNAPSHOT_SCHEMA_VERSION:
            raise ValueError(f"Unexpected snapshot schema version: {version}")

        classifier_cfg = payload.get("classifier", {}) or {}
        classifier = NameTagClassifier(
            structural_tag_name=str(classifier_cfg.get("structural_tag_name", "")),
            bending_detail_name=str(classifier_cfg.get("bending_detail_name", "")),
        )

        views = [
            SnapshotView(
                id=_id(v, "id"),
                name=str(v.get("name", "")),
                right_direction=_opt_point(v.get("right")),
                up_direction=_opt_point(v.get("up")),
            )
            for v in _records(payload, "views")
        ]
        sheets = [
            SnapshotSheet(
                id=_id(s, "id"),
                number=str(s.get("number", "")),
                name=str(s.get("name", "")),
                view_ids=_ids(s.get("view_ids", [])),
            )
            for s in _records(payload, "sheets")
        ]
        types = [
            SnapshotType(id=_id(t, "id"), name=str(t.get("name", "")))
            for t in _records(payload, "types")
        ]
        rebars = [
            SnapshotRebar(
                id=_id(r, "id"),
                type_id=_opt_id(r.get("type_id")),
                view_ids=_ids(r.get("view_ids", [])),
                bbox=_opt_box(r.get("bbox")),
            )
            for r in _records(payload, "rebars")
        ]
        tags = [
            SnapshotTag(
                id=_id(t, "id"),
                owner_view_id=_id(t, "view_id"),
                name=str(t.get("name", "")),
                family_name=str(t.get("family", "")),
                tagged_ids=_ids(t.get("tagged_ids", [])),
                references=[
                    SnapshotReference(
                        element_id=_id(ref, "element_id"),
                        end=_opt_point(ref.get("end")),
                        elbow=_opt_point(ref.get("elbow")),
                    )
                    for ref in t.get("references", []) or []
                ],
                head=_opt_point(t.get("head")),
                leader_end_condition=t.get("leader_end_condition"),
                bbox=_opt_box(t.get("bbox")),
            )
            for t in _records(payload, "tags")
        ]
        details = [
            SnapshotDetail(
                id=_id(d, "id"),
                owner_view_id=_id(d, "view_id"),
                name=str(d.get("name", "")),
                family_name=str(d.get("family", "")),
                bbox=_opt_box(d.get("bbox")),
                host_id=_opt_id(d.get("host_id")),
                params=[
                    SnapshotParameter(
                        name=str(p.get("name", "")),
                        element_id=_opt_id(p.get("element_id")),
                    )
                    for p in d.get("parameters", []) or []
                ],
            )
            for d in _records(payload, "details")
        ]
        raw_links = payload.get("host_links", {}) or {}
        if not isinstance(raw_links, dict):
            raise ValueError("Snapshot 'host_links' must be an object of detail id -> host id")
        host_links = {
            _as_id(detail_id): _as_id(host_id) for detail_id, host_id in raw_links.items()
        }

        snapshot = cls(
            views=views,
            sheets=sheets,
            types=types,
            rebars=rebars,
            tags=tags,
            details=details,
            host_links=host_links,
            classifier=classifier,
        )
        logger.info(
            "Loaded snapshot: %d view(s), %d sheet(s), %d rebar(s), %d tag(s), %d detail(s)",
            len(views), len(sheets), len(rebars), len(tags), len(details),
        )
        return snapshot

    @classmethod
    def load(cls, path: Path) -> "ModelSnapshot":
        with Path(path).open("r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


# ─── Payload helpers ──────────────────────────────────────────────────────────

def _records(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    records = payload.get(key, []) or []
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ValueError(f"Snapshot '{key}' must be a list of objects")
    return records


def _id(record: Dict[str, Any], key: str) -> ElementId:
    if key not in record:
        raise ValueError(f"Snapshot record missing '{key}': {record}")
    return _as_id(record[key])


def _as_id(value: Any) -> ElementId:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"Invalid element id: {value!r}")
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid element id: {value!r}") from None


def _opt_id(value: Any) -> Optional[ElementId]:
    return None if value is None else _as_id(value)


def _ids(values: Sequence[Any]) -> List[ElementId]:
    return [_as_id(v) for v in values or []]


def _opt_point(value: Any) -> Optional[Vec3]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ValueError(f"Expected [x, y, z], got: {value!r}")
    return to_vec3(value)


def _opt_box(value: Any) -> Optional[BoundingBox3D]:
    if value is None:
        return None
    if not isinstance(value, dict) or "min" not in value or "max" not in value:
        raise ValueError(f"Expected bbox {{'min': [...], 'max': [...]}}, got: {value!r}")
    minimum = _opt_point(value["min"])
    maximum = _opt_point(value["max"])
    if minimum is None or maximum is None:
        raise ValueError(f"Expected bbox corners, got null: {value!r}")
    if any(lo > hi for lo, hi in zip(minimum, maximum)):
        raise ValueError(f"Bounding box min exceeds max: {value!r}")
    return BoundingBox3D(minimum=minimum, maximum=maximum)


def build_checker(
    snapshot: ModelSnapshot, config: Optional[CheckConfig] = None
) -> ConsistencyChecker:
    """Consistency checker wired to every collaborator the snapshot implements."""
    resolver = HostResolver(snapshot, default_strategies(snapshot.host_query))
    return ConsistencyChecker(
        model=snapshot,
        classifier=snapshot.classifier,
        view_accessor=snapshot,
        host_resolver=resolver,
        config=config,
    )
