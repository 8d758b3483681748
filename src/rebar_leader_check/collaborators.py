"""Contracts the engine expects from the hosting model platform.

The engine never walks a model database itself. It is handed objects that
satisfy these protocols and only reads from them. Any method may raise; the
engine catches platform exceptions at the stage that made the call.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol, Sequence

from rebar_leader_check.contracts import BoundingBox3D, ElementId, Vec3


class Element(Protocol):
    id: ElementId


class ReinforcementElement(Element, Protocol):
    type_id: Optional[ElementId]


class View(Element, Protocol):
    name: str
    right_direction: Optional[Vec3]
    up_direction: Optional[Vec3]


class Sheet(Element, Protocol):
    number: str
    name: str


class TaggedReference(Protocol):
    """One leader-bearing reference of a tag; ``element_id`` is what it points at."""

    element_id: ElementId


class AnnotationTag(Element, Protocol):
    owner_view_id: ElementId
    leader_end_condition: Optional[str]

    def tagged_references(self) -> Sequence[TaggedReference]: ...

    def tagged_element_ids(self) -> Sequence[ElementId]: ...

    def leader_end(self, reference: TaggedReference) -> Optional[Vec3]: ...

    def leader_elbow(self, reference: TaggedReference) -> Optional[Vec3]: ...

    def head_position(self) -> Optional[Vec3]: ...


class Parameter(Protocol):
    name: str

    def as_element_id(self) -> Optional[ElementId]:
        """Element id stored in the parameter, ``None`` for other storage types."""
        ...


class DetailAnnotation(Element, Protocol):
    owner_view_id: ElementId

    def parameters(self) -> Iterable[Parameter]: ...


class ModelDatabase(Protocol):
    def get_element(self, element_id: ElementId) -> Optional[Any]: ...

    def is_reinforcement(self, element: Any) -> bool: ...

    def dependent_annotations_of(self, element: Any) -> Sequence[ElementId]: ...

    def elements_visible_in(self, view: View) -> Sequence[Any]: ...

    def type_name_of(self, element: Any) -> Optional[str]: ...


class TagClassifier(Protocol):
    def is_structural_tag(self, tag: Any) -> bool: ...

    def is_bending_detail_tag(self, tag: Any) -> bool: ...


class ViewAccessor(Protocol):
    def bounding_box_of(
        self, element: Any, view: Optional[View]
    ) -> Optional[BoundingBox3D]: ...


class SheetIndex(Protocol):
    def placed_views(self, sheet: Sheet) -> Sequence[View]: ...


class HostQuery(Protocol):
    """First-class "host of this detail" capability, when the platform has one.

    The accepted argument shapes differ between schema versions, so the
    engine tries several (see ``host_resolver.DEFAULT_CALL_SHAPES``).
    """

    def __call__(self, *args: Any) -> Any: ...
