"""
Resolve the reinforcement element a bending-detail annotation belongs to.

The relationship is exposed through different surfaces depending on the
model schema version, so resolution is an ordered chain of strategies that
stops at the first success:

1. ``DomainQueryStrategy``: a first-class "host of this detail" query.
2. ``MemberProbeStrategy``: a host accessor on the detail object itself.
3. ``ParameterScanStrategy``: the first element-id parameter that points at
   a reinforcement element.

Every candidate value is validated against the model database before it is
accepted, so a strategy never returns a host that is not reinforcement.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from rebar_leader_check.collaborators import DetailAnnotation, HostQuery, ModelDatabase
from rebar_leader_check.contracts import (
    ElementId,
    FailureKind,
    Outcome,
    is_valid_id,
)

logger = logging.getLogger(__name__)

CallShape = Tuple[str, Callable[[HostQuery, ModelDatabase, Any], Any]]

DEFAULT_CALL_SHAPES: Sequence[CallShape] = (
    ("document+id", lambda query, model, detail: query(model, detail.id)),
    ("document+element", lambda query, model, detail: query(model, detail)),
    ("id", lambda query, model, detail: query(detail.id)),
    ("element", lambda query, model, detail: query(detail)),
)

HOST_METHOD_NAMES: Sequence[str] = ("get_host", "get_hosts")
HOST_ATTRIBUTE_NAMES: Sequence[str] = ("host_id", "host")


def candidate_ids(value: Any) -> List[ElementId]:
    """Flatten a host query return value into element ids.

    Accepts a bare id, an element (``.id``), a reference (``.element_id``)
    or any iterable of those.
    """
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, int):
        return [value]
    if isinstance(value, (str, bytes)):
        return []
    element_id = getattr(value, "element_id", None)
    if isinstance(element_id, int) and not isinstance(element_id, bool):
        return [element_id]
    element_id = getattr(value, "id", None)
    if isinstance(element_id, int) and not isinstance(element_id, bool):
        return [element_id]
    if isinstance(value, Iterable):
        ids: List[ElementId] = []
        for item in value:
            ids.extend(candidate_ids(item))
        return ids
    return []


def first_reinforcement_id(model: ModelDatabase, value: Any) -> Optional[ElementId]:
    for element_id in candidate_ids(value):
        if not is_valid_id(element_id):
            continue
        element = model.get_element(element_id)
        if element is not None and model.is_reinforcement(element):
            return element_id
    return None


class HostResolutionStrategy:
    """One way of finding a detail's host. Subclasses implement ``resolve``."""

    name = "strategy"

    def resolve(self, model: ModelDatabase, detail: DetailAnnotation) -> Outcome[ElementId]:
        raise NotImplementedError


class DomainQueryStrategy(HostResolutionStrategy):
    name = "domain-query"

    def __init__(
        self,
        query: Optional[HostQuery],
        call_shapes: Sequence[CallShape] = DEFAULT_CALL_SHAPES,
    ):
        self.query = query
        self.call_shapes = tuple(call_shapes)

    def resolve(self, model: ModelDatabase, detail: DetailAnnotation) -> Outcome[ElementId]:
        if self.query is None:
            return Outcome.fail(FailureKind.HOST_INDETERMINATE, "no host query available")

        notes: List[str] = []
        for shape_name, call in self.call_shapes:
            try:
                raw = call(self.query, model, detail)
            except Exception as exc:
                notes.append(f"{shape_name}: {type(exc).__name__}")
                continue
            host_id = first_reinforcement_id(model, raw)
            if host_id is not None:
                return Outcome.success(host_id)
            notes.append(f"{shape_name}: no reinforcement host")
        return Outcome.fail(FailureKind.HOST_INDETERMINATE, "; ".join(notes))


class MemberProbeStrategy(HostResolutionStrategy):
    name = "member-probe"

    def __init__(
        self,
        method_names: Sequence[str] = HOST_METHOD_NAMES,
        attribute_names: Sequence[str] = HOST_ATTRIBUTE_NAMES,
    ):
        self.method_names = tuple(method_names)
        self.attribute_names = tuple(attribute_names)

    def resolve(self, model: ModelDatabase, detail: DetailAnnotation) -> Outcome[ElementId]:
        notes: List[str] = []
        for name in self.method_names:
            method = getattr(detail, name, None)
            if not callable(method):
                continue
            try:
                raw = method()
            except Exception as exc:
                notes.append(f"{name}(): {type(exc).__name__}")
                continue
            host_id = first_reinforcement_id(model, raw)
            if host_id is not None:
                return Outcome.success(host_id)
            notes.append(f"{name}(): no reinforcement host")

        for name in self.attribute_names:
            try:
                raw = getattr(detail, name, None)
            except Exception as exc:
                notes.append(f"{name}: {type(exc).__name__}")
                continue
            if raw is None or callable(raw):
                continue
            host_id = first_reinforcement_id(model, raw)
            if host_id is not None:
                return Outcome.success(host_id)
            notes.append(f"{name}: no reinforcement host")

        reason = "; ".join(notes) if notes else "detail exposes no host member"
        return Outcome.fail(FailureKind.HOST_INDETERMINATE, reason)


class ParameterScanStrategy(HostResolutionStrategy):
    name = "parameter-scan"

    def resolve(self, model: ModelDatabase, detail: DetailAnnotation) -> Outcome[ElementId]:
        try:
            parameters = list(detail.parameters())
        except Exception as exc:
            return Outcome.fail(
                FailureKind.HOST_INDETERMINATE, f"parameters unreadable ({exc})"
            )

        scanned = 0
        for parameter in parameters:
            if parameter is None:
                continue
            try:
                element_id = parameter.as_element_id()
            except Exception:
                continue
            if element_id is None:
                continue
            scanned += 1
            host_id = first_reinforcement_id(model, element_id)
            if host_id is not None:
                return Outcome.success(host_id)
        return Outcome.fail(
            FailureKind.HOST_INDETERMINATE,
            f"none of {scanned} element-id parameter(s) points at reinforcement",
        )


def default_strategies(query: Optional[HostQuery] = None) -> List[HostResolutionStrategy]:
    return [DomainQueryStrategy(query), MemberProbeStrategy(), ParameterScanStrategy()]


class HostResolver:
    """Runs the strategy chain in order; first success wins."""

    def __init__(
        self,
        model: ModelDatabase,
        strategies: Optional[Sequence[HostResolutionStrategy]] = None,
    ):
        self.model = model
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def resolve_host(self, detail: DetailAnnotation) -> Outcome[ElementId]:
        reasons: List[str] = []
        for strategy in self.strategies:
            try:
                outcome = strategy.resolve(self.model, detail)
            except Exception as exc:
                logger.warning(
                    "Host strategy %s raised on detail %s: %s",
                    strategy.name, getattr(detail, "id", "?"), exc,
                )
                reasons.append(f"{strategy.name}: {type(exc).__name__}: {exc}")
                continue
            if outcome.ok:
                logger.debug(
                    "Detail %s host %s via %s",
                    getattr(detail, "id", "?"), outcome.value, strategy.name,
                )
                return outcome
            reasons.append(f"{strategy.name}: {outcome.failure.reason}")

        return Outcome.fail(
            FailureKind.HOST_INDETERMINATE,
            "host indeterminate (" + " | ".join(reasons) + ")",
        )
