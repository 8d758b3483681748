"""
Review-list construction over views and sheets.

Runs the consistency check for every reinforcement element reached from a
view, a sheet, or a set of sheets selected by keyword, and turns the results
into display entries bucketed by severity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from rebar_leader_check.checker import ConsistencyChecker
from rebar_leader_check.classification import classify
from rebar_leader_check.collaborators import ReinforcementElement, Sheet, SheetIndex, View
from rebar_leader_check.contracts import (
    INVALID_ELEMENT_ID,
    ConsistencyCheckItem,
    ElementId,
    Severity,
)

logger = logging.getLogger(__name__)


class TargetKind(str, Enum):
    NONE = "none"
    SINGLE_VIEW = "single_view"
    SHEET_WITH_PLACED_VIEWS = "sheet_with_placed_views"
    MULTIPLE_SHEETS = "multiple_sheets"


@dataclass(frozen=True)
class ReviewEntry:
    element_id: ElementId
    view_id: ElementId
    display_text: str
    severity: Severity
    item: Optional[ConsistencyCheckItem] = None


@dataclass
class ReviewRunResult:
    succeeded: bool
    error_message: str = ""
    target_kind: TargetKind = TargetKind.NONE
    view_ids: List[ElementId] = field(default_factory=list)
    failed_view_ids: List[ElementId] = field(default_factory=list)
    sheet_ids: List[ElementId] = field(default_factory=list)
    entries: List[ReviewEntry] = field(default_factory=list)

    @property
    def view_count(self) -> int:
        return len(set(self.view_ids))

    @property
    def element_count(self) -> int:
        return len(self.entries)

    def grouped(self) -> Dict[Severity, List[ReviewEntry]]:
        return group_entries(self.entries)


def group_entries(entries: Sequence[ReviewEntry]) -> Dict[Severity, List[ReviewEntry]]:
    """Entries per severity, each group ordered by display text then id."""
    groups: Dict[Severity, List[ReviewEntry]] = {severity: [] for severity in Severity}
    for entry in sorted(entries, key=lambda e: (e.display_text, e.element_id)):
        groups[entry.severity].append(entry)
    return groups


def sheet_display_text(sheet: Optional[Sheet]) -> str:
    if sheet is None:
        return ""
    number = (getattr(sheet, "number", "") or "").strip()
    name = (getattr(sheet, "name", "") or "").strip()
    if not number:
        return name
    if not name:
        return number
    return f"{number} {name}"


def sheet_view_prefix(sheet: Optional[Sheet], view: Optional[View]) -> str:
    sheet_text = sheet_display_text(sheet)
    view_name = (getattr(view, "name", "") or "").strip() if view is not None else ""
    if not sheet_text:
        return view_name
    if not view_name:
        return sheet_text
    return f"{sheet_text} / {view_name}"


def select_sheets_by_keyword(sheets: Sequence[Sheet], keyword: str) -> List[Sheet]:
    """Sheets whose number or name contains ``keyword`` (case-insensitive)."""
    token = (keyword or "").strip().lower()
    if not token:
        return []
    selected = [
        s for s in sheets
        if s is not None and (
            token in (getattr(s, "number", "") or "").lower()
            or token in (getattr(s, "name", "") or "").lower()
        )
    ]
    return sorted(
        selected,
        key=lambda s: (getattr(s, "number", "") or "", getattr(s, "name", "") or ""),
    )


class ReviewService:
    """Drives the checker over review targets and builds display entries."""

    def __init__(self, checker: ConsistencyChecker, sheet_index: Optional[SheetIndex] = None):
        self.checker = checker
        self.sheet_index = sheet_index

    def entries_for_view(self, view: View, display_prefix: str = "") -> List[ReviewEntry]:
        checker = self.checker
        elements = checker.reinforcement_in(view)
        results = checker.check_many(elements, view)
        structural = checker.collect_structural_tagged_ids(elements, view)
        hosts = checker.collect_host_ids_with_detail(view)
        items = {item.element_id: item for item in results.items}
        view_id = getattr(view, "id", INVALID_ELEMENT_ID)

        entries = []
        hidden = 0
        for element in elements:
            element_id = element.id
            if (
                checker.config.hide_tagged_without_detail
                and element_id in structural
                and element_id not in hosts
            ):
                hidden += 1
                continue
            item = items.get(element_id)
            entries.append(
                ReviewEntry(
                    element_id=element_id,
                    view_id=view_id,
                    display_text=self._display_text(display_prefix, element),
                    severity=classify(element_id, structural, hosts, item),
                    item=item,
                )
            )
        if hidden:
            logger.debug("View %s: %d tagged element(s) without bending detail hidden", view_id, hidden)
        return entries

    def run_for_view(self, view: Optional[View]) -> ReviewRunResult:
        if view is None:
            return ReviewRunResult(succeeded=False, error_message="view is missing")
        try:
            entries = self.entries_for_view(view)
        except Exception as exc:
            logger.warning("Review of view %s failed: %s", view.id, exc)
            return ReviewRunResult(
                succeeded=False,
                error_message=f"view {view.id} could not be reviewed: {type(exc).__name__}: {exc}",
                target_kind=TargetKind.SINGLE_VIEW,
                failed_view_ids=[view.id],
            )
        return ReviewRunResult(
            succeeded=True,
            target_kind=TargetKind.SINGLE_VIEW,
            view_ids=[view.id],
            entries=entries,
        )

    def run_for_sheet(self, sheet: Optional[Sheet]) -> ReviewRunResult:
        if sheet is None:
            return ReviewRunResult(succeeded=False, error_message="sheet is missing")
        result = self._run_for_sheets([sheet])
        result.target_kind = TargetKind.SHEET_WITH_PLACED_VIEWS
        return result

    def run_for_keyword(self, sheets: Sequence[Sheet], keyword: str) -> ReviewRunResult:
        token = (keyword or "").strip()
        if not token:
            return ReviewRunResult(succeeded=False, error_message="keyword is empty")
        selected = select_sheets_by_keyword(sheets, token)
        if not selected:
            return ReviewRunResult(
                succeeded=False, error_message=f"no sheet contains [{token}]"
            )
        result = self._run_for_sheets(selected)
        result.target_kind = TargetKind.MULTIPLE_SHEETS
        return result

    def _run_for_sheets(self, sheets: Sequence[Sheet]) -> ReviewRunResult:
        if self.sheet_index is None:
            return ReviewRunResult(succeeded=False, error_message="no sheet index available")

        result = ReviewRunResult(succeeded=True, sheet_ids=[s.id for s in sheets])
        for sheet in sheets:
            try:
                views = list(self.sheet_index.placed_views(sheet) or [])
            except Exception as exc:
                logger.warning("Placed views of sheet %s unreadable: %s", sheet.id, exc)
                continue
            for view in views:
                if view is None:
                    continue
                try:
                    entries = self.entries_for_view(view, sheet_view_prefix(sheet, view))
                except Exception as exc:
                    logger.warning("Review of view %s on sheet %s failed: %s", view.id, sheet.id, exc)
                    result.failed_view_ids.append(view.id)
                    continue
                result.view_ids.append(view.id)
                result.entries.extend(entries)
        logger.info(
            "Reviewed %d sheet(s), %d view(s), %d element(s)",
            len(sheets), result.view_count, result.element_count,
        )
        return result

    def _display_text(self, prefix: str, element: ReinforcementElement) -> str:
        try:
            type_name = self.checker.model.type_name_of(element)
        except Exception as exc:
            logger.warning("Type name of %s unreadable: %s", element.id, exc)
            type_name = None
        base = f"{type_name} / ID: {element.id}" if type_name else f"ID: {element.id}"
        return f"{prefix} / {base}" if prefix else base
