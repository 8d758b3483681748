"""Tests for review-list construction over views and sheets."""

from types import SimpleNamespace

from rebar_leader_check.checker import ConsistencyChecker
from rebar_leader_check.contracts import Severity
from rebar_leader_check.host_resolver import HostResolver, default_strategies
from rebar_leader_check.review import (
    ReviewEntry,
    ReviewService,
    TargetKind,
    group_entries,
    select_sheets_by_keyword,
    sheet_display_text,
    sheet_view_prefix,
)


def _severities(result):
    return {entry.element_id: entry.severity for entry in result.entries}


class BusyModel:
    """Snapshot whose visible-element listing fails for some views."""

    def __init__(self, snapshot, busy_view_ids):
        self._snapshot = snapshot
        self._busy_view_ids = set(busy_view_ids)

    def __getattr__(self, name):
        return getattr(self._snapshot, name)

    def elements_visible_in(self, view):
        if view.id in self._busy_view_ids:
            raise RuntimeError("model is busy")
        return self._snapshot.elements_visible_in(view)


def _busy_service(snapshot, busy_view_ids):
    checker = ConsistencyChecker(
        model=BusyModel(snapshot, busy_view_ids),
        classifier=snapshot.classifier,
        view_accessor=snapshot,
        host_resolver=HostResolver(snapshot, default_strategies(snapshot.host_query)),
    )
    return ReviewService(checker, sheet_index=snapshot)


class TestRunForView:
    def test_entries_and_hide_rule(self, checker, plan_view):
        result = ReviewService(checker).run_for_view(plan_view)
        assert result.succeeded
        assert result.target_kind is TargetKind.SINGLE_VIEW
        assert result.view_ids == [10]
        assert _severities(result) == {
            100: Severity.OTHER,
            101: Severity.MISMATCH,
            102: Severity.NO_TAG_NO_DETAIL,
            103: Severity.LEADER_NOT_FOUND,
        }

    def test_tagged_element_without_detail_can_be_shown(self, checker_showing_all, plan_view):
        result = ReviewService(checker_showing_all).run_for_view(plan_view)
        assert _severities(result)[104] is Severity.OTHER
        assert result.element_count == 5

    def test_display_text_uses_type_name(self, checker, plan_view):
        result = ReviewService(checker).run_for_view(plan_view)
        assert [e.display_text for e in result.entries] == [
            "D13 / ID: 100",
            "D13 / ID: 101",
            "D13 / ID: 102",
            "D13 / ID: 103",
        ]

    def test_entries_carry_check_items(self, checker, plan_view):
        result = ReviewService(checker).run_for_view(plan_view)
        mismatch = next(e for e in result.entries if e.element_id == 101)
        assert mismatch.item.pointed_host_id == 100
        assert mismatch.view_id == 10

    def test_missing_view(self, checker):
        result = ReviewService(checker).run_for_view(None)
        assert not result.succeeded
        assert result.error_message == "view is missing"

    def test_model_fault_fails_the_view(self, snapshot, plan_view):
        result = _busy_service(snapshot, [10]).run_for_view(plan_view)
        assert not result.succeeded
        assert "model is busy" in result.error_message
        assert result.failed_view_ids == [10]
        assert result.entries == []


class TestRunForSheets:
    def test_sheet_prefixes_display_text(self, checker, snapshot):
        service = ReviewService(checker, sheet_index=snapshot)
        result = service.run_for_sheet(snapshot.sheets[900])
        assert result.succeeded
        assert result.target_kind is TargetKind.SHEET_WITH_PLACED_VIEWS
        assert result.sheet_ids == [900]
        assert result.view_ids == [10]
        assert result.entries[0].display_text == "S-3001 Rebar Plan / Plan L1 / D13 / ID: 100"

    def test_sheet_without_views(self, checker, snapshot):
        result = ReviewService(checker, sheet_index=snapshot).run_for_sheet(snapshot.sheets[902])
        assert result.succeeded
        assert result.view_count == 0
        assert result.entries == []

    def test_missing_sheet(self, checker, snapshot):
        result = ReviewService(checker, sheet_index=snapshot).run_for_sheet(None)
        assert result.error_message == "sheet is missing"

    def test_sheet_needs_index(self, checker, snapshot):
        result = ReviewService(checker).run_for_sheet(snapshot.sheets[900])
        assert not result.succeeded
        assert result.error_message == "no sheet index available"

    def test_keyword_selects_matching_sheets(self, checker, snapshot):
        service = ReviewService(checker, sheet_index=snapshot)
        result = service.run_for_keyword(list(snapshot.sheets.values()), "s-")
        assert result.succeeded
        assert result.target_kind is TargetKind.MULTIPLE_SHEETS
        assert result.sheet_ids == [900, 901]
        assert result.view_ids == [10, 11]
        assert result.view_count == 2
        assert result.element_count == 4

    def test_failing_view_does_not_stop_the_run(self, snapshot):
        service = _busy_service(snapshot, [11])
        result = service.run_for_keyword(list(snapshot.sheets.values()), "s-")
        assert result.succeeded
        assert result.view_ids == [10]
        assert result.failed_view_ids == [11]
        assert result.element_count == 4

    def test_keyword_errors(self, checker, snapshot):
        service = ReviewService(checker, sheet_index=snapshot)
        sheets = list(snapshot.sheets.values())
        assert service.run_for_keyword(sheets, "  ").error_message == "keyword is empty"
        assert service.run_for_keyword(sheets, "zzz").error_message == "no sheet contains [zzz]"


class TestHelpers:
    def test_sheet_display_text(self):
        assert sheet_display_text(SimpleNamespace(number="S-1", name="Plan")) == "S-1 Plan"
        assert sheet_display_text(SimpleNamespace(number="", name="Plan")) == "Plan"
        assert sheet_display_text(SimpleNamespace(number="S-1", name=" ")) == "S-1"
        assert sheet_display_text(None) == ""

    def test_sheet_view_prefix(self):
        sheet = SimpleNamespace(number="S-1", name="Plan")
        assert sheet_view_prefix(sheet, SimpleNamespace(name="L1")) == "S-1 Plan / L1"
        assert sheet_view_prefix(sheet, None) == "S-1 Plan"
        assert sheet_view_prefix(None, SimpleNamespace(name="L1")) == "L1"

    def test_keyword_match_is_case_insensitive_and_sorted(self):
        sheets = [
            SimpleNamespace(id=3, number="S-200", name="Walls"),
            SimpleNamespace(id=1, number="S-100", name="Slab REBAR"),
            SimpleNamespace(id=2, number="A-100", name="Doors"),
            SimpleNamespace(id=4, number="S-050", name="rebar schedule"),
        ]
        assert [s.id for s in select_sheets_by_keyword(sheets, "Rebar")] == [4, 1]
        assert select_sheets_by_keyword(sheets, "") == []

    def test_group_entries_orders_by_display_text_then_id(self):
        entries = [
            ReviewEntry(element_id=5, view_id=1, display_text="B", severity=Severity.OTHER),
            ReviewEntry(element_id=3, view_id=1, display_text="A", severity=Severity.OTHER),
            ReviewEntry(element_id=2, view_id=1, display_text="A", severity=Severity.OTHER),
            ReviewEntry(element_id=9, view_id=1, display_text="Z", severity=Severity.MISMATCH),
        ]
        groups = group_entries(entries)
        assert list(groups) == list(Severity)
        assert [e.element_id for e in groups[Severity.OTHER]] == [2, 3, 5]
        assert [e.element_id for e in groups[Severity.MISMATCH]] == [9]
        assert groups[Severity.LEADER_NOT_FOUND] == []
