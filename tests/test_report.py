"""Tests for run reports and the run-folder helpers."""

import json
from datetime import datetime

from rebar_leader_check.contracts import CheckConfig
from rebar_leader_check.report import REPORT_SCHEMA_VERSION, build_report, build_summary
from rebar_leader_check.review import ReviewRunResult, ReviewService
from rebar_leader_check.run_folder import (
    LATEST_MARKER,
    latest_run_dir,
    start_review_run,
    target_label,
)


def test_report_counts_and_entries(checker, plan_view):
    result = ReviewService(checker).run_for_view(plan_view)
    report = build_report(result, run_id="r1", config=CheckConfig(), input_sha256="abc")

    assert report["schema_version"] == REPORT_SCHEMA_VERSION
    assert report["status"] == "ok"
    assert report["target_kind"] == "single_view"
    assert report["counts"]["views"] == 1
    assert report["counts"]["elements"] == 4
    assert report["counts"]["severity"] == {
        "mismatch": 1,
        "leader-not-found": 1,
        "no-tag-no-detail": 1,
        "other": 1,
    }

    by_id = {entry["element_id"]: entry for entry in report["entries"]}
    assert by_id[101]["color"] == "red"
    assert by_id[101]["check"]["failure_kind"] == "mismatch"
    assert by_id[101]["check"]["stage"] == "compare"
    assert by_id[100]["check"]["message"] == "match"
    assert by_id[100]["check"]["leader_end_point"] == [5.0, 0.0, 0.0]
    assert by_id[103]["check"]["leader_end_point"] is None


def test_failed_run_report():
    result = ReviewRunResult(succeeded=False, error_message="view is missing")
    report = build_report(result, run_id="r2")
    assert report["status"] == "failed"
    assert report["error_message"] == "view is missing"
    assert report["entries"] == []
    assert "**FAILED**" in build_summary(result, "r2")


def test_summary_groups_by_severity(checker, plan_view):
    result = ReviewService(checker).run_for_view(plan_view)
    summary = build_summary(result, "r1")
    assert "## mismatch (red): 1" in summary
    assert "- D13 / ID: 101 - compare: mismatch" in summary
    assert "- D13 / ID: 100\n" in summary


def test_report_lists_views_not_reviewed():
    result = ReviewRunResult(succeeded=True, view_ids=[10], failed_view_ids=[11])
    report = build_report(result, run_id="r3")
    assert report["failed_view_ids"] == [11]
    assert "- Views not reviewed: 11" in build_summary(result, "r3")


class TestRunFolder:
    def test_target_labels(self):
        assert target_label(view_id=10) == "view-10"
        assert target_label(sheet_id=900) == "sheet-900"
        assert target_label(keyword=" Rebar Plan! ") == "keyword-rebar-plan"
        assert target_label(keyword="  ") == "keyword-blank"

    def test_start_marks_latest(self, tmp_path):
        run = start_review_run(tmp_path, "view-10", now=datetime(2026, 1, 1, 12, 0, 0))
        assert run.run_id == "20260101_120000_view-10"
        assert run.run_dir.is_dir()
        assert (tmp_path / LATEST_MARKER).read_text(encoding="utf-8").strip() == run.run_id
        assert latest_run_dir(tmp_path) == run.run_dir

    def test_same_second_runs_get_suffix(self, tmp_path):
        now = datetime(2026, 1, 1, 12, 0, 0)
        first = start_review_run(tmp_path, "view-10", now=now)
        second = start_review_run(tmp_path, "view-10", now=now)
        assert second.run_id == first.run_id + "_2"
        assert latest_run_dir(tmp_path) == second.run_dir

    def test_latest_missing(self, tmp_path):
        assert latest_run_dir(tmp_path) is None

    def test_write_results(self, tmp_path, snapshot_file, checker, plan_view):
        run = start_review_run(tmp_path / "runs", "view-10")
        copied = run.attach_snapshot(snapshot_file)
        assert copied.parent == run.run_dir / "input"
        assert len(run.snapshot_sha256) == 64

        result = ReviewService(checker).run_for_view(plan_view)
        report = run.write_results(result, CheckConfig(), elapsed_s=0.5)

        on_disk = json.loads(run.report_path.read_text(encoding="utf-8"))
        assert on_disk == report
        assert on_disk["run_id"] == run.run_id
        assert on_disk["input_sha256"] == run.snapshot_sha256
        assert on_disk["elapsed_s"] == 0.5
        assert "## mismatch (red): 1" in run.summary_path.read_text(encoding="utf-8")
