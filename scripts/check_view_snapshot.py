#!/usr/bin/env python3
"""Review tag leaders against bending details in an exported model snapshot."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rebar_leader_check import CheckConfig, ReviewService
from rebar_leader_check.run_folder import start_review_run, target_label
from rebar_leader_check.snapshot import ModelSnapshot, build_checker


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check that structural tag leaders point at their element's bending detail"
    )
    parser.add_argument("--snapshot", required=True, help="Path to snapshot JSON")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--view", type=int, help="Id of the view to review")
    target.add_argument("--sheet", type=int, help="Id of a sheet; reviews every placed view")
    target.add_argument(
        "--sheet-keyword",
        help="Review sheets whose number or name contains this keyword",
    )
    parser.add_argument("--runs-dir", default="runs", help="Runs output root")
    parser.add_argument(
        "--show-tagged-without-detail",
        action="store_true",
        help="Keep tagged elements that host no bending detail in the review list",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    started = time.perf_counter()
    run = start_review_run(
        Path(args.runs_dir), target_label(args.view, args.sheet, args.sheet_keyword)
    )
    snapshot = ModelSnapshot.load(run.attach_snapshot(args.snapshot))

    config = CheckConfig(hide_tagged_without_detail=not args.show_tagged_without_detail)
    service = ReviewService(build_checker(snapshot, config), sheet_index=snapshot)

    if args.view is not None:
        result = service.run_for_view(snapshot.views.get(args.view))
    elif args.sheet is not None:
        result = service.run_for_sheet(snapshot.sheets.get(args.sheet))
    else:
        result = service.run_for_keyword(list(snapshot.sheets.values()), args.sheet_keyword)

    report = run.write_results(
        result, config, elapsed_s=round(time.perf_counter() - started, 3)
    )

    print(f"Run ID: {run.run_id}")
    print(f"Run dir: {run.run_dir}")
    if not result.succeeded:
        print(f"Status: FAILED ({result.error_message})")
        return 2

    counts = report["counts"]["severity"]
    print("Status: OK")
    print(f"Views: {result.view_count}")
    print(f"Elements: {result.element_count}")
    for severity, count in counts.items():
        print(f"  {severity}: {count}")
    print(f"Report: {run.report_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
