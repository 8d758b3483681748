"""
Structured report for a review run.

Flattens a ``ReviewRunResult`` into a JSON-ready payload (per-element
items, severity counts, run metadata) and a short markdown summary.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rebar_leader_check.classification import severity_counts
from rebar_leader_check.contracts import CheckConfig, Severity
from rebar_leader_check.review import ReviewEntry, ReviewRunResult

REPORT_SCHEMA_VERSION = "rebar_leader_check.report.v1"


def entry_to_dict(entry: ReviewEntry) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "element_id": entry.element_id,
        "view_id": entry.view_id,
        "display_text": entry.display_text,
        "severity": entry.severity.value,
        "color": entry.severity.color,
    }
    if entry.item is not None:
        item = asdict(entry.item)
        item["stage"] = entry.item.stage.value if entry.item.stage else None
        item["failure_kind"] = entry.item.failure_kind.value if entry.item.failure_kind else None
        item["leader_end_point"] = (
            list(entry.item.leader_end_point) if entry.item.leader_end_point else None
        )
        payload["check"] = item
    return payload


def build_report(
    result: ReviewRunResult,
    *,
    run_id: str,
    config: Optional[CheckConfig] = None,
    input_sha256: str = "",
) -> Dict[str, Any]:
    config = config or CheckConfig()
    counts = severity_counts(e.severity for e in result.entries)
    return {
        "schema_version": REPORT_SCHEMA_VERSION,
        "run_id": run_id,
        "timestamp_utc": datetime.now(timezone.utc).replace(microsecond=0).isoformat(),
        "status": "ok" if result.succeeded else "failed",
        "error_message": result.error_message,
        "target_kind": result.target_kind.value,
        "input_sha256": input_sha256,
        "failed_view_ids": list(result.failed_view_ids),
        "config": asdict(config),
        "counts": {
            "sheets": len(result.sheet_ids),
            "views": result.view_count,
            "elements": result.element_count,
            "severity": counts,
        },
        "entries": [entry_to_dict(e) for e in result.entries],
    }


def build_summary(result: ReviewRunResult, run_id: str) -> str:
    lines: List[str] = [f"# Review {run_id}", ""]
    if not result.succeeded:
        lines += ["- Status: **FAILED**", f"- Error: {result.error_message}", ""]
        return "\n".join(lines)

    lines += [
        "- Status: **OK**",
        f"- Target: {result.target_kind.value}",
        f"- Views: {result.view_count}",
        f"- Elements: {result.element_count}",
    ]
    if result.failed_view_ids:
        lines.append(f"- Views not reviewed: {', '.join(str(v) for v in result.failed_view_ids)}")
    lines.append("")
    for severity, entries in result.grouped().items():
        lines.append(f"## {severity.value} ({severity.color}): {len(entries)}")
        for entry in entries:
            detail = ""
            if severity is not Severity.OTHER and entry.item is not None:
                detail = f" - {entry.item.message.splitlines()[0]}"
            lines.append(f"- {entry.display_text}{detail}")
        lines.append("")
    return "\n".join(lines)
