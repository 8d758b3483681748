"""
Run folders for offline leader reviews.

A run is named after its review target and keeps the snapshot it reviewed
next to the results::

    <runs root>/
        LATEST                          id of the newest run
        20260101_120000_view-10/
            input/<snapshot>.json
            report.json
            summary.md
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rebar_leader_check.contracts import CheckConfig, ElementId
from rebar_leader_check.report import build_report, build_summary
from rebar_leader_check.review import ReviewRunResult

logger = logging.getLogger(__name__)

LATEST_MARKER = "LATEST"


def target_label(
    view_id: Optional[ElementId] = None,
    sheet_id: Optional[ElementId] = None,
    keyword: Optional[str] = None,
) -> str:
    """Folder label of a review target: ``view-10``, ``sheet-900``, ``keyword-rebar``."""
    if view_id is not None:
        return f"view-{view_id}"
    if sheet_id is not None:
        return f"sheet-{sheet_id}"
    token = re.sub(r"[^a-z0-9]+", "-", (keyword or "").strip().lower()).strip("-")
    return f"keyword-{token or 'blank'}"


def snapshot_fingerprint(path: Path) -> str:
    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass
class ReviewRun:
    """One review run on disk; owns the paths of everything it writes."""

    run_id: str
    run_dir: Path
    snapshot_path: Optional[Path] = None
    snapshot_sha256: str = ""

    @property
    def report_path(self) -> Path:
        return self.run_dir / "report.json"

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.md"

    def attach_snapshot(self, source: Path) -> Path:
        """Copy the reviewed snapshot into the run and fingerprint the copy."""
        source = Path(source)
        input_dir = self.run_dir / "input"
        input_dir.mkdir(parents=True, exist_ok=True)
        copied = input_dir / source.name
        shutil.copy2(source, copied)
        self.snapshot_path = copied
        self.snapshot_sha256 = snapshot_fingerprint(copied)
        return copied

    def write_results(
        self,
        result: ReviewRunResult,
        config: Optional[CheckConfig] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        """Write ``report.json`` and ``summary.md``; returns the report payload."""
        report = build_report(
            result,
            run_id=self.run_id,
            config=config,
            input_sha256=self.snapshot_sha256,
        )
        report.update(extra)
        with self.report_path.open("w", encoding="utf-8") as f:
            json.dump(report, f, indent=2)
        self.summary_path.write_text(build_summary(result, self.run_id), encoding="utf-8")
        logger.info("Run %s: %s, %d element(s)", self.run_id, report["status"], result.element_count)
        return report


def start_review_run(
    runs_root: Path,
    label: str,
    now: Optional[datetime] = None,
) -> ReviewRun:
    """Create a fresh run folder and mark it as the latest run."""
    root = Path(runs_root)
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
    run_id = f"{stamp}_{label}"
    attempt = 1
    while (root / run_id).exists():
        attempt += 1
        run_id = f"{stamp}_{label}_{attempt}"
    run_dir = root / run_id
    run_dir.mkdir(parents=True)
    (root / LATEST_MARKER).write_text(run_id + "\n", encoding="utf-8")
    return ReviewRun(run_id=run_id, run_dir=run_dir)


def latest_run_dir(runs_root: Path) -> Optional[Path]:
    marker = Path(runs_root) / LATEST_MARKER
    if not marker.is_file():
        return None
    run_dir = Path(runs_root) / marker.read_text(encoding="utf-8").strip()
    return run_dir if run_dir.is_dir() else None
