"""
Shared fixtures: a small plan-view model snapshot.

Plan view 10 looks down Z (right = +X, up = +Y). Rebars 100..104 are all
visible in it:

- 100: tag 200 leads along +X into detail 300, which is hosted by 100.
- 101: tag 201 leads along +X into detail 300 too, but 101's own detail is 301.
- 102: no tag and no detail.
- 103: tag 203 has no leader reference; detail 302 is hosted by 103.
- 104: tag 204 leads along -X into empty space; no detail.

Detail 300 is linked through ``host_links`` (platform host query), detail 301
through an element-id parameter and detail 302 through its ``host_id``.
"""
import copy
import json
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rebar_leader_check.contracts import CheckConfig
from rebar_leader_check.snapshot import ModelSnapshot, build_checker

STRUCTURAL_TAG = "Structural Rebar Tag"
BENDING_DETAIL = "Bending Detail"


def _box(lo, hi):
    return {"min": list(lo), "max": list(hi)}


def _tag(tag_id, rebar_id, end=None, elbow=None, **extra):
    references = []
    if end is not None:
        references.append({"element_id": rebar_id, "end": end, "elbow": elbow})
    record = {
        "id": tag_id,
        "view_id": 10,
        "name": "D13 Standard",
        "family": STRUCTURAL_TAG,
        "tagged_ids": [rebar_id],
        "references": references,
    }
    record.update(extra)
    return record


def _detail(detail_id, lo, hi, **extra):
    record = {
        "id": detail_id,
        "view_id": 10,
        "name": "Shape 21",
        "family": BENDING_DETAIL,
        "bbox": _box(lo, hi),
    }
    record.update(extra)
    return record


PLAN_PAYLOAD = {
    "schema_version": "rebar_leader_check.snapshot.v1",
    "classifier": {
        "structural_tag_name": STRUCTURAL_TAG,
        "bending_detail_name": BENDING_DETAIL,
    },
    "views": [
        {"id": 10, "name": "Plan L1", "right": [1, 0, 0], "up": [0, 1, 0]},
        {"id": 11, "name": "Section A", "right": [1, 0, 0], "up": [0, 0, 1]},
    ],
    "sheets": [
        {"id": 900, "number": "S-3001", "name": "Rebar Plan", "view_ids": [10]},
        {"id": 901, "number": "S-4001", "name": "Sections", "view_ids": [11]},
        {"id": 902, "number": "A-1001", "name": "Architecture", "view_ids": []},
    ],
    "types": [{"id": 500, "name": "D13"}],
    "rebars": [
        {"id": rebar_id, "type_id": 500, "view_ids": [10]}
        for rebar_id in (100, 101, 102, 103, 104)
    ],
    "tags": [
        _tag(200, 100, end=[5, 0, 0], elbow=[0, 0, 0]),
        _tag(201, 101, end=[5, 0.5, 0], elbow=[0, 0.5, 0]),
        _tag(203, 103, leader_end_condition="Free"),
        _tag(204, 104, end=[-5, -20, 0], elbow=[0, -20, 0]),
    ],
    "details": [
        _detail(300, [10, -1, 0], [12, 1, 0]),
        _detail(
            301, [0, 10, 0], [2, 12, 0],
            parameters=[{"name": "Comments"}, {"name": "Host Rebar", "element_id": 101}],
        ),
        _detail(302, [-12, 20, 0], [-10, 22, 0], host_id=103),
    ],
    "host_links": {"300": 100},
}


@pytest.fixture
def plan_payload():
    return copy.deepcopy(PLAN_PAYLOAD)


@pytest.fixture
def snapshot(plan_payload):
    return ModelSnapshot.from_dict(plan_payload)


@pytest.fixture
def plan_view(snapshot):
    return snapshot.views[10]


@pytest.fixture
def checker(snapshot):
    return build_checker(snapshot)


@pytest.fixture
def checker_showing_all(snapshot):
    return build_checker(snapshot, CheckConfig(hide_tagged_without_detail=False))


@pytest.fixture
def snapshot_file(plan_payload, tmp_path):
    path = tmp_path / "plan_snapshot.json"
    path.write_text(json.dumps(plan_payload), encoding="utf-8")
    return str(path)
