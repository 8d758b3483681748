"""
2D slab intersection of a leader ray against detail bounding boxes.

Each 3D box is reduced to the axis-aligned (u, v) rectangle around its 8
projected corners. For rotated boxes this rectangle is larger than the true
silhouette and can report hits the drawn detail does not cover; that
approximation is kept on purpose.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional, Tuple

import numpy as np
import trimesh
from shapely.geometry import MultiPoint

from rebar_leader_check.contracts import (
    EPSILON,
    BoundingBox3D,
    ElementId,
    FailureKind,
    Outcome,
    Ray,
    RayHit,
    ViewBasis,
)
from rebar_leader_check.projection import project_direction, project_point, project_points

logger = logging.getLogger(__name__)

Rect2D = Tuple[float, float, float, float]  # (u_min, v_min, u_max, v_max)


def box_corners(box: BoundingBox3D) -> np.ndarray:
    """(8, 3) corner array of an axis-aligned box."""
    return trimesh.bounds.corners(np.array([box.minimum, box.maximum], dtype=float))


def projected_rectangle(corners: np.ndarray, basis: ViewBasis) -> Rect2D:
    """Axis-aligned (u, v) rectangle enclosing projected 3D points."""
    uv = project_points(corners, basis)
    return MultiPoint([tuple(p) for p in uv]).bounds


def intersect_ray_box(
    ray: Ray,
    box: BoundingBox3D,
    basis: ViewBasis,
    epsilon: float = EPSILON,
) -> Outcome[float]:
    """Entry distance of ``ray`` into the projected rectangle of ``box``.

    Returns the slab-method ``tmin`` clamped to 0, so a ray starting inside
    the rectangle enters at t = 0. t is measured along the unit 3D ray
    direction from the ray origin.
    """
    direction = project_direction(ray.direction, basis, epsilon)
    if not direction.ok:
        return Outcome(failure=direction.failure)

    rect = projected_rectangle(box_corners(box), basis)
    origin = project_point(ray.origin, basis)
    lows = (rect[0], rect[1])
    highs = (rect[2], rect[3])

    t_min = -math.inf
    t_max = math.inf
    for axis in range(2):
        o = origin[axis]
        d = direction.value[axis]
        lo, hi = lows[axis], highs[axis]
        if abs(d) < epsilon:
            # Parallel to this slab: must already be inside it.
            if o < lo or o > hi:
                return Outcome.fail(
                    FailureKind.INTERSECTION_MISS,
                    f"ray parallel to axis {axis} outside [{lo:.6g}, {hi:.6g}]",
                )
            continue
        t1 = (lo - o) / d
        t2 = (hi - o) / d
        if t1 > t2:
            t1, t2 = t2, t1
        t_min = max(t_min, t1)
        t_max = min(t_max, t2)
        if t_min > t_max:
            return Outcome.fail(FailureKind.INTERSECTION_MISS, "slab interval is empty")

    if t_max < 0.0:
        return Outcome.fail(FailureKind.INTERSECTION_MISS, "box lies behind the ray origin")

    return Outcome.success(max(t_min, 0.0))


def find_nearest_hit(
    ray: Ray,
    candidates: Iterable[Tuple[ElementId, Optional[BoundingBox3D]]],
    basis: ViewBasis,
    epsilon: float = EPSILON,
) -> Outcome[RayHit]:
    """First candidate the extended leader crosses.

    Ties keep the earliest candidate, so callers must pass a consistently
    ordered sequence.
    """
    best: Optional[RayHit] = None
    tested = 0
    without_box = 0
    for detail_id, box in candidates:
        if box is None:
            without_box += 1
            continue
        tested += 1
        hit = intersect_ray_box(ray, box, basis, epsilon)
        if not hit.ok:
            continue
        if best is None or hit.value < best.t_enter:
            best = RayHit(detail_id=detail_id, t_enter=hit.value)

    if best is None:
        reason = f"ray hits none of {tested} candidate detail(s)"
        if without_box:
            reason += f" ({without_box} without bounding box)"
        return Outcome.fail(FailureKind.INTERSECTION_MISS, reason)

    logger.debug("Nearest hit: detail=%s t=%.6g of %d tested", best.detail_id, best.t_enter, tested)
    return Outcome.success(best)
