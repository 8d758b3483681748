"""
View-plane projection helpers.

All candidate boxes and the leader ray are projected into one shared (u, v)
frame built from the view's own right/up axes, so a 2D ray-box test is valid
regardless of 3D depth.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from rebar_leader_check.collaborators import View
from rebar_leader_check.contracts import (
    EPSILON,
    FailureKind,
    LeaderSegment,
    Outcome,
    Ray,
    Vec2,
    ViewBasis,
    to_vec2,
    to_vec3,
)


def view_basis(view: View, epsilon: float = EPSILON) -> Outcome[ViewBasis]:
    """Build an orthonormal (right, up) basis from a view.

    ``up`` is re-orthogonalised against ``right`` so slightly skewed view
    directions still give a valid frame. For an already orthogonal pair the
    result is the view's own right/up axes, only normalised.
    """
    right_raw = getattr(view, "right_direction", None)
    up_raw = getattr(view, "up_direction", None)
    if right_raw is None or up_raw is None:
        return Outcome.fail(
            FailureKind.GEOMETRY_UNAVAILABLE, "view has no right/up direction"
        )

    right = np.asarray(right_raw, dtype=float)
    up = np.asarray(up_raw, dtype=float)

    right_len = float(np.linalg.norm(right))
    if right_len < epsilon:
        return Outcome.fail(
            FailureKind.GEOMETRY_UNAVAILABLE, "view right direction is degenerate"
        )
    right = right / right_len

    up = up - float(up @ right) * right
    up_len = float(np.linalg.norm(up))
    if up_len < epsilon:
        return Outcome.fail(
            FailureKind.GEOMETRY_UNAVAILABLE,
            "view up direction is degenerate or parallel to right",
        )
    up = up / up_len

    return Outcome.success(ViewBasis(right=to_vec3(right), up=to_vec3(up)))


def project_point(point: Sequence[float], basis: ViewBasis) -> Vec2:
    p = np.asarray(point, dtype=float)
    return to_vec2((p @ np.asarray(basis.right), p @ np.asarray(basis.up)))


def project_points(points: np.ndarray, basis: ViewBasis) -> np.ndarray:
    """Project an (N, 3) array into (N, 2) view coordinates."""
    axes = np.column_stack([basis.right, basis.up])  # (3, 2)
    return np.asarray(points, dtype=float) @ axes


def project_direction(
    direction: Sequence[float],
    basis: ViewBasis,
    epsilon: float = EPSILON,
) -> Outcome[Vec2]:
    """Project a direction; fails when it lies out of the view plane."""
    du, dv = project_point(direction, basis)
    if abs(du) < epsilon and abs(dv) < epsilon:
        return Outcome.fail(
            FailureKind.GEOMETRY_UNAVAILABLE,
            "ray direction has no component in the view plane",
        )
    return Outcome.success((du, dv))


def build_ray(segment: LeaderSegment, epsilon: float = EPSILON) -> Outcome[Ray]:
    """Extend the trailing leader segment past its end point.

    The ray starts at the arrow tip (``segment.end``) and points away from
    the elbow, so t = 0 is the tip.
    """
    start = np.asarray(segment.start, dtype=float)
    end = np.asarray(segment.end, dtype=float)
    delta = end - start
    length = float(np.linalg.norm(delta))
    if length < epsilon:
        return Outcome.fail(
            FailureKind.GEOMETRY_UNAVAILABLE,
            f"leader segment length {length:.3g} is below epsilon",
        )
    return Outcome.success(Ray(origin=to_vec3(end), direction=to_vec3(delta / length)))

