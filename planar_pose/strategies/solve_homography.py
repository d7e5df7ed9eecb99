"""Planar pose from four corners via homography decomposition.

Object points lie in the target's own XY plane (Z = 0). The caller is
responsible for passing image and object points in the same winding order;
the solve is order-sensitive. A tracking source uses one fixed labeling
("given" or "swapped", see `ORDERINGS`). When the labels are not trusted,
`solve_orderings` tries both and `choose_solution` picks one, sticking to a
preferred labeling unless another reprojects clearly better.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..pp_types import CameraIntrinsics, Pose

log = logging.getLogger(__name__)

_MIN_COLUMN_NORM = 1e-8
_MIN_DEPTH = 1e-6

ORDERINGS = ("given", "swapped")


@dataclass(frozen=True)
class PoseSolution:
    pose: Pose
    error_px2: float
    ordering: str  # "given" or "swapped"


def square_object_points(half_size: float) -> np.ndarray:
    """Corners of a square target centred at the origin: TL, TR, BR, BL (y down)."""
    h = float(half_size)
    if not math.isfinite(h) or h <= 0:
        raise ValueError(f"half_size must be positive, got {half_size}")
    return np.array([[-h, -h], [h, -h], [h, h], [-h, h]], dtype=np.float64)


def swap_tr_bl(points) -> np.ndarray:
    """Return the points with the top-right and bottom-left entries exchanged."""
    pts = np.array(points, dtype=np.float64).reshape(4, 2)
    return pts[[0, 3, 2, 1]]


class HomographyPoseSolver:
    """
    Strategy: recover a camera-frame pose from 4 image/object correspondences.

    The solver holds configuration only; identical inputs always give
    identical outputs.
    """

    def __init__(self, normal_flip_threshold: float = 0.5):
        self.normal_flip_threshold = float(normal_flip_threshold)

    def solve(self, image_points, object_points, intrinsics: CameraIntrinsics) -> Optional[Pose]:
        img = np.asarray(image_points, dtype=np.float64)
        obj = np.asarray(object_points, dtype=np.float64)
        if img.size != 8 or obj.size != 8:
            log.debug("solve skipped: need 4 correspondences, got %d/%d", img.size // 2, obj.size // 2)
            return None
        img = img.reshape(4, 2)
        obj = obj.reshape(4, 2)

        u = (img[:, 0] - intrinsics.cx) / intrinsics.fx
        v = (img[:, 1] - intrinsics.cy) / intrinsics.fy

        A = np.zeros((8, 9), dtype=np.float64)
        for i in range(4):
            X, Y = obj[i]
            A[2 * i] = [X, Y, 1.0, 0.0, 0.0, 0.0, -u[i] * X, -u[i] * Y, -u[i]]
            A[2 * i + 1] = [0.0, 0.0, 0.0, X, Y, 1.0, -v[i] * X, -v[i] * Y, -v[i]]

        try:
            _, _, Vt = np.linalg.svd(A)
        except np.linalg.LinAlgError as exc:
            log.debug("homography SVD failed: %s", exc)
            return None

        H = Vt[-1].reshape(3, 3)
        col0, col1, col2 = H[:, 0], H[:, 1], H[:, 2]

        n0 = np.linalg.norm(col0)
        n1 = np.linalg.norm(col1)
        if n0 < _MIN_COLUMN_NORM or n1 < _MIN_COLUMN_NORM:
            log.debug("degenerate homography columns: %.3g, %.3g", n0, n1)
            return None

        lam = (n0 + n1) / 2.0
        # target must sit in front of the camera
        if (col2 / lam)[2] < 0:
            lam = -lam

        r1 = col0 / lam
        r2 = col1 / lam
        t = col2 / lam
        r3 = np.cross(r1, r2)

        R = self._nearest_rotation(np.column_stack([r1, r2, r3]))
        if R is None:
            return None

        t_norm = np.linalg.norm(t)
        if t_norm > 0 and float(np.dot(R[:, 2], t / t_norm)) > self.normal_flip_threshold:
            # compose with a 180 degree turn about the local X axis
            R = R.copy()
            R[:, 1] = -R[:, 1]
            R[:, 2] = -R[:, 2]

        return Pose(R, t)

    @staticmethod
    def _nearest_rotation(M: np.ndarray) -> Optional[np.ndarray]:
        """Polar decomposition: closest proper rotation to M."""
        try:
            U, _, Vt = np.linalg.svd(M)
        except np.linalg.LinAlgError as exc:
            log.debug("rotation SVD failed: %s", exc)
            return None

        R = U @ Vt
        if np.linalg.det(R) < 0:
            U = U.copy()
            U[:, 2] = -U[:, 2]
            R = U @ Vt
        return R

    @staticmethod
    def reprojection_error(
        image_points,
        object_points,
        rotation: np.ndarray,
        translation: np.ndarray,
        intrinsics: CameraIntrinsics,
    ) -> float:
        """Mean squared pixel distance between projected object points and observations."""
        img = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
        obj = np.asarray(object_points, dtype=np.float64).reshape(-1, 2)
        R = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
        t = np.asarray(translation, dtype=np.float64).reshape(3)

        total = 0.0
        for (X, Y), (u_obs, v_obs) in zip(obj, img):
            cam = R @ np.array([X, Y, 0.0]) + t
            if cam[2] <= _MIN_DEPTH:
                return math.inf
            u = intrinsics.fx * cam[0] / cam[2] + intrinsics.cx
            v = intrinsics.fy * cam[1] / cam[2] + intrinsics.cy
            total += (u - u_obs) ** 2 + (v - v_obs) ** 2
        return total / len(obj)


def _labelled(image_points, ordering: str) -> np.ndarray:
    pts = np.asarray(image_points, dtype=np.float64)
    if ordering == "given":
        return pts
    if ordering == "swapped":
        return swap_tr_bl(pts)
    raise ValueError(f"unknown corner ordering {ordering!r}")


def solve_orderings(
    solver: HomographyPoseSolver,
    image_points,
    object_points,
    intrinsics: CameraIntrinsics,
    orderings: Sequence[str] = ORDERINGS,
) -> list[PoseSolution]:
    """Solve once per corner labeling; labelings whose solve fails are left out."""
    if np.asarray(image_points).size != 8:
        return []
    found: list[PoseSolution] = []
    for name in orderings:
        pts = _labelled(image_points, name)
        pose = solver.solve(pts, object_points, intrinsics)
        if pose is None:
            continue
        err = solver.reprojection_error(pts, object_points, pose.rotation, pose.translation, intrinsics)
        found.append(PoseSolution(pose, err, name))
    return found


def choose_solution(
    candidates: Sequence[PoseSolution],
    preferred: Optional[str] = None,
    switch_margin_px2: float = 1.0,
) -> Optional[PoseSolution]:
    """
    Pick the candidate with the lowest reprojection error, except that the
    preferred labeling is kept unless another one beats it by more than
    `switch_margin_px2`. Past ~60 degrees of tilt both labelings reproject
    almost exactly, yet their poses differ by half a turn.
    """
    if not candidates:
        return None
    best = min(candidates, key=lambda c: c.error_px2)
    for cand in candidates:
        if cand.ordering == preferred:
            if best.error_px2 + switch_margin_px2 < cand.error_px2:
                return best
            return cand
    return best


def solve_best_ordering(
    solver: HomographyPoseSolver,
    image_points,
    object_points,
    intrinsics: CameraIntrinsics,
    try_alternate: bool = True,
) -> Optional[PoseSolution]:
    """
    Solve with the given corner labels and, optionally, with top-right and
    bottom-left exchanged; keep whichever reprojects better. Frame-to-frame
    tracking should go through `choose_solution` with a preferred labeling.
    """
    orderings = ORDERINGS if try_alternate else ("given",)
    return choose_solution(solve_orderings(solver, image_points, object_points, intrinsics, orderings))
