"""Camera-to-world mapping, Euler labels and quaternion helpers for target poses.

Quaternions are (w, x, y, z) throughout; scipy's (x, y, z, w) order stays
inside this module.
"""

import math
from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation, Slerp

from .pp_types import CameraExtrinsics, Pose


# Intrinsic camera axes (+y down, +z forward) -> engine camera axes (+y up, +z backward)
AXIS_FLIP = np.diag([1.0, -1.0, -1.0])


def camera_to_world(pose: Pose, extrinsics: CameraExtrinsics) -> Tuple[np.ndarray, np.ndarray]:
    """
    Map a camera-frame pose into the world frame.

    world_position = p_cam + R_cam @ (F @ t)
    world_rotation = R_cam @ F @ R

    Args:
        pose: Pose in the camera intrinsic frame
        extrinsics: Camera pose in the world frame

    Returns:
        (position (3,), rotation (3,3)) in the world frame
    """
    R_cam = np.asarray(extrinsics.rotation, dtype=np.float64).reshape(3, 3)
    p_cam = np.asarray(extrinsics.position, dtype=np.float64).reshape(3)

    t = np.asarray(pose.translation, dtype=np.float64).reshape(3)
    R = np.asarray(pose.rotation, dtype=np.float64).reshape(3, 3)

    position = p_cam + R_cam @ (AXIS_FLIP @ t)
    rotation = R_cam @ AXIS_FLIP @ R
    return position, rotation


def euler_xyz_from_matrix(R: np.ndarray) -> np.ndarray:
    """
    Extract X-Y-Z Euler angles (radians) from a rotation matrix.

    Falls back to z = 0 near gimbal lock (sy < 1e-6).
    """
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    sy = math.sqrt(R[0, 0] * R[0, 0] + R[1, 0] * R[1, 0])
    if sy > 1e-6:
        x = math.atan2(R[2, 1], R[2, 2])
        y = math.atan2(-R[2, 0], sy)
        z = math.atan2(R[1, 0], R[0, 0])
    else:
        x = math.atan2(-R[1, 2], R[1, 1])
        y = math.atan2(-R[2, 0], sy)
        z = 0.0
    return np.array([x, y, z])


def normalize_quaternion(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64).reshape(4)
    n = np.linalg.norm(q)
    if n < 1e-12:
        return np.array([1.0, 0.0, 0.0, 0.0])
    return q / n


def _to_scipy(q: np.ndarray) -> Rotation:
    w, x, y, z = normalize_quaternion(q)
    return Rotation.from_quat([x, y, z, w])


def _from_scipy(rot: Rotation) -> np.ndarray:
    x, y, z, w = rot.as_quat(canonical=True)
    return np.array([w, x, y, z])


def quaternion_from_matrix(R: np.ndarray) -> np.ndarray:
    """Convert a rotation matrix to a unit quaternion (w, x, y, z) with w >= 0."""
    return _from_scipy(Rotation.from_matrix(np.asarray(R, dtype=np.float64).reshape(3, 3)))


def matrix_from_quaternion(q: np.ndarray) -> np.ndarray:
    """Convert a quaternion (w, x, y, z) to a 3x3 rotation matrix."""
    return _to_scipy(q).as_matrix()


def slerp(q0: np.ndarray, q1: np.ndarray, t: float) -> np.ndarray:
    """
    Spherical linear interpolation along the shorter arc between q0 and q1.
    The result lies in q0's hemisphere.
    """
    q0 = normalize_quaternion(q0)
    key_rots = Rotation.concatenate([_to_scipy(q0), _to_scipy(q1)])
    out = _from_scipy(Slerp([0.0, 1.0], key_rots)([float(t)])[0])
    if float(np.dot(out, q0)) < 0.0:
        out = -out
    return out
