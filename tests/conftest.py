import math

import cv2
import numpy as np
import pytest

from planar_pose.pp_types import CameraIntrinsics, Detection
from planar_pose.strategies.solve_homography import square_object_points

HALF_SIZE = 0.0125


def rot_x(a: float) -> np.ndarray:
    c, s = math.cos(a), math.sin(a)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def rot_y(a: float) -> np.ndarray:
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def rot_z(a: float) -> np.ndarray:
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


@pytest.fixture
def intrinsics() -> CameraIntrinsics:
    return CameraIntrinsics(1000.0, 1000.0, 500.0, 500.0)


@pytest.fixture
def object_points() -> np.ndarray:
    return square_object_points(HALF_SIZE)


@pytest.fixture
def rotations():
    """Rotation helpers about the camera axes."""
    return rot_x, rot_y, rot_z


@pytest.fixture
def facing_rotation() -> np.ndarray:
    """A slightly tilted target whose +Z axis points back toward the camera; its image is mirrored."""
    return rot_x(math.pi) @ rot_y(0.2) @ rot_x(0.15) @ rot_z(0.1)


@pytest.fixture
def printed_rotation() -> np.ndarray:
    """A slightly tilted target seen from its printed side."""
    return rot_y(0.2) @ rot_x(0.15) @ rot_z(0.1)


@pytest.fixture
def project(intrinsics, object_points):
    """Project the square target through (R, t) with OpenCV's pinhole model."""

    def _project(R, t, intr=None, obj=None):
        intr = intr or intrinsics
        obj = object_points if obj is None else obj
        obj3 = np.hstack([obj, np.zeros((len(obj), 1))])
        rvec, _ = cv2.Rodrigues(np.asarray(R, dtype=np.float64))
        img, _ = cv2.projectPoints(
            obj3,
            rvec,
            np.asarray(t, dtype=np.float64).reshape(3, 1),
            intr.as_matrix(),
            np.zeros(5),
        )
        return np.asarray(img, dtype=np.float64).reshape(-1, 2)

    return _project


@pytest.fixture
def make_detection(project, printed_rotation):
    def _make(target_id="qr-1", R=None, t=(0.0, 0.0, 0.5), noise=None):
        R = printed_rotation if R is None else R
        corners = project(R, t)
        if noise is not None:
            corners = corners + noise
        return Detection(target_id, corners)

    return _make
