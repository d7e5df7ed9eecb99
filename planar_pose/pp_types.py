from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole intrinsics in pixels (no distortion)."""

    fx: float
    fy: float
    cx: float
    cy: float

    @classmethod
    def from_matrix(cls, K) -> "CameraIntrinsics":
        K = np.asarray(K, dtype=np.float64).reshape(3, 3)
        return cls(float(K[0, 0]), float(K[1, 1]), float(K[0, 2]), float(K[1, 2]))

    def as_matrix(self) -> np.ndarray:
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass(frozen=True)
class CameraExtrinsics:
    """Camera pose in the world frame (camera -> world)."""

    rotation: np.ndarray  # (3,3)
    position: np.ndarray  # (3,)

    @classmethod
    def identity(cls) -> "CameraExtrinsics":
        return cls(np.eye(3), np.zeros(3))


@dataclass(frozen=True)
class Pose:
    """Target pose in the camera intrinsic frame (+x right, +y down, +z forward)."""

    rotation: np.ndarray  # (3,3), det = +1
    translation: np.ndarray  # (3,)


@dataclass
class Detection:
    target_id: str
    corners: Any  # (4,2) ndarray, TL, TR, BR, BL in buffer pixels


@dataclass
class CameraFrame:
    idx: int
    ts_iso: str
    image: Any  # numpy array
    intrinsics: Optional[CameraIntrinsics] = None
    extrinsics: CameraExtrinsics = field(default_factory=CameraExtrinsics.identity)
