import cv2, numpy as np
from pathlib import Path
from typing import Tuple

from ..pp_types import CameraIntrinsics

def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, tuple[int,int]]:
    if not Path(path).exists():
        raise RuntimeError(f"Calibration file not found: {path}")
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    try:
        K = fs.getNode("camera_matrix").mat()
        dist = fs.getNode("dist_coeffs").mat()
        w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    finally:
        fs.release()
    if K is None or np.asarray(K).shape != (3, 3):
        raise RuntimeError(f"camera_matrix missing or not 3x3 in {path}")
    if dist is None:
        dist = np.zeros((5, 1))
    return K, dist, (w, h)

def load_intrinsics(path: str) -> CameraIntrinsics:
    K, _dist, _size = load_calib(path)
    return CameraIntrinsics.from_matrix(K)

def has_distortion(dist) -> bool:
    return bool(np.any(np.abs(np.asarray(dist, dtype=np.float64)) > 1e-12))
