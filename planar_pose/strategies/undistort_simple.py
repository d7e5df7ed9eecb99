import cv2
from ..pp_types import CameraFrame, CameraIntrinsics

class SimpleUndistort:
    """
    Strategy: remap frames to an undistorted pinhole image.
    `intrinsics` describes the remapped image, not the raw sensor.
    """
    def __init__(self, K, dist, size: tuple[int, int], alpha: float = 0.0):
        w, h = size
        self.K, self.dist = K, dist
        newK, _ = cv2.getOptimalNewCameraMatrix(K, dist, (w, h), alpha)
        self.intrinsics = CameraIntrinsics.from_matrix(newK)
        self.map1, self.map2 = cv2.initUndistortRectifyMap(K, dist, None, newK, (w, h), cv2.CV_16SC2)

    def apply(self, f: CameraFrame) -> CameraFrame:
        und = cv2.remap(f.image, self.map1, self.map2, cv2.INTER_LINEAR)
        return CameraFrame(f.idx, f.ts_iso, und, self.intrinsics, f.extrinsics)
