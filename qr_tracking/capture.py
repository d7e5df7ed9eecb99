"""Frame sources. Every frame carries the camera model it was taken with."""

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np

from planar_pose.pp_types import CameraExtrinsics, CameraFrame, CameraIntrinsics

_V4L2_PATH = re.compile(r"^/dev/video(\d+)$")


def open_video_device(device: int | str) -> Any:
    """Integer indices and /dev/videoN go through V4L2; files and URLs use the default backend."""
    if isinstance(device, str):
        match = _V4L2_PATH.match(device)
        if match is None:
            return cv2.VideoCapture(device)
        device = int(match.group(1))
    return cv2.VideoCapture(device, cv2.CAP_V4L2)


class BaseCapture(ABC):
    intrinsics: Optional[CameraIntrinsics] = None
    extrinsics: CameraExtrinsics = CameraExtrinsics.identity()
    idx: int = 0

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> CameraFrame | None: ...

    @abstractmethod
    def stop(self) -> None: ...

    def _wrap(self, image) -> CameraFrame:
        self.idx += 1
        return CameraFrame(
            self.idx,
            time.strftime("%Y-%m-%dT%H:%M:%S"),
            image,
            self.intrinsics,
            self.extrinsics,
        )


class USBOpenCVCapture(BaseCapture):
    """Static USB camera; the camera model is fixed for the session."""

    def __init__(
        self,
        device: int | str,
        fps: int,
        width: int,
        height: int,
        intrinsics: Optional[CameraIntrinsics] = None,
        extrinsics: Optional[CameraExtrinsics] = None,
    ):
        self.device = device
        self.settings = (
            (cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*"MJPG")),
            (cv2.CAP_PROP_FRAME_WIDTH, width),
            (cv2.CAP_PROP_FRAME_HEIGHT, height),
            (cv2.CAP_PROP_FPS, fps),
        )
        self.intrinsics = intrinsics
        self.extrinsics = extrinsics or CameraExtrinsics.identity()
        self.cap: Any = None

    def start(self) -> None:
        self.cap = open_video_device(self.device)
        for prop, value in self.settings:
            self.cap.set(prop, value)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

    def next_frame(self) -> CameraFrame | None:
        ok, img = self.cap.read()
        return self._wrap(img) if ok else None

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticCapture(BaseCapture):
    """
    Blank frames at a fixed rate, for dry runs without a camera. Without a
    calibration the intrinsics default to f = max(width, height) with the
    principal point at the image centre.
    """

    def __init__(
        self,
        fps: int,
        width: int,
        height: int,
        intrinsics: Optional[CameraIntrinsics] = None,
        extrinsics: Optional[CameraExtrinsics] = None,
    ):
        self.period = 1.0 / fps if fps > 0 else 0.0
        self.shape = (height, width, 3)
        if intrinsics is None:
            f = float(max(width, height))
            intrinsics = CameraIntrinsics(f, f, width / 2.0, height / 2.0)
        self.intrinsics = intrinsics
        self.extrinsics = extrinsics or CameraExtrinsics.identity()
        self._due = 0.0

    def start(self) -> None:
        self._due = time.monotonic()

    def next_frame(self) -> CameraFrame | None:
        delay = self._due - time.monotonic()
        if delay > 0:
            time.sleep(delay)
        self._due = max(self._due, time.monotonic()) + self.period
        return self._wrap(np.zeros(self.shape, dtype=np.uint8))

    def stop(self) -> None:
        return None
