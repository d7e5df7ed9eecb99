"""Adapters from QR detectors to `Detection` (corners in TL, TR, BR, BL order)."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import cv2
import numpy as np

from planar_pose.pp_types import Detection

log = logging.getLogger(__name__)

# (trueTL, trueTR, trueBR, trueBL) = (libTL, libBL, libBR, libTR)
DEFECT_PERMUTATION = (0, 3, 2, 1)


def relabel_corners(corners, permutation: Sequence[int] = DEFECT_PERMUTATION) -> np.ndarray:
    """Reorder detector-labelled corners into true geometric order."""
    pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
    return pts[list(permutation)]


def vision_to_buffer_px(point, width: int, height: int) -> np.ndarray:
    """
    Map a normalized detector point (origin bottom-left, y up) into buffer
    pixels for a `.leftMirrored` image: u = (1 - y) * W, v = x * H.
    """
    x, y = float(point[0]), float(point[1])
    return np.array([(1.0 - y) * width, x * height], dtype=np.float64)


def detection_from_labeled_corners(
    payload: str,
    top_left,
    top_right,
    bottom_right,
    bottom_left,
    width: int,
    height: int,
) -> Detection:
    """Build a Detection from a normalized, defect-labelled observation."""
    labeled = [top_left, top_right, bottom_right, bottom_left]
    true_order = relabel_corners(np.array(labeled, dtype=np.float64))
    corners = np.stack([vision_to_buffer_px(p, width, height) for p in true_order])
    return Detection(payload, corners)


class QrDetector:
    """
    Wraps cv2.QRCodeDetector. OpenCV already reports TL, TR, BR, BL, so
    relabelling is off unless the configured source needs it.
    """

    def __init__(self, relabel: bool = False):
        self.relabel = relabel
        self._detector = cv2.QRCodeDetector()

    def detect(self, image: Any) -> list[Detection]:
        ok, decoded, points, _straight = self._detector.detectAndDecodeMulti(image)
        if not ok or points is None:
            return []

        dets: list[Detection] = []
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 4, 2)
        for payload, corners in zip(decoded, pts):
            if not payload:
                log.debug("skipping QR code that did not decode")
                continue
            if self.relabel:
                corners = relabel_corners(corners)
            dets.append(Detection(str(payload), corners))
        return dets
