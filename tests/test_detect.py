from unittest.mock import MagicMock

import numpy as np

from qr_tracking.detect import (
    DEFECT_PERMUTATION,
    QrDetector,
    detection_from_labeled_corners,
    relabel_corners,
    vision_to_buffer_px,
)


CORNERS = np.array([[10.0, 10.0], [90.0, 10.0], [90.0, 90.0], [10.0, 90.0]])


def test_relabel_swaps_tr_and_bl():
    out = relabel_corners(CORNERS)
    assert out.tolist() == [[10.0, 10.0], [10.0, 90.0], [90.0, 90.0], [90.0, 10.0]]
    # the permutation is its own inverse
    assert np.array_equal(relabel_corners(out, DEFECT_PERMUTATION), CORNERS)


def test_vision_to_buffer_px():
    assert np.allclose(vision_to_buffer_px((0.0, 0.0), 1920, 1080), [1920.0, 0.0])
    assert np.allclose(vision_to_buffer_px((1.0, 1.0), 1920, 1080), [0.0, 1080.0])
    assert np.allclose(vision_to_buffer_px((0.25, 0.5), 1920, 1080), [960.0, 270.0])


def test_detection_from_labeled_corners():
    det = detection_from_labeled_corners(
        "hello",
        top_left=(0.1, 0.9),
        top_right=(0.9, 0.9),
        bottom_right=(0.9, 0.1),
        bottom_left=(0.1, 0.1),
        width=100,
        height=200,
    )
    assert det.target_id == "hello"
    assert det.corners.shape == (4, 2)
    # labelled BL is the true TR and vice versa
    assert np.allclose(det.corners[0], [10.0, 20.0])
    assert np.allclose(det.corners[1], [90.0, 20.0])
    assert np.allclose(det.corners[2], [90.0, 180.0])
    assert np.allclose(det.corners[3], [10.0, 180.0])


def _stub_detector(ok, decoded, points):
    detector = QrDetector()
    detector._detector = MagicMock()
    detector._detector.detectAndDecodeMulti.return_value = (ok, decoded, points, None)
    return detector


def test_detect_returns_decoded_codes():
    points = np.stack([CORNERS, CORNERS + 100.0]).astype(np.float32)
    detector = _stub_detector(True, ("qr-a", "qr-b"), points)

    dets = detector.detect(np.zeros((480, 640), dtype=np.uint8))

    assert [d.target_id for d in dets] == ["qr-a", "qr-b"]
    assert np.allclose(dets[0].corners, CORNERS)
    assert np.allclose(dets[1].corners, CORNERS + 100.0)


def test_detect_skips_undecoded_codes():
    points = np.stack([CORNERS, CORNERS + 100.0]).astype(np.float32)
    detector = _stub_detector(True, ("", "qr-b"), points)

    dets = detector.detect(np.zeros((480, 640), dtype=np.uint8))
    assert [d.target_id for d in dets] == ["qr-b"]


def test_detect_nothing_found():
    assert _stub_detector(False, (), None).detect(np.zeros((8, 8), dtype=np.uint8)) == []
    assert _stub_detector(True, (), None).detect(np.zeros((8, 8), dtype=np.uint8)) == []


def test_detect_relabels_when_enabled():
    detector = _stub_detector(True, ("qr-a",), CORNERS[None].astype(np.float32))
    detector.relabel = True

    (det,) = detector.detect(np.zeros((8, 8), dtype=np.uint8))
    assert np.allclose(det.corners, relabel_corners(CORNERS))


def test_detect_real_blank_image():
    assert QrDetector().detect(np.zeros((240, 320), dtype=np.uint8)) == []
