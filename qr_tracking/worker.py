from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import numpy as np

from planar_pose.config import SessionSummary
from planar_pose.pp_types import CameraExtrinsics, CameraFrame, CameraIntrinsics
from planar_pose.registry import TrackRegistry
from planar_pose.strategies.solve_homography import PoseSolution
from planar_pose.services.calib import has_distortion, load_calib
from planar_pose.services.storage import SessionStorage
from planar_pose.strategies.undistort_simple import SimpleUndistort

from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture
from .config import TrackerConfig
from .detect import QrDetector
from .logging_utils import add_file_handler, remove_file_handler, setup_logger
from .output import CsvOutput, EventSink, LogOutput, MqttOutput


class NoUndistort:
    def apply(self, f: CameraFrame) -> CameraFrame:
        return f


class TrackerWorker:
    """
    Runs detection every `detection_interval` frames with at most one pass in
    flight. Detection and solving happen on a one-thread "solve" executor;
    registry updates and event delivery happen on a one-thread serialized
    executor. Frames that arrive while a pass is running are dropped.
    """

    def __init__(
        self,
        config: TrackerConfig,
        logger=None,
        outputs: Optional[list[EventSink]] = None,
        capture: Optional[BaseCapture] = None,
        detector=None,
        registry: Optional[TrackRegistry] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.tracker_name, config.log_level)
        self.registry = registry or TrackRegistry(config.tracking)
        self.detector = detector or QrDetector(relabel=config.relabel_corners)
        self.capture = capture

        if outputs is None:
            outputs = [LogOutput(self.logger)]
            if config.save_events:
                outputs.append(CsvOutput())
            if config.mqtt is not None and config.mqtt.enabled:
                outputs.append(
                    MqttOutput(
                        config.mqtt.broker_ip,
                        config.mqtt.broker_port,
                        config.mqtt.topic,
                        config.mqtt.client_id,
                        logger=self.logger,
                    )
                )
        self.outputs = outputs

        self.extrinsics = CameraExtrinsics(
            np.asarray(config.camera_rotation, dtype=np.float64).reshape(3, 3),
            np.asarray(config.camera_position, dtype=np.float64).reshape(3),
        )
        self.undistort = NoUndistort()
        self.intrinsics: Optional[CameraIntrinsics] = None

        self._stop_event = threading.Event()
        self._busy = threading.Lock()
        self._solve_pool: Optional[ThreadPoolExecutor] = None
        self._serial: Optional[ThreadPoolExecutor] = None
        self._last_solve: Optional[Future] = None

        self.frame_count = 0
        self.passes_dispatched = 0
        self.frames_dropped = 0
        self.events_emitted = 0
        self.errors = 0
        self._count_lock = threading.Lock()

    def stop(self) -> None:
        self._stop_event.set()

    def _count_error(self) -> None:
        with self._count_lock:
            self.errors += 1

    def _load_camera_model(self) -> None:
        if self.config.calibration_path is None:
            return
        K, dist, size = load_calib(self.config.calibration_path)
        if has_distortion(dist):
            self.undistort = SimpleUndistort(K, dist, size)
            self.intrinsics = self.undistort.intrinsics
        else:
            self.intrinsics = CameraIntrinsics.from_matrix(K)

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(
                self.config.fps,
                self.config.width,
                self.config.height,
                intrinsics=self.intrinsics,
                extrinsics=self.extrinsics,
            )
        if self.intrinsics is None:
            raise ValueError("calibration_path is required to track with a real camera")
        return USBOpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
            intrinsics=self.intrinsics,
            extrinsics=self.extrinsics,
        )

    def start(self) -> None:
        if self._solve_pool is None:
            self._solve_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="solve")
        if self._serial is None:
            self._serial = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tracker")

    def submit_frame(self, frame: CameraFrame) -> bool:
        """Called once per camera frame; returns True when a pass was dispatched."""
        if self._solve_pool is None:
            raise RuntimeError("worker not started")

        self.frame_count += 1
        if self.frame_count % self.config.tracking.detection_interval != 0:
            return False

        if not self._busy.acquire(blocking=False):
            self.frames_dropped += 1
            self.logger.debug("frame=%d dropped: detection pass in flight", frame.idx)
            return False

        try:
            self._last_solve = self._solve_pool.submit(self._detect_and_solve, frame)
        except RuntimeError:
            self._busy.release()
            raise
        self.passes_dispatched += 1
        return True

    def _detect_and_solve(self, frame: CameraFrame) -> None:
        try:
            frame = self.undistort.apply(frame)
            if frame.intrinsics is None:
                raise ValueError("frame has no camera intrinsics")
            dets = self.detector.detect(frame.image)
            solutions = self.registry.estimate_detections(dets, frame.intrinsics)
        except Exception:
            self._count_error()
            self.logger.exception("detection pass failed on frame %d", frame.idx)
            return
        finally:
            self._busy.release()

        self._serial.submit(self._apply, frame.idx, solutions, frame.extrinsics)

    def _apply(self, frame_idx: int, solutions: dict[str, list[PoseSolution]], extrinsics: CameraExtrinsics) -> None:
        events = self.registry.apply_solutions(solutions, extrinsics)
        for event in events:
            for out in self.outputs:
                try:
                    out.write_event(frame_idx, event)
                except Exception as e:
                    self.logger.warning("sink %s failed: %s", type(out).__name__, e)
        self.events_emitted += len(events)
        self.logger.debug(
            "frame=%d dets=%d events=%d targets=%d",
            frame_idx, len(solutions), len(events), len(self.registry.targets),
        )

    def drain(self) -> None:
        """Block until the most recent pass and its event delivery have finished."""
        if self._last_solve is not None:
            self._last_solve.result()
        if self._serial is not None:
            self._serial.submit(lambda: None).result()

    def close(self) -> None:
        if self._solve_pool is not None:
            self._solve_pool.shutdown(wait=True)
            self._solve_pool = None
        if self._serial is not None:
            self._serial.shutdown(wait=True)
            self._serial = None

    def run(self) -> SessionSummary:
        storage = SessionStorage(self.config.session_root, name=f"{self.config.tracker_name}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())

        log_file = str(storage.logs_dir / "session.log")
        file_handler = add_file_handler(self.logger, self.config.tracker_name, log_file)

        self._load_camera_model()

        for out in self.outputs:
            out.open(storage.session_dir)

        cap = self._build_capture()

        self.logger.info("session started: %s", session_path)
        self.logger.info("config: %s", self.config.as_dict())

        self.start()
        cap.start()
        t0 = time.time()
        frames = 0

        try:
            while True:
                if self._stop_event.is_set():
                    break
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    self._count_error()
                    continue

                self.submit_frame(f)
                frames += 1

        finally:
            try:
                cap.stop()
            except Exception as e:
                self.logger.warning("capture stop failed: %s", e)

            self.close()

            for out in self.outputs:
                try:
                    out.close()
                except Exception as e:
                    self.logger.warning("sink close failed: %s", e)

        avg = frames / max(1e-6, (time.time() - t0))
        self.logger.info(
            "summary frames=%d passes=%d dropped=%d events=%d avg_fps=%.2f errors=%d",
            frames, self.passes_dispatched, self.frames_dropped, self.events_emitted, avg, self.errors,
        )
        remove_file_handler(self.logger, file_handler)

        csv_path = str(storage.path_for("events.csv"))
        return SessionSummary(
            str(session_path),
            frames,
            self.passes_dispatched,
            self.frames_dropped,
            self.events_emitted,
            csv_path,
            log_file,
            avg,
            self.errors,
        )
