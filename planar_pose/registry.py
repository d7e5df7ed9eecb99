"""Per-target tracking state: creation, coasting and eviction.

Each identifier owns one `TargetState` (histories, miss counter, lifecycle
flag). Nothing addressed to one identifier reads or writes another's state.
Mutating calls (`apply_solutions`, `process_frame`, `reset`) must run on a
single serialized context; `estimate_detections` only reads configuration
and may run elsewhere.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from .config import TrackingConfig
from .events import DebugInfo, PoseUpdated, TrackEvent, TrackLost
from .pp_types import CameraExtrinsics, CameraIntrinsics, Detection
from .strategies.smooth_window import TemporalSmoother
from .strategies.solve_homography import (
    ORDERINGS,
    HomographyPoseSolver,
    PoseSolution,
    choose_solution,
    solve_orderings,
    square_object_points,
)
from .transforms import camera_to_world, euler_xyz_from_matrix, matrix_from_quaternion

log = logging.getLogger(__name__)

NO_DETECTION_TEXT = "No QR detected"


class TrackState(enum.Enum):
    TRACKING = "tracking"
    COASTING = "coasting"
    LOST = "lost"


@dataclass
class TargetState:
    target_id: str
    smoother: TemporalSmoother
    state: TrackState = TrackState.TRACKING
    miss_count: int = 0
    last_position: Optional[np.ndarray] = None
    last_rotation: Optional[np.ndarray] = None
    ordering: Optional[str] = None  # corner labeling of the last accepted solve
    updates: int = 0

    @property
    def position_history(self) -> list:
        return self.smoother.positions

    @property
    def orientation_history(self) -> list:
        return self.smoother.quaternions

    def clear(self) -> None:
        self.smoother.reset()
        self.last_position = None
        self.last_rotation = None
        self.ordering = None
        self.updates = 0


def format_debug_label(target_id: str, position, rotation, camera_position) -> str:
    """Advisory overlay text: identifier, distance, position (m), rotation (deg)."""
    position = np.asarray(position, dtype=np.float64).reshape(3)
    distance = float(np.linalg.norm(position - np.asarray(camera_position, dtype=np.float64).reshape(3)))
    rx, ry, rz = (math.degrees(a) for a in euler_xyz_from_matrix(rotation))
    return "\n".join(
        [
            f"QR: {target_id[:20]}",
            f"Distance: {distance:.2f}m",
            "",
            "Position (m):",
            f"X: {position[0]:.3f}",
            f"Y: {position[1]:.3f}",
            f"Z: {position[2]:.3f}",
            "",
            "Rotation:",
            f"X: {rx:.1f}°",
            f"Y: {ry:.1f}°",
            f"Z: {rz:.1f}°",
        ]
    )


class TrackRegistry:
    def __init__(
        self,
        config: Optional[TrackingConfig] = None,
        solver: Optional[HomographyPoseSolver] = None,
    ):
        self.config = (config or TrackingConfig()).validate()
        self.solver = solver or HomographyPoseSolver(self.config.normal_flip_threshold)
        self.object_points = square_object_points(self.config.half_size_m)
        self._targets: dict[str, TargetState] = {}

    @property
    def targets(self) -> dict[str, TargetState]:
        return dict(self._targets)

    def get(self, target_id: str) -> Optional[TargetState]:
        return self._targets.get(target_id)

    def reset(self) -> None:
        for target in self._targets.values():
            target.clear()
        self._targets.clear()

    def estimate_detections(
        self, detections: Iterable[Detection], intrinsics: CameraIntrinsics
    ) -> dict[str, list[PoseSolution]]:
        """Solve every detection; an empty list marks a detection whose solve failed."""
        if self.config.try_alternate_ordering:
            orderings = ORDERINGS
        else:
            orderings = (self.config.corner_ordering,)

        solutions: dict[str, list[PoseSolution]] = {}
        for det in detections:
            candidates = solve_orderings(
                self.solver, det.corners, self.object_points, intrinsics, orderings
            )
            if not candidates:
                log.debug("no pose for %s this frame", det.target_id)
            solutions[det.target_id] = candidates
        return solutions

    def process_frame(
        self,
        detections: Iterable[Detection],
        intrinsics: CameraIntrinsics,
        extrinsics: CameraExtrinsics,
    ) -> list[TrackEvent]:
        return self.apply_solutions(self.estimate_detections(detections, intrinsics), extrinsics)

    def apply_solutions(
        self,
        solutions: dict[str, list[PoseSolution]],
        extrinsics: CameraExtrinsics,
    ) -> list[TrackEvent]:
        events: list[TrackEvent] = []

        for target_id, candidates in solutions.items():
            target = self._targets.get(target_id)
            if target is None:
                target = TargetState(target_id, TemporalSmoother(self.config.smoothing_window))
                self._targets[target_id] = target
                log.info("tracking new target %s", target_id)

            target.miss_count = 0
            chosen = choose_solution(
                candidates,
                preferred=target.ordering or self.config.corner_ordering,
                switch_margin_px2=self.config.ordering_switch_margin_px2,
            )
            if chosen is None:
                continue
            if target.ordering is not None and chosen.ordering != target.ordering:
                log.info(
                    "target %s switched corner ordering %s -> %s (err=%.3f px^2)",
                    target_id, target.ordering, chosen.ordering, chosen.error_px2,
                )
            target.ordering = chosen.ordering

            position, rotation = camera_to_world(chosen.pose, extrinsics)
            smoothed_pos, smoothed_q = target.smoother.update(position, rotation)
            smoothed_R = matrix_from_quaternion(smoothed_q)

            target.state = TrackState.TRACKING
            target.last_position = smoothed_pos
            target.last_rotation = smoothed_R
            target.updates += 1

            events.append(
                PoseUpdated(
                    target_id,
                    smoothed_pos,
                    smoothed_R,
                    smoothed_q,
                    self.config.transition_duration_s,
                )
            )
            if self.config.emit_debug_info:
                events.append(
                    DebugInfo(format_debug_label(target_id, smoothed_pos, smoothed_R, extrinsics.position))
                )

        for target_id in list(self._targets):
            if target_id in solutions:
                continue
            target = self._targets[target_id]
            target.miss_count += 1
            if target.miss_count < self.config.max_missed_frames:
                target.state = TrackState.COASTING
                continue

            target.clear()
            target.state = TrackState.LOST
            del self._targets[target_id]
            log.info("lost target %s after %d missed frames", target_id, target.miss_count)
            events.append(TrackLost(target_id))

        if not solutions and self.config.emit_debug_info:
            events.append(DebugInfo(NO_DETECTION_TEXT))

        return events
