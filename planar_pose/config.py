from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class TrackingConfig:
    half_size_m: float = 0.0125  # half the printed side length
    detection_interval: int = 3  # frames between detection attempts
    smoothing_window: int = 5
    transition_duration_s: float = 0.1  # cosmetic, forwarded to the renderer
    max_missed_frames: int = 30
    normal_flip_threshold: float = 0.5
    # labeling handed to the solver; "swapped" puts the plane normal toward the
    # camera for TL, TR, BR, BL corners in an unmirrored image
    corner_ordering: str = "swapped"
    try_alternate_ordering: bool = False
    ordering_switch_margin_px2: float = 1.0
    emit_debug_info: bool = True

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "TrackingConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "TrackingConfig":
        if not math.isfinite(self.half_size_m) or self.half_size_m <= 0:
            raise ValueError(f"half_size_m must be positive, got {self.half_size_m}")
        if self.detection_interval < 1:
            raise ValueError("detection_interval must be >= 1")
        if self.smoothing_window < 1:
            raise ValueError("smoothing_window must be >= 1")
        if self.max_missed_frames < 1:
            raise ValueError("max_missed_frames must be >= 1")
        if self.transition_duration_s < 0:
            raise ValueError("transition_duration_s must be >= 0")
        if self.corner_ordering not in ("given", "swapped"):
            raise ValueError(f"corner_ordering must be 'given' or 'swapped', got {self.corner_ordering!r}")
        if self.ordering_switch_margin_px2 < 0:
            raise ValueError("ordering_switch_margin_px2 must be >= 0")
        return self


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    passes_dispatched: int
    frames_dropped: int
    events_emitted: int
    csv_path: str
    log_path: str
    avg_fps: float
    errors: int
