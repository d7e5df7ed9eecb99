"""Events delivered to the presentation side, one variant per outcome."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np


@dataclass(frozen=True)
class PoseUpdated:
    target_id: str
    position: np.ndarray  # (3,) world, smoothed
    rotation: np.ndarray  # (3,3) world, smoothed
    quaternion: np.ndarray  # (4,) w, x, y, z
    transition_s: float = 0.0


@dataclass(frozen=True)
class TrackLost:
    target_id: str


@dataclass(frozen=True)
class DebugInfo:
    text: str


TrackEvent = Union[PoseUpdated, TrackLost, DebugInfo]
