"""Windowed pose smoothing: mean position and a slerp fold over recent orientations."""

from __future__ import annotations

from collections import deque
from typing import Tuple

import numpy as np

from ..transforms import normalize_quaternion, quaternion_from_matrix, slerp


class TemporalSmoother:
    """
    Strategy: rolling-window stabilisation of one target's world pose.

    Position output is the mean of the last N positions. Orientation output
    folds the last N quaternions with slerp, blending entry i with weight
    1/(i+1); this approximates the mean rotation and leans toward recent
    samples.
    """

    def __init__(self, window: int = 5):
        if window < 1:
            raise ValueError("window must be >= 1")
        self.window = int(window)
        self._positions: deque = deque(maxlen=self.window)
        self._quats: deque = deque(maxlen=self.window)

    def __len__(self) -> int:
        return len(self._positions)

    @property
    def positions(self) -> list:
        return list(self._positions)

    @property
    def quaternions(self) -> list:
        return list(self._quats)

    def update(self, position, rotation) -> Tuple[np.ndarray, np.ndarray]:
        """Push a raw world pose; return (smoothed position, smoothed quaternion)."""
        self._positions.append(np.asarray(position, dtype=np.float64).reshape(3).copy())
        self.push_quaternion(quaternion_from_matrix(rotation))
        return self.position(), self.quaternion()

    def push_quaternion(self, q) -> None:
        q = normalize_quaternion(q)
        if self._quats and float(np.dot(q, self._quats[-1])) < 0:
            q = -q
        self._quats.append(q)

    def position(self) -> np.ndarray:
        if not self._positions:
            raise ValueError("no positions in history")
        return np.mean(np.stack(self._positions), axis=0)

    def quaternion(self) -> np.ndarray:
        if not self._quats:
            raise ValueError("no orientations in history")
        avg = self._quats[0]
        for i in range(1, len(self._quats)):
            qi = self._quats[i]
            if float(np.dot(qi, avg)) < 0:
                qi = -qi
            avg = slerp(avg, qi, 1.0 / (i + 1))
        return normalize_quaternion(avg)

    def reset(self) -> None:
        self._positions.clear()
        self._quats.clear()
