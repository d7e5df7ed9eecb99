import csv
import io
import math

import numpy as np

from ..events import PoseUpdated, TrackLost
from ..transforms import euler_xyz_from_matrix

class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "event", "target_id",
        "pos_x", "pos_y", "pos_z",
        "quat_w", "quat_x", "quat_y", "quat_z",
        "rot_x_deg", "rot_y_deg", "rot_z_deg",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _vec(vec, n):
        if vec is None:
            return [float("nan")] * n
        a = np.array(vec, dtype=np.float64).reshape(-1).tolist()
        if len(a) < n:
            a += [float("nan")] * (n - len(a))
        return a[:n]

    @classmethod
    def row_for(cls, ts_unix, frame_idx, event):
        """CSV row for a pose/lost event; None for events that are not persisted."""
        if isinstance(event, PoseUpdated):
            pos = cls._vec(event.position, 3)
            quat = cls._vec(event.quaternion, 4)
            euler = [math.degrees(a) for a in euler_xyz_from_matrix(event.rotation)]
            kind = "pose"
        elif isinstance(event, TrackLost):
            pos = cls._vec(None, 3)
            quat = cls._vec(None, 4)
            euler = cls._vec(None, 3)
            kind = "lost"
        else:
            return None
        return [
            f"{ts_unix:.6f}",
            frame_idx, kind, event.target_id,
            *pos, *quat, *euler,
        ]

    def append(self, ts_unix, frame_idx, event) -> bool:
        row = self.row_for(ts_unix, frame_idx, event)
        if row is None or self._w is None:
            return False
        self._w.writerow(row)
        return True

    @classmethod
    def to_csv_line(cls, ts_unix, frame_idx, event):
        row = cls.row_for(ts_unix, frame_idx, event)
        if row is None:
            return None
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow(row)
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
