from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from planar_pose.config import TrackingConfig


@dataclass
class MqttConfig:
    """Publishing of pose/lost events as CSV lines."""

    enabled: bool = False
    broker_ip: str = "127.0.0.1"
    broker_port: int = 1883
    topic: str = "qr_tracking/events"
    client_id: str = ""

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TrackerConfig:
    tracker_name: str = "qr"
    device: int | str = 0
    fps: int = 30
    width: int = 1280
    height: int = 720
    calibration_path: Optional[str] = None
    session_root: str = "data/sessions"
    duration_sec: float = 30.0
    max_frames: Optional[int] = None
    dry_run: bool = False
    relabel_corners: bool = False  # detector swaps top-right/bottom-left labels
    camera_position: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    camera_rotation: list[list[float]] = field(
        default_factory=lambda: [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
    )
    save_events: bool = True
    log_level: str = "INFO"
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    mqtt: Optional[MqttConfig] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "TrackerConfig":
        for key, value in kwargs.items():
            if value is None:
                continue
            if hasattr(self, key):
                setattr(self, key, value)
            elif hasattr(self.tracking, key):
                setattr(self.tracking, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _load_tracking(raw: Any) -> TrackingConfig:
    tc = TrackingConfig()
    if raw is None:
        return tc
    if not isinstance(raw, dict):
        raise ValueError("tracking must be a mapping")
    tc.half_size_m = float(raw.get("half_size_m", tc.half_size_m))
    tc.detection_interval = int(raw.get("detection_interval", tc.detection_interval))
    tc.smoothing_window = int(raw.get("smoothing_window", tc.smoothing_window))
    tc.transition_duration_s = float(raw.get("transition_duration_s", tc.transition_duration_s))
    tc.max_missed_frames = int(raw.get("max_missed_frames", tc.max_missed_frames))
    tc.normal_flip_threshold = float(raw.get("normal_flip_threshold", tc.normal_flip_threshold))
    tc.corner_ordering = str(raw.get("corner_ordering", tc.corner_ordering))
    tc.try_alternate_ordering = bool(raw.get("try_alternate_ordering", tc.try_alternate_ordering))
    tc.ordering_switch_margin_px2 = float(raw.get("ordering_switch_margin_px2", tc.ordering_switch_margin_px2))
    tc.emit_debug_info = bool(raw.get("emit_debug_info", tc.emit_debug_info))
    return tc.validate()


def load_config(path: str | Path) -> TrackerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = TrackerConfig()
    cfg.tracker_name = str(raw.get("tracker_name", cfg.tracker_name))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = raw.get("calibration_path", cfg.calibration_path)
    if cfg.calibration_path is not None:
        cfg.calibration_path = str(cfg.calibration_path)
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.relabel_corners = bool(raw.get("relabel_corners", cfg.relabel_corners))
    cfg.save_events = bool(raw.get("save_events", cfg.save_events))
    cfg.log_level = str(raw.get("log_level", cfg.log_level))

    position = raw.get("camera_position", cfg.camera_position)
    if not isinstance(position, (list, tuple)) or len(position) != 3:
        raise ValueError("camera_position must be a list of 3 numbers")
    cfg.camera_position = [float(v) for v in position]

    rotation = raw.get("camera_rotation", cfg.camera_rotation)
    if not isinstance(rotation, (list, tuple)) or len(rotation) != 3 or any(
        not isinstance(row, (list, tuple)) or len(row) != 3 for row in rotation
    ):
        raise ValueError("camera_rotation must be a 3x3 nested list")
    cfg.camera_rotation = [[float(v) for v in row] for row in rotation]

    cfg.tracking = _load_tracking(raw.get("tracking"))

    mqtt_raw = raw.get("mqtt")
    if mqtt_raw is not None and isinstance(mqtt_raw, dict):
        mq = MqttConfig()
        mq.enabled = bool(mqtt_raw.get("enabled", mq.enabled))
        mq.broker_ip = str(mqtt_raw.get("broker_ip", mq.broker_ip))
        mq.broker_port = int(mqtt_raw.get("broker_port", mq.broker_port))
        mq.topic = str(mqtt_raw.get("topic", mq.topic))
        mq.client_id = str(mqtt_raw.get("client_id", mq.client_id))
        cfg.mqtt = mq

    return cfg
