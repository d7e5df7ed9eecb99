from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from planar_pose.events import DebugInfo, PoseUpdated, TrackEvent, TrackLost
from planar_pose.services.csv_writer import CsvWriter


class EventSink(ABC):
    """Observer for tracker events; called on the tracker's serialized context."""

    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write_event(self, frame_idx: int, event: TrackEvent) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(EventSink):
    def __init__(self, filename: str = "events.csv"):
        self.filename = filename
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        path = session_dir / self.filename
        self._writer = CsvWriter(str(path))
        self._writer.open()

    def write_event(self, frame_idx: int, event: TrackEvent) -> None:
        if self._writer is None:
            return
        self._writer.append(time.time(), frame_idx, event)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class LogOutput(EventSink):
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def open(self, session_dir: Path) -> None:
        return None

    def write_event(self, frame_idx: int, event: TrackEvent) -> None:
        if isinstance(event, PoseUpdated):
            p = event.position
            self.logger.info(
                "frame=%d pose id=%s pos=(%.3f, %.3f, %.3f)",
                frame_idx, event.target_id, p[0], p[1], p[2],
            )
        elif isinstance(event, TrackLost):
            self.logger.info("frame=%d lost id=%s", frame_idx, event.target_id)
        elif isinstance(event, DebugInfo):
            self.logger.debug("frame=%d %s", frame_idx, event.text.replace("\n", " | "))

    def close(self) -> None:
        return None


class MqttOutput(EventSink):
    """Publish pose/lost events as CSV lines (header first) to an MQTT topic."""

    def __init__(
        self,
        broker_ip: str,
        broker_port: int = 1883,
        topic: str = "qr_tracking/events",
        client_id: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        self.broker_ip = broker_ip
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.log = logger or logging.getLogger(__name__)
        self._client = None

    def open(self, session_dir: Path) -> None:
        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id)
        client.connect(self.broker_ip, self.broker_port, 60)
        client.loop_start()
        client.publish(self.topic, ",".join(CsvWriter.HEADER))
        self._client = client

    def write_event(self, frame_idx: int, event: TrackEvent) -> None:
        if self._client is None:
            return
        line = CsvWriter.to_csv_line(time.time(), frame_idx, event)
        if line is None:
            return
        try:
            self._client.publish(self.topic, line)
        except Exception as e:
            self.log.warning("Event publish failed: %s", e)

    def close(self) -> None:
        if self._client is not None:
            self._client.loop_stop()
            self._client.disconnect()
            self._client = None


class CallbackOutput(EventSink):
    """Forward events to a plain callable, e.g. a renderer's update hook."""

    def __init__(self, callback: Callable[[int, TrackEvent], None]):
        self.callback = callback

    def open(self, session_dir: Path) -> None:
        return None

    def write_event(self, frame_idx: int, event: TrackEvent) -> None:
        self.callback(frame_idx, event)

    def close(self) -> None:
        return None


class NullOutput(EventSink):
    def open(self, session_dir: Path) -> None:
        return None

    def write_event(self, frame_idx: int, event: TrackEvent) -> None:
        return None

    def close(self) -> None:
        return None
