"""Single-camera QR code pose tracking service."""

from .config import TrackerConfig
from .worker import TrackerWorker

__all__ = ["TrackerConfig", "TrackerWorker"]
