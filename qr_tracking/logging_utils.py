"""
Per-tracker loggers.

Worker messages go to `qr_tracking.<tracker>`. The core package logs under
`planar_pose`; session handlers are attached there too so solver and registry
diagnostics end up in the same session log, tagged with the tracker name.
"""

import logging
from typing import Union

CORE_LOGGER = "planar_pose"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(tracker)s] %(name)s: %(message)s"


class TrackerNameFilter(logging.Filter):
    def __init__(self, tracker_name: str):
        super().__init__()
        self.tracker_name = tracker_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.tracker = self.tracker_name
        return True


def parse_level(level: Union[int, str]) -> int:
    """Accept 10, "10", "debug" or "DEBUG"."""
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    value = logging.getLevelName(text.upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level {level!r}")
    return value


def _tagged_handler(handler: logging.Handler, tracker_name: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(TrackerNameFilter(tracker_name))
    return handler


def setup_logger(tracker_name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    lvl = parse_level(level)
    logger = logging.getLogger(f"qr_tracking.{tracker_name}")
    core = logging.getLogger(CORE_LOGGER)

    for lg in (logger, core):
        lg.setLevel(lvl)
        if not lg.handlers:
            lg.addHandler(_tagged_handler(logging.StreamHandler(), tracker_name))

    return logger


def add_file_handler(logger: logging.Logger, tracker_name: str, log_path: str) -> logging.Handler:
    handler = _tagged_handler(logging.FileHandler(log_path), tracker_name)
    logger.addHandler(handler)
    logging.getLogger(CORE_LOGGER).addHandler(handler)
    return handler


def remove_file_handler(logger: logging.Logger, handler: logging.Handler) -> None:
    logger.removeHandler(handler)
    logging.getLogger(CORE_LOGGER).removeHandler(handler)
    handler.close()
