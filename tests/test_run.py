import sys
from unittest.mock import MagicMock, patch

import pytest

from qr_tracking import run
from qr_tracking.config import TrackerConfig


def _run_main(argv, cfg=None):
    cfg = cfg or TrackerConfig()
    worker = MagicMock()
    worker.run.return_value = "summary"
    with patch.object(sys, "argv", ["qr-tracking", *argv]), patch(
        "qr_tracking.run.load_config", return_value=cfg
    ) as load, patch("qr_tracking.run.TrackerWorker", return_value=worker) as worker_cls, patch(
        "qr_tracking.run.signal.signal"
    ):
        rc = run.main()
    return rc, load, worker_cls, worker


def test_main_runs_worker_with_loaded_config():
    rc, load, worker_cls, worker = _run_main(["--config", "tracker.yaml"])

    assert rc == 0
    load.assert_called_once_with("tracker.yaml")
    worker.run.assert_called_once()
    assert isinstance(worker_cls.call_args.args[0], TrackerConfig)


def test_cli_overrides_config():
    rc, _load, worker_cls, _worker = _run_main(
        [
            "--config", "c.json",
            "--device", "2",
            "--fps", "15",
            "--calib", "cam.yml",
            "--half-size-m", "0.03",
            "--detection-interval", "1",
            "--relabel-corners",
            "--no-save-events",
        ]
    )

    cfg = worker_cls.call_args.args[0]
    assert cfg.device == 2
    assert cfg.fps == 15
    assert cfg.calibration_path == "cam.yml"
    assert cfg.tracking.half_size_m == 0.03
    assert cfg.tracking.detection_interval == 1
    assert cfg.relabel_corners is True
    assert cfg.save_events is False
    assert cfg.dry_run is False


def test_device_path_kept_as_string():
    _rc, _load, worker_cls, _worker = _run_main(["--config", "c.json", "--device", "/dev/video1"])
    assert worker_cls.call_args.args[0].device == "/dev/video1"


def test_invalid_override_rejected():
    with pytest.raises(ValueError):
        _run_main(["--config", "c.json", "--half-size-m", "-1"])


def test_config_is_required():
    with patch.object(sys, "argv", ["qr-tracking"]):
        with pytest.raises(SystemExit):
            run.main()


def test_log_level_option():
    _rc, _load, worker_cls, _worker = _run_main(["--config", "c.json", "--log-level", "DEBUG"])
    assert worker_cls.call_args.args[0].log_level == "DEBUG"


def test_unknown_log_level_rejected():
    with pytest.raises(ValueError):
        _run_main(["--config", "c.json", "--log-level", "chatty"])
