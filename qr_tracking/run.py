import argparse
import signal
import sys

from .config import TrackerConfig, load_config
from .logging_utils import parse_level
from .worker import TrackerWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Track QR code poses from a single camera")
    ap.add_argument("--config", required=True, help="Path to JSON/YAML config")

    ap.add_argument("--tracker-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--half-size-m", type=float)
    ap.add_argument("--detection-interval", type=int)
    ap.add_argument("--max-missed-frames", type=int)
    ap.add_argument("--relabel-corners", action="store_true")
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--no-save-events", action="store_true")
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING, ... or a number")

    return ap


def _apply_args(cfg: TrackerConfig, args: argparse.Namespace) -> TrackerConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        tracker_name=args.tracker_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        half_size_m=args.half_size_m,
        detection_interval=args.detection_interval,
        max_missed_frames=args.max_missed_frames,
        relabel_corners=True if args.relabel_corners else None,
        dry_run=True if args.dry_run else None,
        save_events=False if args.no_save_events else None,
        log_level=args.log_level,
    )
    cfg.tracking.validate()
    parse_level(cfg.log_level)
    return cfg


def main() -> int:
    ap = _build_parser()
    args = ap.parse_args()

    cfg = load_config(args.config)
    cfg = _apply_args(cfg, args)

    worker = TrackerWorker(cfg)

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = worker.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
