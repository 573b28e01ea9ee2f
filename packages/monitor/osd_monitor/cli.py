"""CLI entrypoint for the wpctl-based volume monitor."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path

from osd_core.config import load_config
from osd_core.logging_setup import configure_logging, get_logger
from osd_protocol import OsdClient

from .device_map import load_device_map
from .monitor import VolumeMonitor
from .provider import ExternalWpctlDetector, RecentCalls, WpctlVolumeSource


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="osd-volume-monitor",
        description="Watch the default audio sink and show volume changes on the OSD",
    )
    parser.add_argument("-d", "--show-device-name", action="store_true", help="Show the audio device name in the OSD")
    parser.add_argument("-m", "--device-map", default=None, metavar="FILE", help="File containing device name mappings")
    parser.add_argument("--pipe", default=None, help="Override the OSD channel path")
    parser.add_argument("--poll-ms", type=int, default=None, help="Polling interval in milliseconds")
    parser.add_argument("--wpctl", default="wpctl", help="wpctl executable to use")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config()
    configure_logging(keep_files=cfg.diagnostics.keep_log_files, filename="volume-monitor.log")
    logger = get_logger("monitor")

    source = WpctlVolumeSource(wpctl=args.wpctl)
    if not source.available():
        print(f"error: {args.wpctl} not found in PATH", file=sys.stderr)
        return 1

    map_file = args.device_map or cfg.monitor.device_map_file
    try:
        mappings = load_device_map(Path(map_file).expanduser() if map_file else None)
    except OSError as exc:
        print(f"error: cannot read device map {map_file}: {exc.strerror}", file=sys.stderr)
        return 1

    client = OsdClient(
        path=args.pipe or cfg.channel.path,
        attempts=cfg.client.attempts,
        retry_delay_s=cfg.client.retry_delay_ms / 1000,
        settle_delay_s=cfg.client.settle_delay_ms / 1000,
    )
    recent = RecentCalls(cfg.monitor.recent_capacity)
    monitor = VolumeMonitor(
        source=source,
        emit=client.send,
        recent=recent,
        detector=ExternalWpctlDetector(),
        show_device_name=args.show_device_name or cfg.monitor.show_device_name,
        mappings=mappings,
    )

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    poll_ms = args.poll_ms if args.poll_ms is not None else cfg.monitor.poll_ms
    logger.info("volume monitor started (poll %d ms, channel %s)", poll_ms, client.path)
    monitor.run(max(poll_ms, 50) / 1000, stop)
    logger.info("volume monitor stopped after %d messages", monitor.emitted)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
