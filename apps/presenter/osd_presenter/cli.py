"""CLI entrypoints for the OSD presenter, diagnostics, and capture replay."""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from importlib import metadata
from pathlib import Path

from osd_core import DiagnosticsExporter, build_doctor_payload, load_config
from osd_core.diagnostics import load_channel_events
from osd_core.logging_setup import configure_logging
from osd_protocol import ReplayRunner


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _installed_version() -> str:
    try:
        return metadata.version("wayland-osd")
    except metadata.PackageNotFoundError:
        return "0.1.0"


def cmd_run(_args: argparse.Namespace) -> int:
    from .app import run_presenter

    return run_presenter()


def cmd_doctor(args: argparse.Namespace) -> int:
    cfg = load_config()
    payload = build_doctor_payload(cfg)
    payload["version"] = _installed_version()

    if args.export:
        exporter = DiagnosticsExporter()
        out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else None
        bundle = exporter.bundle(
            cfg=cfg,
            doctor_payload=payload,
            recent_channel_events=load_channel_events(),
            output_dir=out_dir,
        )
        payload["diagnostics_bundle"] = str(bundle)

    _print_json(payload)
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    runner = ReplayRunner(chunk_size=args.chunk)
    report = runner.run(Path(args.capture))
    payload = asdict(report)
    payload["success"] = len(report.errors) == 0
    _print_json(payload)
    return 0 if not report.errors else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="osd-presenter", description="Wayland OSD presenter and tools")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_installed_version()}")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run", help="Listen on the channel and show notifications")
    run_cmd.set_defaults(func=cmd_run)

    doctor_cmd = sub.add_parser("doctor", help="Print diagnostics for the channel and presenter")
    doctor_cmd.add_argument("--export", action="store_true", help="Export offline diagnostics bundle")
    doctor_cmd.add_argument("--out-dir", default=None, help="Optional output directory for diagnostics bundle")
    doctor_cmd.set_defaults(func=cmd_doctor)

    replay_cmd = sub.add_parser("replay", help="Decode a captured channel byte stream")
    replay_cmd.add_argument("--capture", required=True, help="Raw byte dump or JSONL transcript of hex chunks")
    replay_cmd.add_argument("--chunk", type=int, default=4096, help="Read size used to split raw dumps")
    replay_cmd.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging(console=False)
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
