"""Diagnostics export helpers for local support bundles."""

from __future__ import annotations

import json
import os
import platform
import re
import stat
import tempfile
import zipfile
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import psutil

from .config import OsdConfig, config_path
from .logging_setup import LOG_FILENAME, log_dir


_SECRET_RE = re.compile(r"(token|secret|password|apikey|api_key|auth)", re.IGNORECASE)
_PRESENTER_MARKERS = ("osd-presenter", "osd_presenter")
_TOOL_COMMANDS = ("doctor", "replay")


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, Path):
        return str(value)
    return value


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if _SECRET_RE.search(k):
                out[k] = "***REDACTED***"
            else:
                out[k] = redact(v)
        return out
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def channel_report(path: str) -> dict[str, Any]:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return {"path": path, "exists": False, "is_fifo": False, "mode": None}
    except OSError as exc:
        return {"path": path, "exists": False, "is_fifo": False, "mode": None, "error": exc.strerror}
    return {
        "path": path,
        "exists": True,
        "is_fifo": stat.S_ISFIFO(st.st_mode),
        "mode": oct(stat.S_IMODE(st.st_mode)),
        "owner_uid": st.st_uid,
    }


def find_presenters() -> list[dict[str, Any]]:
    found: list[dict[str, Any]] = []
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        cmdline = " ".join(proc.info.get("cmdline") or [])
        if proc.pid == os.getpid():
            continue
        if not any(marker in cmdline for marker in _PRESENTER_MARKERS):
            continue
        # The bare command runs the presenter; the tool subcommands do not.
        if not any(f" {tool} " in f" {cmdline} " for tool in _TOOL_COMMANDS):
            found.append({"pid": proc.pid, "name": proc.info.get("name"), "cmdline": cmdline})
    return found


def load_channel_events(limit: int = 200, log_file: Path | None = None) -> list[dict[str, Any]]:
    """Channel reader events recorded in the presenter's JSON log, oldest first."""
    path = log_file or (log_dir() / LOG_FILENAME)
    try:
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except FileNotFoundError:
        return []

    events: list[dict[str, Any]] = []
    for line in lines:
        try:
            row = json.loads(line)
        except ValueError:
            continue
        if isinstance(row, dict) and isinstance(row.get("channel"), dict):
            events.append(row["channel"])
    return events[-limit:]


def build_doctor_payload(cfg: OsdConfig) -> dict[str, Any]:
    return {
        "ts_utc": datetime.now(timezone.utc).isoformat(),
        "platform": platform.platform(),
        "python": platform.python_version(),
        "config": redact(asdict(cfg)),
        "channel": channel_report(cfg.channel.path),
        "presenters": find_presenters(),
        "session_bus": bool(os.environ.get("DBUS_SESSION_BUS_ADDRESS")),
        "wayland_display": os.environ.get("WAYLAND_DISPLAY"),
    }


class DiagnosticsExporter:
    def __init__(self, app_name: str = "wayland-osd") -> None:
        self.app_name = app_name

    def bundle(
        self,
        cfg: OsdConfig,
        doctor_payload: dict[str, Any],
        recent_channel_events: list[dict[str, Any]] | None = None,
        output_dir: Path | None = None,
    ) -> Path:
        output_base = output_dir or Path(tempfile.gettempdir())
        output_base.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        zip_path = output_base / f"wayland-osd-diagnostics-{stamp}.zip"

        logs = sorted(log_dir().glob("*.log*"))

        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            manifest = {
                "app": self.app_name,
                "created_utc": datetime.now(timezone.utc).isoformat(),
                "host": platform.platform(),
                "python": platform.python_version(),
                "config_path": str(config_path()),
                "log_dir": str(log_dir()),
            }
            zf.writestr("manifest.json", json.dumps(manifest, indent=2, sort_keys=True))
            zf.writestr("doctor.json", json.dumps(redact(doctor_payload), indent=2, sort_keys=True, default=_jsonable))
            zf.writestr("config.redacted.json", json.dumps(redact(asdict(cfg)), indent=2, sort_keys=True))
            zf.writestr(
                "channel_events.json",
                json.dumps(redact(recent_channel_events or []), indent=2, sort_keys=True, default=_jsonable),
            )

            for item in logs:
                zf.write(item, arcname=f"logs/{item.name}")

        return zip_path
