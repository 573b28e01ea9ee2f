"""Persistent settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from osd_protocol.models import BUS_PATH, BUS_SERVICE, DEFAULT_CHANNEL_PATH


CONFIG_VERSION = 1


@dataclass
class ChannelConfig:
    path: str = DEFAULT_CHANNEL_PATH
    mode: int = 0o622
    poll_ms: int = 10
    max_reads_per_tick: int = 16


@dataclass
class ClientConfig:
    attempts: int = 5
    retry_delay_ms: int = 50
    settle_delay_ms: int = 5


@dataclass
class BusConfig:
    enabled: bool = True
    service_name: str = BUS_SERVICE
    object_path: str = BUS_PATH


@dataclass
class WindowConfig:
    width: int = 600
    margin_bottom: int = 50
    opacity: float = 0.8


@dataclass
class MonitorConfig:
    poll_ms: int = 250
    show_device_name: bool = False
    device_map_file: str | None = None
    recent_capacity: int = 32


@dataclass
class DiagnosticsConfig:
    keep_log_files: int = 7


@dataclass
class OsdConfig:
    config_version: int = CONFIG_VERSION
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    bus: BusConfig = field(default_factory=BusConfig)
    window: WindowConfig = field(default_factory=WindowConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)


DEFAULT_CONFIG = OsdConfig()


def config_root() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "wayland-osd"


def config_path() -> Path:
    override = os.environ.get("WAYLAND_OSD_CONFIG", "").strip()
    if override:
        return Path(override).expanduser()
    return config_root() / "config.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    if not isinstance(raw, dict):
        return defaults
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    try:
        return max(low, min(high, int(value)))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        return default
    if isinstance(value, int):
        return bool(value)
    return default


def _normalize_channel(cfg: OsdConfig) -> None:
    ch = cfg.channel
    ch.path = str(ch.path or DEFAULT_CHANNEL_PATH)
    ch.mode = _clamp(ch.mode, 0, 0o777, 0o622)
    ch.poll_ms = _clamp(ch.poll_ms, 1, 250, 10)
    ch.max_reads_per_tick = _clamp(ch.max_reads_per_tick, 1, 256, 16)


def _normalize_client(cfg: OsdConfig) -> None:
    cfg.client.attempts = _clamp(cfg.client.attempts, 1, 50, 5)
    cfg.client.retry_delay_ms = _clamp(cfg.client.retry_delay_ms, 0, 5000, 50)
    cfg.client.settle_delay_ms = _clamp(cfg.client.settle_delay_ms, 0, 1000, 5)


def _normalize_window(cfg: OsdConfig) -> None:
    cfg.window.width = _clamp(cfg.window.width, 200, 4096, 600)
    cfg.window.margin_bottom = _clamp(cfg.window.margin_bottom, 0, 2000, 50)
    try:
        opacity = float(cfg.window.opacity)
    except (TypeError, ValueError):
        opacity = 0.8
    cfg.window.opacity = max(0.1, min(1.0, opacity))


def _normalize_monitor(cfg: OsdConfig) -> None:
    cfg.monitor.poll_ms = _clamp(cfg.monitor.poll_ms, 50, 5000, 250)
    cfg.monitor.recent_capacity = _clamp(cfg.monitor.recent_capacity, 1, 1024, 32)
    cfg.monitor.show_device_name = _as_bool(cfg.monitor.show_device_name, False)
    if cfg.monitor.device_map_file is not None and not isinstance(cfg.monitor.device_map_file, str):
        cfg.monitor.device_map_file = None


def _normalize_bus(cfg: OsdConfig) -> None:
    cfg.bus.enabled = _as_bool(cfg.bus.enabled, True)
    cfg.bus.service_name = str(cfg.bus.service_name or BUS_SERVICE)
    path = str(cfg.bus.object_path or BUS_PATH)
    cfg.bus.object_path = path if path.startswith("/") else BUS_PATH


def _normalize_diagnostics(cfg: OsdConfig) -> None:
    cfg.diagnostics.keep_log_files = _clamp(cfg.diagnostics.keep_log_files, 1, 365, 7)


def _migrate(raw: dict[str, Any]) -> dict[str, Any]:
    data = dict(raw)
    data.setdefault("config_version", CONFIG_VERSION)
    return data


def load_config(path: Path | None = None) -> OsdConfig:
    path = path or config_path()
    if not path.exists():
        return OsdConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, RecursionError):
        return OsdConfig()
    if not isinstance(raw, dict):
        return OsdConfig()

    data = _migrate(raw)
    cfg = OsdConfig(
        config_version=_clamp(data.get("config_version"), 1, CONFIG_VERSION, CONFIG_VERSION),
        channel=_merge(ChannelConfig, data.get("channel", {})),
        client=_merge(ClientConfig, data.get("client", {})),
        bus=_merge(BusConfig, data.get("bus", {})),
        window=_merge(WindowConfig, data.get("window", {})),
        monitor=_merge(MonitorConfig, data.get("monitor", {})),
        diagnostics=_merge(DiagnosticsConfig, data.get("diagnostics", {})),
    )

    _normalize_channel(cfg)
    _normalize_client(cfg)
    _normalize_window(cfg)
    _normalize_monitor(cfg)
    _normalize_bus(cfg)
    _normalize_diagnostics(cfg)
    return cfg


def save_config(cfg: OsdConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path
