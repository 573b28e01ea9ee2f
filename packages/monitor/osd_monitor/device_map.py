"""Device name mapping file support (``pattern=Display Name`` per line)."""

from __future__ import annotations

import logging
from pathlib import Path

from .models import DeviceMapping

logger = logging.getLogger("wayland_osd.monitor")


def parse_device_map(text: str) -> list[DeviceMapping]:
    mappings: list[DeviceMapping] = []
    for raw in text.splitlines():
        line = raw.rstrip("\n")
        if not line or line.startswith("#"):
            continue
        pattern, sep, display_name = line.partition("=")
        if not sep or not pattern:
            continue
        mappings.append(DeviceMapping(pattern=pattern, display_name=display_name))
    return mappings


def load_device_map(path: Path | None) -> list[DeviceMapping]:
    if path is None:
        return []
    mappings = parse_device_map(path.read_text(encoding="utf-8"))
    logger.info("loaded %d device name mappings from %s", len(mappings), path)
    return mappings


def map_device_name(mappings: list[DeviceMapping], device_name: str | None) -> str | None:
    """First mapping whose pattern is a substring of ``device_name`` wins."""
    if not device_name:
        return device_name
    for mapping in mappings:
        if mapping.pattern in device_name:
            return mapping.display_name
    return device_name
