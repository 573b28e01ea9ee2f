"""Typed volume monitor models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VolumeReading:
    percent: int
    muted: bool
    node_name: str | None = None


@dataclass(frozen=True)
class DeviceMapping:
    pattern: str
    display_name: str
