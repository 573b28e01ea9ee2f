"""Volume monitor producer for the wayland-osd presenter."""

from .device_map import load_device_map, map_device_name, parse_device_map
from .models import DeviceMapping, VolumeReading
from .monitor import VolumeMonitor, detect_change
from .provider import ExternalWpctlDetector, RecentCalls, WpctlVolumeSource, parse_node_name, parse_volume

__all__ = [
    "DeviceMapping",
    "ExternalWpctlDetector",
    "RecentCalls",
    "VolumeMonitor",
    "VolumeReading",
    "WpctlVolumeSource",
    "detect_change",
    "load_device_map",
    "map_device_name",
    "parse_device_map",
    "parse_node_name",
    "parse_volume",
]
