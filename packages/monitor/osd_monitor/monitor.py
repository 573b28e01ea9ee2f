"""Volume monitor that turns default-sink changes into OSD messages."""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Callable

from osd_protocol.models import DeliveryFailed, Message, VolumeMessage

from .device_map import map_device_name
from .models import DeviceMapping, VolumeReading
from .provider import ExternalWpctlDetector, RecentCalls, WpctlVolumeSource

logger = logging.getLogger("wayland_osd.monitor")

Emitter = Callable[[Message], object]


def detect_change(
    reading: VolumeReading,
    previous: VolumeReading | None,
    external_activity: bool,
) -> bool:
    if previous is None:
        return False
    return reading != previous or external_activity


class VolumeMonitor:
    """Polls the default sink and emits a Volume message when it changes.

    The first reading only primes the baseline. Unchanged readings are still
    emitted when a foreign ``wpctl`` process was seen, so pressing a volume key
    at 100% shows the OSD.
    """

    def __init__(
        self,
        source: WpctlVolumeSource,
        emit: Emitter,
        recent: RecentCalls,
        detector: ExternalWpctlDetector | None = None,
        show_device_name: bool = False,
        mappings: list[DeviceMapping] | None = None,
    ) -> None:
        self.source = source
        self.emit = emit
        self.recent = recent
        self.detector = detector
        self.show_device_name = show_device_name
        self.mappings = mappings or []
        self._last: VolumeReading | None = None
        self.emitted = 0

    def to_message(self, reading: VolumeReading) -> VolumeMessage:
        device = map_device_name(self.mappings, reading.node_name) if self.show_device_name else None
        return VolumeMessage(value=reading.percent, max_value=100, muted=reading.muted, device=device)

    def poll_once(self) -> VolumeMessage | None:
        external = self.detector.poll(self.recent) if self.detector is not None else False
        try:
            reading = self.source.read(self.recent, with_node_name=self.show_device_name)
        except (subprocess.SubprocessError, OSError, ValueError) as exc:
            logger.warning("volume read failed: %s", exc)
            return None

        changed = detect_change(reading, self._last, external)
        self._last = reading
        if not changed:
            return None

        message = self.to_message(reading)
        logger.info(
            "volume %d%% muted=%s device=%s",
            message.value,
            message.muted,
            message.device,
            extra={"event": "volume_changed"},
        )
        try:
            self.emit(message)
        except DeliveryFailed as exc:
            logger.warning("could not deliver volume message: %s", exc)
            return None
        self.emitted += 1
        return message

    def run(self, poll_s: float, stop: threading.Event) -> None:
        while not stop.is_set():
            self.poll_once()
            stop.wait(poll_s)
