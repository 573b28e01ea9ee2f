"""Session bus endpoint exposing ``ShowMessage(s)`` on the presenter's Qt loop."""

from __future__ import annotations

from PySide6.QtCore import ClassInfo, QObject, Slot
from PySide6.QtDBus import QDBusConnection

from osd_core.config import BusConfig
from osd_core.display_state import DisplayStateMachine
from osd_core.logging_setup import get_logger
from osd_protocol import BUS_INTERFACE, decode_text
from osd_protocol.models import MalformedMessage, UnknownMessageKind

logger = get_logger("bus")


@ClassInfo(**{"D-Bus Interface": BUS_INTERFACE})
class OsdBusService(QObject):
    """Bus adaptor; invoked on the GUI thread so it can drive the display directly."""

    def __init__(self, display: DisplayStateMachine, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.display = display
        self.received = 0
        self.rejected = 0
        self._connection: QDBusConnection | None = None
        self._config: BusConfig | None = None

    @Slot(str)
    def ShowMessage(self, payload: str) -> None:  # noqa: N802 - bus method name
        self.received += 1
        try:
            message = decode_text(payload)
        except (MalformedMessage, UnknownMessageKind) as exc:
            self.rejected += 1
            logger.warning("bus message rejected: %s", exc, extra={"event": "bus_rejected"})
            return
        self.display.apply(message)

    def register(self, config: BusConfig, connection: QDBusConnection | None = None) -> bool:
        conn = connection or QDBusConnection.sessionBus()
        if not conn.isConnected():
            logger.warning("session bus unavailable; bus endpoint disabled", extra={"event": "bus_unavailable"})
            return False
        if not conn.registerService(config.service_name):
            logger.warning(
                "could not claim bus name %s: %s",
                config.service_name,
                conn.lastError().message(),
                extra={"event": "bus_name_taken"},
            )
            return False
        if not conn.registerObject(config.object_path, self, QDBusConnection.RegisterOption.ExportAllSlots):
            conn.unregisterService(config.service_name)
            logger.warning("could not export %s on the bus", config.object_path, extra={"event": "bus_export_failed"})
            return False
        self._connection = conn
        self._config = config
        logger.info("bus endpoint %s%s ready", config.service_name, config.object_path, extra={"event": "bus_ready"})
        return True

    def unregister(self) -> None:
        if self._connection is None or self._config is None:
            return
        self._connection.unregisterObject(self._config.object_path)
        self._connection.unregisterService(self._config.service_name)
        self._connection = None


def register_bus_service(
    display: DisplayStateMachine,
    config: BusConfig,
    parent: QObject | None = None,
) -> OsdBusService | None:
    """Bus failures are not fatal; the channel keeps working without it."""
    service = OsdBusService(display, parent)
    if not service.register(config):
        service.deleteLater()
        return None
    return service
