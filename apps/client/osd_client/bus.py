"""Deliver a message through the presenter's session bus endpoint instead of the channel."""

from __future__ import annotations

from PySide6.QtCore import QCoreApplication
from PySide6.QtDBus import QDBusConnection, QDBusInterface, QDBusMessage

from osd_core.config import BusConfig
from osd_protocol import BUS_INTERFACE, encode_message
from osd_protocol.models import DeliveryFailed, Message


def send_via_bus(message: Message, config: BusConfig | None = None) -> int:
    """Call ``ShowMessage`` synchronously; returns the payload size in bytes."""
    cfg = config or BusConfig()
    payload = encode_message(message).decode("utf-8")

    # QtDBus needs an application object to dispatch the reply.
    _app = QCoreApplication.instance() or QCoreApplication([])
    conn = QDBusConnection.sessionBus()
    if not conn.isConnected():
        raise DeliveryFailed("session bus unavailable")

    iface = QDBusInterface(cfg.service_name, cfg.object_path, BUS_INTERFACE, conn)
    if not iface.isValid():
        raise DeliveryFailed(f"no presenter on the bus at {cfg.service_name}: {iface.lastError().message()}")

    reply = iface.call("ShowMessage", payload)
    if reply.type() == QDBusMessage.MessageType.ErrorMessage:
        raise DeliveryFailed(f"ShowMessage failed: {reply.errorMessage()}")
    return len(payload.encode("utf-8"))
