"""Typed models for OSD messages, channel state, and the error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

MAX_MESSAGE_SIZE = 8192
DELIMITER = b"\x00"
DEFAULT_CHANNEL_PATH = "/tmp/wayland-osd.pipe"

BUS_SERVICE = "org.wayland.Osd"
BUS_PATH = "/org/wayland/Osd"
BUS_INTERFACE = "org.wayland.Osd"

I32_MIN = -(2**31)
I32_MAX = 2**31 - 1


class MessageKind(str, Enum):
    VOLUME = "volume"
    BRIGHTNESS = "brightness"
    TEXT = "text"
    RAW = "raw"


class ChannelState(str, Enum):
    CLOSED = "Closed"
    LISTENING = "Listening"
    END_OF_STREAM = "EndOfStream"
    REOPENING = "Reopening"
    FAILED = "Failed"


@dataclass(frozen=True)
class VolumeMessage:
    value: int
    max_value: int
    muted: bool = False
    device: str | None = None

    @property
    def kind(self) -> MessageKind:
        return MessageKind.VOLUME


@dataclass(frozen=True)
class BrightnessMessage:
    value: int
    max_value: int

    @property
    def kind(self) -> MessageKind:
        return MessageKind.BRIGHTNESS


@dataclass(frozen=True)
class TextMessage:
    text: str

    @property
    def kind(self) -> MessageKind:
        return MessageKind.TEXT


@dataclass(frozen=True)
class RawMessage:
    """Pass-through JSON text; validated before it is sent, never rendered directly."""

    json: str

    @property
    def kind(self) -> MessageKind:
        return MessageKind.RAW


Message = Union[VolumeMessage, BrightnessMessage, TextMessage, RawMessage]


@dataclass(frozen=True)
class Endpoint:
    path: str
    fd: int


@dataclass
class DecodeStats:
    bytes_read: int = 0
    frames: int = 0
    messages: int = 0
    empty_frames: int = 0
    oversized: int = 0
    malformed: int = 0
    unknown: int = 0


class OsdError(Exception):
    """Base class for every error raised by the OSD protocol stack."""


class ChannelSetupError(OsdError):
    pass


class DeliveryFailed(OsdError):
    pass


class OversizedFrame(OsdError):
    def __init__(self, size: int, limit: int = MAX_MESSAGE_SIZE) -> None:
        super().__init__(f"frame of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class MalformedMessage(OsdError):
    pass


class UnknownMessageKind(OsdError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"unknown message type: {kind!r}")
        self.kind = kind
