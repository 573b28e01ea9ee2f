"""Wire protocol package for the wayland-osd notification channel."""

from .client import DeliveryStats, OsdClient
from .codec import decode_frame, decode_text, encode_message, frame_message, validate_raw
from .framing import FrameDecoder
from .models import (
    BUS_INTERFACE,
    BUS_PATH,
    BUS_SERVICE,
    DEFAULT_CHANNEL_PATH,
    DELIMITER,
    MAX_MESSAGE_SIZE,
    BrightnessMessage,
    ChannelSetupError,
    ChannelState,
    DecodeStats,
    DeliveryFailed,
    Endpoint,
    MalformedMessage,
    Message,
    MessageKind,
    OsdError,
    OversizedFrame,
    RawMessage,
    TextMessage,
    UnknownMessageKind,
    VolumeMessage,
)
from .replay import ReplayReport, ReplayRunner
from .transport import WOULD_BLOCK, ChannelTransport

__all__ = [
    "BUS_INTERFACE",
    "BUS_PATH",
    "BUS_SERVICE",
    "BrightnessMessage",
    "ChannelSetupError",
    "ChannelState",
    "ChannelTransport",
    "DEFAULT_CHANNEL_PATH",
    "DELIMITER",
    "DecodeStats",
    "DeliveryFailed",
    "DeliveryStats",
    "Endpoint",
    "FrameDecoder",
    "MAX_MESSAGE_SIZE",
    "MalformedMessage",
    "Message",
    "MessageKind",
    "OsdClient",
    "OsdError",
    "OversizedFrame",
    "RawMessage",
    "ReplayReport",
    "ReplayRunner",
    "TextMessage",
    "UnknownMessageKind",
    "VolumeMessage",
    "WOULD_BLOCK",
    "decode_frame",
    "decode_text",
    "encode_message",
    "frame_message",
    "validate_raw",
]
