"""JSON wire codec for OSD messages.

Wire schema (one JSON object per frame, every field optional except ``type``)::

    {"type": "volume"|"brightness"|"text", "value": int, "max_value": int,
     "muted": bool, "device_name": str, "text": str}
"""

from __future__ import annotations

import json
from typing import Any

from .models import (
    DELIMITER,
    I32_MAX,
    I32_MIN,
    MAX_MESSAGE_SIZE,
    BrightnessMessage,
    MalformedMessage,
    Message,
    MessageKind,
    OversizedFrame,
    RawMessage,
    TextMessage,
    UnknownMessageKind,
    VolumeMessage,
)

_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "value": (int,),
    "max_value": (int,),
    "muted": (bool,),
    "device_name": (str,),
    "text": (str,),
}


def message_to_dict(msg: Message) -> dict[str, Any]:
    if isinstance(msg, VolumeMessage):
        data: dict[str, Any] = {
            "type": MessageKind.VOLUME.value,
            "value": msg.value,
            "max_value": msg.max_value,
            "muted": msg.muted,
        }
        if msg.device is not None:
            data["device_name"] = msg.device
        return data
    if isinstance(msg, BrightnessMessage):
        return {"type": MessageKind.BRIGHTNESS.value, "value": msg.value, "max_value": msg.max_value}
    if isinstance(msg, TextMessage):
        return {"type": MessageKind.TEXT.value, "text": msg.text}
    if isinstance(msg, RawMessage):
        return validate_raw(msg.json)
    raise TypeError(f"not an OSD message: {type(msg).__name__}")


def encode_message(msg: Message) -> bytes:
    """Serialize ``msg`` to its JSON payload, without the frame delimiter."""
    if isinstance(msg, RawMessage):
        validate_raw(msg.json)
        payload = msg.json.strip().encode("utf-8")
    else:
        data = message_to_dict(msg)
        # Typed messages must pass the same checks the consumer applies.
        parse_message(data)
        payload = json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    if DELIMITER in payload:
        raise MalformedMessage("payload contains the frame delimiter")
    if len(payload) > MAX_MESSAGE_SIZE:
        raise OversizedFrame(len(payload))
    return payload


def frame_message(msg: Message) -> bytes:
    return encode_message(msg) + DELIMITER


def _is_type(value: Any, expected: tuple[type, ...]) -> bool:
    # bool is an int subclass; keep numeric fields strictly integral.
    if bool not in expected and isinstance(value, bool):
        return False
    return isinstance(value, expected)


def _check_fields(data: dict[str, Any]) -> None:
    for name, expected in _FIELD_TYPES.items():
        value = data.get(name)
        if value is None:
            continue
        if not _is_type(value, expected):
            raise MalformedMessage(f"field {name!r} has wrong type {type(value).__name__}")
        if expected == (int,) and not (I32_MIN <= value <= I32_MAX):
            raise MalformedMessage(f"field {name!r} out of range")


def validate_raw(text: str) -> dict[str, Any]:
    """Check that ``text`` is a schema-shaped JSON object and return it parsed.

    The ``type`` tag only has to be a string here; kinds the presenter does not
    know are reported on the consuming side.
    """
    try:
        data = json.loads(text)
    except (ValueError, TypeError, RecursionError) as exc:
        raise MalformedMessage(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedMessage("message must be a JSON object")
    if not isinstance(data.get("type"), str):
        raise MalformedMessage("message has no string 'type' field")
    _check_fields(data)
    return data


def _progress_fields(data: dict[str, Any], kind: str) -> tuple[int, int]:
    value = data.get("value")
    max_value = data.get("max_value")
    if value is None or max_value is None:
        raise MalformedMessage(f"{kind} message requires both 'value' and 'max_value'")
    if max_value <= 0:
        raise MalformedMessage(f"{kind} message has non-positive 'max_value'")
    return int(value), int(max_value)


def parse_message(data: dict[str, Any]) -> Message:
    kind = data.get("type")
    if not isinstance(kind, str):
        raise MalformedMessage("message has no string 'type' field")
    _check_fields(data)

    if kind == MessageKind.VOLUME.value:
        value, max_value = _progress_fields(data, kind)
        return VolumeMessage(
            value=value,
            max_value=max_value,
            muted=bool(data.get("muted", False)),
            device=data.get("device_name"),
        )
    if kind == MessageKind.BRIGHTNESS.value:
        value, max_value = _progress_fields(data, kind)
        return BrightnessMessage(value=value, max_value=max_value)
    if kind == MessageKind.TEXT.value:
        text = data.get("text")
        if text is None:
            raise MalformedMessage("text message requires 'text'")
        return TextMessage(text=text)
    raise UnknownMessageKind(kind)


def decode_text(text: str) -> Message:
    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise MalformedMessage(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedMessage("message must be a JSON object")
    return parse_message(data)


def decode_frame(frame: bytes) -> Message:
    """Decode one complete frame (delimiter already stripped) into a typed message."""
    if len(frame) > MAX_MESSAGE_SIZE:
        raise OversizedFrame(len(frame))
    try:
        text = frame.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedMessage(f"frame is not UTF-8: {exc}") from exc
    return decode_text(text)
