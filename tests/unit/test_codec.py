import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

from osd_protocol.codec import decode_frame, decode_text, encode_message, frame_message, validate_raw
from osd_protocol.models import (
    MAX_MESSAGE_SIZE,
    BrightnessMessage,
    MalformedMessage,
    MessageKind,
    OversizedFrame,
    RawMessage,
    TextMessage,
    UnknownMessageKind,
    VolumeMessage,
)


class EncodeTests(unittest.TestCase):
    def test_volume_wire_fields(self):
        payload = json.loads(encode_message(VolumeMessage(value=40, max_value=100, muted=True, device="Headset")))
        self.assertEqual(
            payload,
            {"type": "volume", "value": 40, "max_value": 100, "muted": True, "device_name": "Headset"},
        )

    def test_device_name_omitted_when_unset(self):
        payload = json.loads(encode_message(VolumeMessage(value=1, max_value=2)))
        self.assertNotIn("device_name", payload)

    def test_frame_ends_with_single_delimiter(self):
        frame = frame_message(TextMessage(text="hello"))
        self.assertTrue(frame.endswith(b"\x00"))
        self.assertEqual(frame.count(b"\x00"), 1)

    def test_text_with_nul_is_escaped(self):
        frame = frame_message(TextMessage(text="a\x00b"))
        self.assertEqual(frame.count(b"\x00"), 1)
        self.assertEqual(decode_frame(frame[:-1]), TextMessage(text="a\x00b"))

    def test_oversized_text_is_rejected_before_io(self):
        with self.assertRaises(OversizedFrame):
            encode_message(TextMessage(text="x" * MAX_MESSAGE_SIZE))

    def test_non_positive_max_is_rejected(self):
        with self.assertRaises(MalformedMessage):
            encode_message(BrightnessMessage(value=5, max_value=0))

    def test_out_of_range_value_is_rejected(self):
        with self.assertRaises(MalformedMessage):
            encode_message(VolumeMessage(value=2**31, max_value=100))

    def test_raw_is_sent_verbatim(self):
        raw = '{"type":"text","text":"hi"}'
        self.assertEqual(encode_message(RawMessage(json=raw)), raw.encode("utf-8"))

    def test_raw_with_unknown_type_is_allowed(self):
        self.assertEqual(validate_raw('{"type":"battery","value":3}'), {"type": "battery", "value": 3})

    def test_raw_validation_failures(self):
        for raw in ("not json", "[1, 2]", '{"value": 3}', '{"type": 7}', '{"type":"volume","value":"loud"}'):
            with self.subTest(raw=raw):
                with self.assertRaises(MalformedMessage):
                    encode_message(RawMessage(json=raw))


class DecodeTests(unittest.TestCase):
    def test_volume_with_defaults(self):
        msg = decode_text('{"type":"volume","value":30,"max_value":100}')
        self.assertEqual(msg, VolumeMessage(value=30, max_value=100, muted=False, device=None))
        self.assertEqual(msg.kind, MessageKind.VOLUME)

    def test_brightness(self):
        self.assertEqual(
            decode_text('{"type":"brightness","value":7,"max_value":10}'),
            BrightnessMessage(value=7, max_value=10),
        )

    def test_extra_fields_are_ignored(self):
        msg = decode_text('{"type":"text","text":"x","value":1,"extra":[1]}')
        self.assertEqual(msg, TextMessage(text="x"))

    def test_unknown_kind(self):
        with self.assertRaises(UnknownMessageKind) as ctx:
            decode_text('{"type":"battery"}')
        self.assertEqual(ctx.exception.kind, "battery")

    def test_malformed_inputs(self):
        cases = [
            b"{",
            b'"just a string"',
            b'{"type":"volume","value":10}',
            b'{"type":"volume","value":10,"max_value":-1}',
            b'{"type":"volume","value":true,"max_value":10}',
            b'{"type":"text"}',
            b"\xff\xfe",
        ]
        for frame in cases:
            with self.subTest(frame=frame):
                with self.assertRaises(MalformedMessage):
                    decode_frame(frame)

    def test_unparseable_numbers_and_nesting_are_malformed(self):
        huge_int = '{"type":"text","text":"x","value":' + "1" * 5000 + "}"
        deep = "[" * 4000 + "]" * 4000
        for text in (huge_int, deep):
            with self.subTest(size=len(text)):
                with self.assertRaises(MalformedMessage):
                    decode_text(text)
                with self.assertRaises(MalformedMessage):
                    validate_raw(text)
                with self.assertRaises(MalformedMessage):
                    decode_frame(text.encode("utf-8"))

    def test_decode_rejects_oversized_frame(self):
        with self.assertRaises(OversizedFrame):
            decode_frame(b" " * (MAX_MESSAGE_SIZE + 1))


if __name__ == "__main__":
    unittest.main()
