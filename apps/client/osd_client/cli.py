"""Producer CLI: build one OSD message from arguments and deliver it."""

from __future__ import annotations

import argparse
import sys

from osd_core.config import load_config
from osd_core.logging_setup import configure_logging, get_logger
from osd_protocol import (
    BrightnessMessage,
    DeliveryFailed,
    MalformedMessage,
    Message,
    OsdClient,
    OversizedFrame,
    RawMessage,
    TextMessage,
    VolumeMessage,
    encode_message,
)

EXIT_OK = 0
EXIT_DELIVERY_FAILED = 1
EXIT_INVALID = 2


def build_audio(args: argparse.Namespace) -> Message:
    return VolumeMessage(value=args.volume, max_value=args.max_volume, muted=args.mute, device=args.device)


def build_brightness(args: argparse.Namespace) -> Message:
    return BrightnessMessage(value=args.level, max_value=args.max_level)


def build_text(args: argparse.Namespace) -> Message:
    return TextMessage(text=args.message)


def build_json(args: argparse.Namespace) -> Message:
    return RawMessage(json=args.raw)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="osd-client", description="Send a notification to the Wayland OSD presenter")
    parser.add_argument("--pipe", default=None, help="Channel path (defaults to the configured path)")
    parser.add_argument("--bus", action="store_true", help="Deliver over the session bus instead of the channel")
    sub = parser.add_subparsers(dest="command", required=True)

    audio_cmd = sub.add_parser("audio", help="Show the audio volume")
    audio_cmd.add_argument("volume", type=int)
    audio_cmd.add_argument("--max-volume", type=int, default=100)
    audio_cmd.add_argument("--mute", action="store_true")
    audio_cmd.add_argument("--device", default=None, help="Device name shown above the bar")
    audio_cmd.set_defaults(build=build_audio)

    bright_cmd = sub.add_parser("brightness", help="Show the screen brightness")
    bright_cmd.add_argument("level", type=int)
    bright_cmd.add_argument("--max-level", type=int, default=100)
    bright_cmd.set_defaults(build=build_brightness)

    text_cmd = sub.add_parser("text", help="Show a text message")
    text_cmd.add_argument("message")
    text_cmd.set_defaults(build=build_text)

    json_cmd = sub.add_parser("json", help="Send a raw JSON message")
    json_cmd.add_argument("raw")
    json_cmd.set_defaults(build=build_json)

    return parser


def deliver(message: Message, args: argparse.Namespace) -> int:
    cfg = load_config()
    if args.bus:
        from .bus import send_via_bus

        return send_via_bus(message, cfg.bus)

    client = OsdClient(
        path=args.pipe or cfg.channel.path,
        attempts=cfg.client.attempts,
        retry_delay_s=cfg.client.retry_delay_ms / 1000,
        settle_delay_s=cfg.client.settle_delay_ms / 1000,
    )
    return client.send(message).bytes_sent


def main(argv: list[str] | None = None) -> int:
    configure_logging(console=False, filename="osd-client.log")
    logger = get_logger("client")
    parser = build_parser()
    args = parser.parse_args(argv)

    message = args.build(args)
    try:
        encode_message(message)
    except (MalformedMessage, OversizedFrame) as exc:
        print(f"error: invalid message: {exc}", file=sys.stderr)
        return EXIT_INVALID

    try:
        sent = deliver(message, args)
    except DeliveryFailed as exc:
        logger.warning("delivery failed: %s", exc, extra={"event": "delivery_failed"})
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_DELIVERY_FAILED

    logger.debug("sent %s message (%d bytes)", message.kind.value, sent)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
