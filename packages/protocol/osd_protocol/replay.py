"""Replay/analysis utilities for captured channel byte streams."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from .codec import decode_frame
from .framing import FrameDecoder
from .models import MalformedMessage, OsdError, OversizedFrame, UnknownMessageKind


_HEX_CLEAN = re.compile(r"[^0-9a-fA-F]")


@dataclass(frozen=True)
class CaptureChunk:
    index: int
    payload: bytes


@dataclass
class ReplayReport:
    total_chunks: int = 0
    raw_bytes_total: int = 0
    frames: int = 0
    messages: int = 0
    oversized: int = 0
    malformed: int = 0
    unknown: int = 0
    truncated_tail_bytes: int = 0
    kind_counts: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class ReplayRunner:
    """Feeds a capture through the frame decoder and wire codec.

    A capture is either a JSONL transcript (one ``{"payload_hex": ...}`` object
    per read, ``.jsonl`` suffix) or a raw byte dump that is cut into
    ``chunk_size`` reads.
    """

    def __init__(self, chunk_size: int = 4096) -> None:
        self.chunk_size = max(1, chunk_size)

    @staticmethod
    def _decode_hex(value: str) -> bytes:
        cleaned = _HEX_CLEAN.sub("", value)
        if len(cleaned) % 2 == 1:
            cleaned = cleaned[:-1]
        if not cleaned:
            return b""
        return bytes.fromhex(cleaned)

    def _parse_line(self, index: int, line: str) -> CaptureChunk | None:
        stripped = line.strip()
        if not stripped:
            return None
        obj = json.loads(stripped)
        hex_value = obj.get("payload_hex") or obj.get("hex") or ""
        return CaptureChunk(index=index, payload=self._decode_hex(str(hex_value)))

    def parse(self, capture_path: Path) -> list[CaptureChunk]:
        if capture_path.suffix == ".jsonl":
            chunks: list[CaptureChunk] = []
            for idx, line in enumerate(capture_path.read_text(encoding="utf-8").splitlines(), start=1):
                chunk = self._parse_line(idx, line)
                if chunk is not None:
                    chunks.append(chunk)
            return chunks

        data = capture_path.read_bytes()
        return [
            CaptureChunk(index=i + 1, payload=data[offset : offset + self.chunk_size])
            for i, offset in enumerate(range(0, len(data), self.chunk_size))
        ]

    def run_chunks(self, chunks: list[CaptureChunk]) -> ReplayReport:
        report = ReplayReport(total_chunks=len(chunks))

        def on_error(error: OsdError) -> None:
            if isinstance(error, OversizedFrame):
                report.oversized += 1
            report.errors.append(str(error))

        decoder = FrameDecoder(on_error=on_error)
        for chunk in chunks:
            report.raw_bytes_total += len(chunk.payload)
            for frame in decoder.feed(chunk.payload):
                report.frames += 1
                try:
                    message = decode_frame(frame)
                except UnknownMessageKind as exc:
                    report.unknown += 1
                    report.errors.append(str(exc))
                    continue
                except MalformedMessage as exc:
                    report.malformed += 1
                    report.errors.append(str(exc))
                    continue
                report.messages += 1
                kind = message.kind.value
                report.kind_counts[kind] = report.kind_counts.get(kind, 0) + 1

        report.truncated_tail_bytes = decoder.pending_size
        if decoder.reset():
            report.malformed += 1
        return report

    def run(self, capture_path: Path) -> ReplayReport:
        return self.run_chunks(self.parse(capture_path))
