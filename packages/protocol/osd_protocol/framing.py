"""Incremental NUL-delimited frame decoder."""

from __future__ import annotations

import logging
from typing import Callable

from .models import DELIMITER, MAX_MESSAGE_SIZE, MalformedMessage, OsdError, OversizedFrame

logger = logging.getLogger("wayland_osd.framing")

ErrorCallback = Callable[[OsdError], None]


class FrameDecoder:
    """Turns arbitrarily chunked bytes into complete frames.

    Only bytes after the last delimiter of a chunk are kept between calls, in a
    single pending buffer that never grows past ``max_size``. When a frame
    overflows, everything up to its closing delimiter is skipped and decoding
    resumes with the next frame.
    """

    def __init__(self, max_size: int = MAX_MESSAGE_SIZE, on_error: ErrorCallback | None = None) -> None:
        self.max_size = max_size
        self.on_error = on_error
        self._pending = bytearray()
        self._discarding = False
        self.frames_emitted = 0
        self.oversized_frames = 0
        self.empty_frames = 0

    @property
    def pending_size(self) -> int:
        return len(self._pending)

    @property
    def discarding(self) -> bool:
        return self._discarding

    def _report(self, error: OsdError) -> None:
        logger.warning("frame dropped: %s", error, extra={"event": "frame_dropped"})
        if self.on_error is not None:
            self.on_error(error)

    def _overflow(self, size: int) -> None:
        self._pending.clear()
        self._discarding = True
        self.oversized_frames += 1
        self._report(OversizedFrame(size, self.max_size))

    def _complete(self, data: bytes, start: int, end: int) -> bytes | None:
        if self._discarding:
            self._discarding = False
            return None

        run = end - start
        if len(self._pending) + run > self.max_size:
            self._overflow(len(self._pending) + run)
            self._discarding = False
            return None

        if self._pending:
            self._pending += data[start:end]
            frame = bytes(self._pending)
            self._pending.clear()
        else:
            frame = data[start:end]

        if not frame:
            self.empty_frames += 1
            return None
        self.frames_emitted += 1
        return frame

    def feed(self, data: bytes) -> list[bytes]:
        """Consume one chunk and return every frame it completed, in order."""
        frames: list[bytes] = []
        start = 0
        length = len(data)

        while start < length:
            idx = data.find(DELIMITER, start)
            if idx < 0:
                break
            frame = self._complete(data, start, idx)
            if frame is not None:
                frames.append(frame)
            start = idx + 1

        # Bytes of an overflowed frame are skipped until its delimiter.
        if start < length and not self._discarding:
            tail = length - start
            if len(self._pending) + tail > self.max_size:
                self._overflow(len(self._pending) + tail)
            else:
                self._pending += data[start:]

        return frames

    def reset(self) -> int:
        """Drop any partial frame; returns the number of bytes thrown away."""
        dropped = len(self._pending)
        if dropped and not self._discarding:
            self._report(MalformedMessage(f"truncated frame of {dropped} bytes at end of stream"))
        self._pending.clear()
        self._discarding = False
        return dropped
