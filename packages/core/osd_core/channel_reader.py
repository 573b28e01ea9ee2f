"""Cooperative channel reader: polls the transport, frames bytes, applies messages."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from osd_protocol import WOULD_BLOCK, ChannelTransport, FrameDecoder, decode_frame
from osd_protocol.models import (
    ChannelSetupError,
    ChannelState,
    DecodeStats,
    MalformedMessage,
    Message,
    OsdError,
    OversizedFrame,
    UnknownMessageKind,
)

logger = logging.getLogger("wayland_osd.channel")

MessageHandler = Callable[[Message], Any]


@dataclass
class ChannelStatus:
    state: ChannelState = ChannelState.CLOSED
    path: str | None = None
    writer_seen: bool = False
    last_error: str | None = None
    backoff_seconds: float = 0.0
    recovery_attempts: int = 0


class ChannelReader:
    """Drives transport -> decoder -> handler from a scheduler tick.

    ``poll`` never blocks and never raises for bad input; at most
    ``max_reads_per_tick`` reads are done per call so a busy producer cannot
    starve the event loop. End of stream keeps the same descriptor open.
    """

    def __init__(
        self,
        transport: ChannelTransport,
        handler: MessageHandler,
        max_reads_per_tick: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.handler = handler
        self.max_reads_per_tick = max(1, max_reads_per_tick)
        self.decoder = FrameDecoder(on_error=self._on_frame_error)
        self.stats = DecodeStats()
        self._status = ChannelStatus(path=transport.path)
        self._clock = clock
        self._next_attempt_at = 0.0

        self._max_recover_attempts = 5
        self._backoff_base = 0.25
        self._backoff_cap = 4.0

    @property
    def status(self) -> ChannelStatus:
        return self._status

    def _log_event(self, event: str, **fields: Any) -> None:
        row = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "state": self._status.state.value,
        }
        row.update(fields)
        # `doctor --export` reads these rows back out of the JSON log.
        logger.info("channel %s", event, extra={"event": f"channel_{event}", "channel": row})

    def start(self) -> None:
        """Create and open the channel; ChannelSetupError here is fatal to the caller."""
        try:
            endpoint = self.transport.open()
        except ChannelSetupError as exc:
            self._status.state = ChannelState.FAILED
            self._status.last_error = str(exc)
            self._log_event("open_error", error=str(exc))
            raise
        self._status.state = ChannelState.LISTENING
        self._status.path = endpoint.path
        self._status.last_error = None
        self._log_event("open_ok", path=endpoint.path)

    def stop(self) -> None:
        self.transport.close()
        self.decoder.reset()
        self._status.state = ChannelState.CLOSED
        self._log_event("closed")

    def _on_frame_error(self, error: OsdError) -> None:
        if isinstance(error, OversizedFrame):
            self.stats.oversized += 1
            self._log_event("frame_oversized", size=error.size)
        else:
            self.stats.malformed += 1
            self._log_event("frame_malformed", error=str(error))

    def _dispatch(self, frame: bytes) -> None:
        self.stats.frames += 1
        try:
            message = decode_frame(frame)
        except UnknownMessageKind as exc:
            self.stats.unknown += 1
            logger.warning("unknown message kind %r dropped", exc.kind, extra={"event": "frame_unknown"})
            self._log_event("frame_unknown", kind=exc.kind)
            return
        except MalformedMessage as exc:
            self.stats.malformed += 1
            logger.warning("malformed frame dropped: %s", exc, extra={"event": "frame_malformed"})
            self._log_event("frame_malformed", error=str(exc))
            return
        self.stats.messages += 1
        self.handler(message)

    def _schedule_recovery(self, error: str) -> None:
        self.transport.close()
        self.decoder.reset()
        attempt = self._status.recovery_attempts + 1
        if attempt > self._max_recover_attempts:
            self._status.state = ChannelState.FAILED
            self._log_event("recover_failed", error=error)
            raise ChannelSetupError(f"channel recovery failed after {self._max_recover_attempts} attempts: {error}")

        delay = min(self._backoff_cap, self._backoff_base * (2 ** (attempt - 1)))
        wait_for = delay + random.uniform(0.0, 0.15)
        self._status.state = ChannelState.REOPENING
        self._status.last_error = error
        self._status.recovery_attempts = attempt
        self._status.backoff_seconds = wait_for
        self._next_attempt_at = self._clock() + wait_for
        logger.warning("channel read failed (%s); reopening in %.2fs", error, wait_for, extra={"event": "channel_error"})
        self._log_event("recover_wait", attempt=attempt, wait_s=wait_for)

    def _try_reopen(self) -> bool:
        if self._clock() < self._next_attempt_at:
            return False
        try:
            self.transport.reopen()
        except ChannelSetupError as exc:
            self._schedule_recovery(str(exc))
            return False
        self._status.state = ChannelState.LISTENING
        self._status.recovery_attempts = 0
        self._status.backoff_seconds = 0.0
        self._status.last_error = None
        self._log_event("recover_ok")
        return True

    def poll(self) -> int:
        """One scheduler tick; returns the number of frames completed."""
        if self._status.state == ChannelState.REOPENING and not self._try_reopen():
            return 0
        if not self.transport.is_open:
            return 0

        completed = 0
        for _ in range(self.max_reads_per_tick):
            try:
                data = self.transport.read_available()
            except OSError as exc:
                self._schedule_recovery(exc.strerror or str(exc))
                return completed

            if data is WOULD_BLOCK:
                self._status.state = ChannelState.LISTENING
                self._status.writer_seen = True
                break

            if not data:
                if self._status.state != ChannelState.END_OF_STREAM:
                    self._status.state = ChannelState.END_OF_STREAM
                    self._log_event("eof")
                # Every writer has closed, so a partial frame can never complete.
                self.decoder.reset()
                break

            self._status.state = ChannelState.LISTENING
            self._status.writer_seen = True
            self.stats.bytes_read += len(data)
            frames = self.decoder.feed(data)
            for frame in frames:
                self._dispatch(frame)
            completed += len(frames)

        self.stats.empty_frames = self.decoder.empty_frames
        return completed
