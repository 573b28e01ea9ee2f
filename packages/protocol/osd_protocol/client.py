"""Producer-side message encoder that writes frames into the presenter channel."""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import time
from dataclasses import dataclass

from .codec import frame_message
from .models import DEFAULT_CHANNEL_PATH, DeliveryFailed, Message

logger = logging.getLogger("wayland_osd.client")

# No reader holds the FIFO open yet, or the presenter has not created it.
_RETRYABLE = (errno.ENXIO, errno.ENOENT)


@dataclass
class DeliveryStats:
    bytes_sent: int = 0
    attempts: int = 0
    duration_s: float = 0.0


class OsdClient:
    def __init__(
        self,
        path: str = DEFAULT_CHANNEL_PATH,
        attempts: int = 5,
        retry_delay_s: float = 0.05,
        settle_delay_s: float = 0.005,
    ) -> None:
        self.path = path
        self.attempts = max(1, attempts)
        self.retry_delay_s = max(0.0, retry_delay_s)
        self.settle_delay_s = max(0.0, settle_delay_s)

    def _open_writer(self) -> tuple[int, int]:
        last_error: OSError | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                # O_NONBLOCK turns "no reader" into ENXIO instead of hanging.
                fd = os.open(self.path, os.O_WRONLY | os.O_NONBLOCK)
            except OSError as exc:
                if exc.errno not in _RETRYABLE:
                    raise DeliveryFailed(f"cannot open {self.path}: {exc.strerror}") from exc
                last_error = exc
                logger.debug("channel not ready (attempt %d/%d): %s", attempt, self.attempts, exc.strerror)
                if attempt < self.attempts:
                    time.sleep(self.retry_delay_s)
                continue

            flags = fcntl.fcntl(fd, fcntl.F_GETFL)
            fcntl.fcntl(fd, fcntl.F_SETFL, flags & ~os.O_NONBLOCK)
            return fd, attempt

        reason = last_error.strerror if last_error is not None else "unknown error"
        raise DeliveryFailed(f"no presenter listening on {self.path} after {self.attempts} attempts: {reason}")

    def send_bytes(self, frame: bytes) -> DeliveryStats:
        """Write one already-delimited frame with a single write call."""
        start = time.perf_counter()
        fd, attempts = self._open_writer()
        try:
            with os.fdopen(fd, "wb", buffering=0) as pipe:
                try:
                    written = pipe.write(frame)
                    pipe.flush()
                except BrokenPipeError as exc:
                    raise DeliveryFailed(f"presenter closed {self.path} during write") from exc
                except OSError as exc:
                    raise DeliveryFailed(f"write to {self.path} failed: {exc.strerror}") from exc
        except OSError as exc:
            raise DeliveryFailed(f"closing {self.path} failed: {exc.strerror}") from exc

        if written != len(frame):
            raise DeliveryFailed(f"short write to {self.path}: {written}/{len(frame)} bytes")

        if self.settle_delay_s:
            time.sleep(self.settle_delay_s)

        stats = DeliveryStats(bytes_sent=written, attempts=attempts, duration_s=time.perf_counter() - start)
        logger.debug("delivered %d bytes in %d attempt(s)", stats.bytes_sent, stats.attempts)
        return stats

    def send(self, message: Message) -> DeliveryStats:
        # Validation and size checks happen before any I/O.
        return self.send_bytes(frame_message(message))
