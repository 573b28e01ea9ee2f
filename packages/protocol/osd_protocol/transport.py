"""Named-pipe channel transport for the presenter side."""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from .models import DEFAULT_CHANNEL_PATH, ChannelSetupError, Endpoint

logger = logging.getLogger("wayland_osd.channel")

READ_CHUNK = 4096
DEFAULT_MODE = 0o622


class _WouldBlock:
    """Marker returned when a writer is attached but no bytes are buffered."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "WOULD_BLOCK"


WOULD_BLOCK = _WouldBlock()


@dataclass
class FifoConfig:
    path: str = DEFAULT_CHANNEL_PATH
    mode: int = DEFAULT_MODE
    read_chunk: int = READ_CHUNK


class ChannelTransport:
    """Owns the FIFO artifact and a non-blocking read descriptor on it.

    ``read_available`` never blocks: it returns the bytes that were ready,
    ``b""`` at end of stream (no writer currently holds the pipe), or
    ``WOULD_BLOCK`` when a writer is connected but nothing is buffered.
    """

    def __init__(self, path: str = DEFAULT_CHANNEL_PATH, mode: int = DEFAULT_MODE, read_chunk: int = READ_CHUNK) -> None:
        self.config = FifoConfig(path=path, mode=mode, read_chunk=read_chunk)
        self._endpoint: Endpoint | None = None

    @property
    def path(self) -> str:
        return self.config.path

    @property
    def endpoint(self) -> Endpoint | None:
        return self._endpoint

    @property
    def is_open(self) -> bool:
        return self._endpoint is not None

    def _remove_stale(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except IsADirectoryError as exc:
            raise ChannelSetupError(f"cannot remove stale channel {path}: is a directory") from exc
        except OSError as exc:
            raise ChannelSetupError(f"cannot remove stale channel {path}: {exc.strerror}") from exc
        logger.info("removed stale channel artifact %s", path, extra={"event": "channel_stale_removed"})

    def create(self) -> None:
        """Recreate the FIFO at the configured path with explicit permissions."""
        path = Path(self.config.path)
        self._remove_stale(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            os.mkfifo(path, self.config.mode)
            # mkfifo honours the umask, which usually strips group/other write.
            os.chmod(path, self.config.mode)
        except OSError as exc:
            raise ChannelSetupError(f"cannot create channel {path}: {exc.strerror or exc}") from exc

    def _open_fd(self) -> Endpoint:
        path = self.config.path
        try:
            st = os.stat(path)
        except OSError as exc:
            raise ChannelSetupError(f"cannot stat channel {path}: {exc.strerror}") from exc
        if not stat.S_ISFIFO(st.st_mode):
            raise ChannelSetupError(f"channel {path} is not a FIFO")
        try:
            fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as exc:
            raise ChannelSetupError(f"cannot open channel {path}: {exc.strerror}") from exc
        self._endpoint = Endpoint(path=path, fd=fd)
        return self._endpoint

    def open(self) -> Endpoint:
        if self._endpoint is not None:
            return self._endpoint
        self.create()
        endpoint = self._open_fd()
        logger.info(
            "channel listening on %s (mode %s)",
            endpoint.path,
            oct(self.config.mode),
            extra={"event": "channel_open"},
        )
        return endpoint

    def reopen(self) -> Endpoint:
        """Close the descriptor and open the artifact again, recreating it only if it is gone."""
        self.close()
        if not os.path.exists(self.config.path):
            self.create()
        endpoint = self._open_fd()
        logger.info("channel reopened on %s", endpoint.path, extra={"event": "channel_reopen"})
        return endpoint

    def read_available(self, endpoint: Endpoint | None = None) -> bytes | _WouldBlock:
        ep = endpoint or self._endpoint
        if ep is None:
            raise RuntimeError("Channel is not open")
        try:
            return os.read(ep.fd, self.config.read_chunk)
        except BlockingIOError:
            return WOULD_BLOCK

    def close(self) -> None:
        """Close the read descriptor; the artifact itself is left in place."""
        if self._endpoint is not None:
            try:
                os.close(self._endpoint.fd)
            finally:
                self._endpoint = None
