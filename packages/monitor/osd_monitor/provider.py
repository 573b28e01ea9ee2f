"""Default-sink volume provider backed by the ``wpctl`` command line tool."""

from __future__ import annotations

import re
import shutil
import subprocess
from collections import deque
from typing import Iterable

import psutil

from .models import VolumeReading

DEFAULT_SINK = "@DEFAULT_AUDIO_SINK@"

_VOLUME_RE = re.compile(r"Volume:\s*([0-9]*\.?[0-9]+)")
_NODE_NAME_RE = re.compile(r'\bnode\.name\s*=\s*"([^"]*)"')


class RecentCalls:
    """Bounded ring of process ids this monitor spawned itself."""

    def __init__(self, capacity: int = 32) -> None:
        self._items: deque[int] = deque(maxlen=max(1, capacity))

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def add(self, pid: int) -> None:
        self._items.append(pid)

    def __contains__(self, pid: object) -> bool:
        return pid in self._items

    def __len__(self) -> int:
        return len(self._items)


def parse_volume(output: str) -> tuple[int, bool]:
    match = _VOLUME_RE.search(output)
    if not match:
        raise ValueError(f"unexpected wpctl output: {output.strip()!r}")
    return int(round(float(match.group(1)) * 100)), "[MUTED]" in output


def parse_node_name(output: str) -> str | None:
    match = _NODE_NAME_RE.search(output)
    return match.group(1) if match else None


class WpctlVolumeSource:
    def __init__(self, wpctl: str = "wpctl", sink: str = DEFAULT_SINK, timeout_s: float = 2.0) -> None:
        self.wpctl = wpctl
        self.sink = sink
        self.timeout_s = timeout_s

    def available(self) -> bool:
        return shutil.which(self.wpctl) is not None

    def _run(self, args: list[str], recent: RecentCalls) -> str:
        proc = subprocess.Popen(
            [self.wpctl, *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
        )
        recent.add(proc.pid)
        try:
            out, _ = proc.communicate(timeout=self.timeout_s)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            raise
        if proc.returncode != 0:
            raise subprocess.CalledProcessError(proc.returncode, [self.wpctl, *args])
        return out

    def read(self, recent: RecentCalls, with_node_name: bool = False) -> VolumeReading:
        percent, muted = parse_volume(self._run(["get-volume", self.sink], recent))
        node_name = parse_node_name(self._run(["inspect", self.sink], recent)) if with_node_name else None
        return VolumeReading(percent=percent, muted=muted, node_name=node_name)


class ExternalWpctlDetector:
    """Spots ``wpctl`` processes that were not started by this monitor."""

    def __init__(self, process_name: str = "wpctl") -> None:
        self.process_name = process_name
        self._seen: set[int] = set()

    def _candidates(self) -> Iterable[int]:
        for proc in psutil.process_iter(["pid", "name"]):
            if proc.info.get("name") == self.process_name:
                yield proc.pid

    def poll(self, recent: RecentCalls) -> bool:
        current = set(self._candidates())
        fresh = {pid for pid in current - self._seen if pid not in recent}
        self._seen = current
        return bool(fresh)
