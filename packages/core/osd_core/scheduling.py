"""Token-based timer scheduling used by the display state machine."""

from __future__ import annotations

import heapq
import itertools
from typing import Callable, Protocol

TimerCallback = Callable[[], None]


class Scheduler(Protocol):
    def schedule(self, delay_ms: int, callback: TimerCallback) -> int:
        """Arm a one-shot timer and return its token."""

    def cancel(self, token: int) -> bool:
        """Drop a pending timer; False if it already fired or was never armed."""


class VirtualScheduler:
    """Deterministic scheduler driven by an explicit virtual clock."""

    def __init__(self) -> None:
        self.now_ms = 0
        self._tokens = itertools.count(1)
        self._seq = itertools.count()
        self._queue: list[tuple[int, int, int]] = []
        self._callbacks: dict[int, TimerCallback] = {}

    @property
    def pending(self) -> int:
        return len(self._callbacks)

    def schedule(self, delay_ms: int, callback: TimerCallback) -> int:
        token = next(self._tokens)
        self._callbacks[token] = callback
        heapq.heappush(self._queue, (self.now_ms + max(0, int(delay_ms)), next(self._seq), token))
        return token

    def cancel(self, token: int) -> bool:
        return self._callbacks.pop(token, None) is not None

    def advance(self, ms: int) -> int:
        """Move the clock forward, firing due timers in order; returns how many fired."""
        deadline = self.now_ms + max(0, int(ms))
        fired = 0
        while self._queue and self._queue[0][0] <= deadline:
            due, _seq, token = heapq.heappop(self._queue)
            callback = self._callbacks.pop(token, None)
            if callback is None:
                continue
            self.now_ms = due
            callback()
            fired += 1
        self.now_ms = deadline
        return fired
