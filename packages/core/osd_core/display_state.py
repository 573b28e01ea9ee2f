"""Debounced show/auto-hide state machine for the notification surface."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, Union

from osd_protocol.models import (
    BrightnessMessage,
    Message,
    MessageKind,
    TextMessage,
    UnknownMessageKind,
    VolumeMessage,
)

from .scheduling import Scheduler

logger = logging.getLogger("wayland_osd.display")

HIDE_AFTER_MS = 3000


class Surface(Protocol):
    def show_progress(self, kind: MessageKind, value: int, max_value: int, muted: bool, device: str | None) -> None: ...

    def show_text(self, text: str) -> None: ...

    def hide_surface(self) -> None: ...


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Visible:
    kind: MessageKind
    payload: Message
    timer: int | None = None


DisplayState = Union[Idle, Visible]


@dataclass
class DisplayStats:
    applied: int = 0
    shown: int = 0
    rearmed: int = 0
    hidden: int = 0
    unknown: int = 0
    stale_timers: int = 0
    kind_counts: dict[str, int] = field(default_factory=dict)


class DisplayStateMachine:
    """Single mutator of the presented content.

    Must only be driven from the scheduler's own thread. At most one hide
    timer is pending at a time, and its token lives in the current
    ``Visible`` state; a timer whose token no longer matches is ignored.
    """

    def __init__(self, surface: Surface, scheduler: Scheduler, hide_after_ms: int = HIDE_AFTER_MS) -> None:
        self.surface = surface
        self.scheduler = scheduler
        self.hide_after_ms = hide_after_ms
        self.stats = DisplayStats()
        self._state: DisplayState = Idle()

    @property
    def state(self) -> DisplayState:
        return self._state

    @property
    def visible(self) -> bool:
        return isinstance(self._state, Visible)

    def _render(self, message: Message) -> None:
        if isinstance(message, (VolumeMessage, BrightnessMessage)):
            muted = message.muted if isinstance(message, VolumeMessage) else False
            device = message.device if isinstance(message, VolumeMessage) else None
            self.surface.show_progress(message.kind, message.value, message.max_value, muted, device)
            return
        if isinstance(message, TextMessage):
            self.surface.show_text(message.text)

    def apply(self, message: Message) -> bool:
        """Apply one decoded message; returns False when it was ignored."""
        kind = getattr(message, "kind", None)
        if not isinstance(message, (VolumeMessage, BrightnessMessage, TextMessage)):
            self.stats.unknown += 1
            label = kind.value if isinstance(kind, MessageKind) else type(message).__name__
            logger.warning("ignored message: %s", UnknownMessageKind(label), extra={"event": "message_ignored"})
            return False

        previous = self._state
        if isinstance(previous, Visible) and previous.timer is not None:
            if not self.scheduler.cancel(previous.timer):
                logger.debug("hide timer %s already fired", previous.timer)

        self._render(message)

        token: int | None = None

        def expire() -> None:
            self._expire(token)

        token = self.scheduler.schedule(self.hide_after_ms, expire)
        self._state = Visible(kind=message.kind, payload=message, timer=token)

        self.stats.applied += 1
        self.stats.kind_counts[message.kind.value] = self.stats.kind_counts.get(message.kind.value, 0) + 1
        if isinstance(previous, Visible):
            self.stats.rearmed += 1
        else:
            self.stats.shown += 1
            logger.info("surface shown (%s)", message.kind.value, extra={"event": "shown"})
        return True

    def _expire(self, token: int | None) -> None:
        state = self._state
        if not isinstance(state, Visible) or state.timer != token:
            self.stats.stale_timers += 1
            logger.debug("stale hide timer %s ignored", token)
            return
        self.surface.hide_surface()
        self._state = Idle()
        self.stats.hidden += 1
        logger.info("surface hidden", extra={"event": "hidden"})
