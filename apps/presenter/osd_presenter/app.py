"""Presenter runtime: OSD window, Qt timer scheduler, and channel polling loop."""

from __future__ import annotations

import signal
import sys
from typing import Callable

from PySide6.QtCore import QObject, QTimer, Qt
from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QApplication, QLabel, QProgressBar, QVBoxLayout, QWidget

from osd_core import ChannelReader, DisplayStateMachine, OsdConfig, load_config
from osd_core.logging_setup import configure_logging, get_logger, install_crash_hooks
from osd_protocol import ChannelTransport, MessageKind
from osd_protocol.models import ChannelSetupError

PROGRESS_STEPS = 1000

_STYLE = """
QWidget#osd { background-color: rgba(20, 20, 20, 235); border-radius: 12px; }
QLabel { color: #f0f0f0; font-size: 18px; }
QLabel#caption { color: #bdbdbd; font-size: 13px; }
QProgressBar { border: none; background-color: #3a3a3a; border-radius: 4px; height: 10px; }
QProgressBar::chunk { background-color: #e0e0e0; border-radius: 4px; }
QProgressBar[muted="true"]::chunk { background-color: #7a7a7a; }
"""


def scale_progress(value: int, max_value: int) -> int:
    """Map ``value / max_value`` onto the bar's 0..PROGRESS_STEPS range."""
    if max_value <= 0:
        return 0
    ratio = max(0.0, min(1.0, value / max_value))
    return int(round(ratio * PROGRESS_STEPS))


class OsdWindow(QWidget):
    """Frameless, non-focusable overlay anchored to the bottom centre of the screen."""

    def __init__(self, width: int = 600, margin_bottom: int = 50, opacity: float = 0.8) -> None:
        super().__init__(None)
        self.setObjectName("osd")
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
            | Qt.WindowType.WindowDoesNotAcceptFocus
        )
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating)
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground)
        self.setWindowOpacity(opacity)
        self.setStyleSheet(_STYLE)
        self.setFixedWidth(width)
        self._margin_bottom = margin_bottom

        self.caption = QLabel(self)
        self.caption.setObjectName("caption")
        self.caption.setAlignment(Qt.AlignmentFlag.AlignCenter)

        self.progress = QProgressBar(self)
        self.progress.setRange(0, PROGRESS_STEPS)
        self.progress.setTextVisible(False)

        self.label = QLabel(self)
        self.label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.label.setWordWrap(True)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(20, 14, 20, 14)
        layout.setSpacing(8)
        layout.addWidget(self.caption)
        layout.addWidget(self.progress)
        layout.addWidget(self.label)

        self.caption.hide()
        self.progress.hide()
        self.label.hide()

    def _anchor(self) -> None:
        screen = self.screen() or QGuiApplication.primaryScreen()
        if screen is None:
            return
        self.adjustSize()
        area = screen.availableGeometry()
        x = area.x() + (area.width() - self.width()) // 2
        y = area.y() + area.height() - self.height() - self._margin_bottom
        self.move(x, y)

    def _present(self) -> None:
        self._anchor()
        if not self.isVisible():
            self.show()
        self.raise_()

    def show_progress(self, kind: MessageKind, value: int, max_value: int, muted: bool, device: str | None) -> None:
        self.caption.setText(device or "")
        self.caption.setVisible(bool(device))
        self.progress.setProperty("muted", bool(muted))
        self.progress.style().unpolish(self.progress)
        self.progress.style().polish(self.progress)
        self.progress.setValue(scale_progress(value, max_value))
        self.progress.setToolTip(kind.value)
        self.progress.show()
        self.label.hide()
        self._present()

    def show_text(self, text: str) -> None:
        self.caption.hide()
        self.progress.hide()
        self.label.setText(text)
        self.label.show()
        self._present()

    def hide_surface(self) -> None:
        self.hide()


class QtTimerScheduler:
    """One single-shot QTimer per token, all owned by ``parent`` on the GUI thread."""

    def __init__(self, parent: QObject | None = None) -> None:
        self._parent = parent
        self._next = 1
        self._timers: dict[int, QTimer] = {}

    @property
    def pending(self) -> int:
        return len(self._timers)

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> int:
        token = self._next
        self._next += 1
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.timeout.connect(lambda: self._fire(token, callback))
        self._timers[token] = timer
        timer.start(max(0, int(delay_ms)))
        return token

    def _fire(self, token: int, callback: Callable[[], None]) -> None:
        timer = self._timers.pop(token, None)
        if timer is None:
            return
        timer.deleteLater()
        callback()

    def cancel(self, token: int) -> bool:
        timer = self._timers.pop(token, None)
        if timer is None:
            return False
        timer.stop()
        timer.deleteLater()
        return True


class PresenterRuntime(QObject):
    """Wires the channel reader and the bus endpoint into the display state machine."""

    def __init__(self, config: OsdConfig, window: OsdWindow, app: QApplication | None = None) -> None:
        super().__init__()
        self.config = config
        self.window = window
        self.app = app
        self.logger = get_logger("presenter")
        self.scheduler = QtTimerScheduler(self)
        self.display = DisplayStateMachine(window, self.scheduler)
        self.transport = ChannelTransport(path=config.channel.path, mode=config.channel.mode)
        self.reader = ChannelReader(
            self.transport,
            self.display.apply,
            max_reads_per_tick=config.channel.max_reads_per_tick,
        )
        self.bus = None
        self.exit_code = 0

        self._timer = QTimer(self)
        self._timer.setInterval(config.channel.poll_ms)
        self._timer.timeout.connect(self._tick)

    def start(self) -> None:
        self.reader.start()
        if self.config.bus.enabled:
            from .bus import register_bus_service

            self.bus = register_bus_service(self.display, self.config.bus, parent=self)
        self._timer.start()
        self.logger.info(
            "presenter listening on %s",
            self.reader.status.path,
            extra={"event": "listening", "bus": self.bus is not None},
        )

    def _tick(self) -> None:
        try:
            self.reader.poll()
        except ChannelSetupError as exc:
            self.logger.error("channel lost: %s", exc, extra={"event": "channel_failed"})
            self._timer.stop()
            self.exit_code = 1
            if self.app is not None:
                self.app.exit(1)

    def shutdown(self) -> None:
        self._timer.stop()
        self.reader.stop()
        if self.bus is not None:
            self.bus.unregister()


def run_presenter(config: OsdConfig | None = None) -> int:
    cfg = config or load_config()
    configure_logging(keep_files=cfg.diagnostics.keep_log_files)
    install_crash_hooks()
    logger = get_logger()

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName("wayland-osd")
    app.setQuitOnLastWindowClosed(False)

    window = OsdWindow(
        width=cfg.window.width,
        margin_bottom=cfg.window.margin_bottom,
        opacity=cfg.window.opacity,
    )
    runtime = PresenterRuntime(cfg, window, app)
    try:
        runtime.start()
    except ChannelSetupError as exc:
        logger.error("cannot set up channel: %s", exc, extra={"event": "setup_failed"})
        print(f"error: {exc}", file=sys.stderr)
        return 1

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    signal.signal(signal.SIGTERM, lambda *_: app.quit())

    exit_code = app.exec()
    runtime.shutdown()
    logger.info("presenter shutdown", extra={"event": "shutdown", "exit_code": int(exit_code)})
    return int(exit_code or runtime.exit_code)
