import os
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "apps" / "presenter"))
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

try:
    from PySide6.QtCore import QCoreApplication
    from PySide6.QtWidgets import QApplication
except ImportError:  # pragma: no cover - depends on the environment
    QApplication = None

from osd_protocol.models import MessageKind, TextMessage, VolumeMessage

if QApplication is not None:
    from osd_core.display_state import DisplayStateMachine
    from osd_presenter.app import OsdWindow, QtTimerScheduler, scale_progress


@unittest.skipIf(QApplication is None, "PySide6 not installed")
class OsdWindowTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = QApplication.instance() or QApplication([])

    def test_scale_progress(self):
        self.assertEqual(scale_progress(50, 100), 500)
        self.assertEqual(scale_progress(150, 100), 1000)
        self.assertEqual(scale_progress(-5, 100), 0)
        self.assertEqual(scale_progress(1, 0), 0)

    def test_progress_then_text(self):
        window = OsdWindow(width=400)
        window.show_progress(MessageKind.VOLUME, 25, 100, True, "Headset")
        self.assertTrue(window.isVisible())
        self.assertEqual(window.progress.value(), 250)
        self.assertEqual(window.caption.text(), "Headset")
        self.assertTrue(window.progress.property("muted"))
        self.assertFalse(window.label.isVisible())

        window.show_text("Caps Lock on")
        self.assertEqual(window.label.text(), "Caps Lock on")
        self.assertFalse(window.progress.isVisible())
        self.assertFalse(window.caption.isVisible())

        window.hide_surface()
        self.assertFalse(window.isVisible())
        window.deleteLater()

    def test_qt_scheduler_cancel(self):
        scheduler = QtTimerScheduler()
        fired = []
        token = scheduler.schedule(5000, lambda: fired.append(token))
        self.assertEqual(scheduler.pending, 1)
        self.assertTrue(scheduler.cancel(token))
        self.assertFalse(scheduler.cancel(token))
        self.assertEqual(scheduler.pending, 0)

    def test_zero_delay_timer_fires_through_event_loop(self):
        scheduler = QtTimerScheduler()
        window = OsdWindow()
        machine = DisplayStateMachine(window, scheduler, hide_after_ms=0)
        machine.apply(TextMessage(text="flash"))
        self.assertTrue(window.isVisible())

        for _ in range(20):
            QCoreApplication.processEvents()
            if not machine.visible:
                break
        self.assertFalse(machine.visible)
        self.assertFalse(window.isVisible())
        machine.apply(VolumeMessage(value=1, max_value=2))
        window.deleteLater()


if __name__ == "__main__":
    unittest.main()
