import json
import os
import sys
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest import mock

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from osd_core.config import load_config
from osd_core.diagnostics import (
    DiagnosticsExporter,
    build_doctor_payload,
    channel_report,
    load_channel_events,
    redact,
)
from osd_core.logging_setup import LOG_FILENAME, log_dir


class DiagnosticsTests(unittest.TestCase):
    def setUp(self):
        self._state = tempfile.TemporaryDirectory()
        self._env = mock.patch.dict(os.environ, {"XDG_STATE_HOME": self._state.name})
        self._env.start()

    def tearDown(self):
        self._env.stop()
        self._state.cleanup()

    def test_bundle_exports_zip(self):
        cfg = load_config(Path("/tmp/nonexistent-osd-config.json"))
        doctor = build_doctor_payload(cfg)
        exporter = DiagnosticsExporter()
        events = [{"event": "open_ok", "path": cfg.channel.path}]

        with tempfile.TemporaryDirectory() as tmp:
            bundle = exporter.bundle(cfg=cfg, doctor_payload=doctor, recent_channel_events=events, output_dir=Path(tmp))
            self.assertTrue(bundle.exists())

            with zipfile.ZipFile(bundle, "r") as zf:
                names = set(zf.namelist())
                self.assertIn("manifest.json", names)
                self.assertIn("doctor.json", names)
                self.assertIn("config.redacted.json", names)
                self.assertEqual(json.loads(zf.read("channel_events.json")), events)

    def test_channel_events_are_read_back_from_the_log(self):
        lines = [
            json.dumps({"msg": "presenter started", "event": "presenter_start"}),
            "not json",
            json.dumps({"msg": "channel open_ok", "channel": {"event": "open_ok", "state": "listening"}}),
            json.dumps({"msg": "odd", "channel": "flat string"}),
            json.dumps({"msg": "channel eof", "channel": {"event": "eof", "state": "end_of_stream"}}),
        ]
        (log_dir() / LOG_FILENAME).write_text("\n".join(lines) + "\n", encoding="utf-8")

        events = load_channel_events()
        self.assertEqual([row["event"] for row in events], ["open_ok", "eof"])
        self.assertEqual(load_channel_events(limit=1), [{"event": "eof", "state": "end_of_stream"}])

        cfg = load_config(Path("/tmp/nonexistent-osd-config.json"))
        with tempfile.TemporaryDirectory() as tmp:
            bundle = DiagnosticsExporter().bundle(
                cfg=cfg, doctor_payload={}, recent_channel_events=events, output_dir=Path(tmp)
            )
            with zipfile.ZipFile(bundle, "r") as zf:
                self.assertEqual(json.loads(zf.read("channel_events.json")), events)
                self.assertIn(f"logs/{LOG_FILENAME}", zf.namelist())

    def test_channel_events_without_log_file(self):
        self.assertEqual(load_channel_events(), [])

    def test_bundle_includes_fault_log(self):
        (log_dir() / "fault.log").write_text("Fatal Python error: Segmentation fault\n", encoding="utf-8")
        cfg = load_config(Path("/tmp/nonexistent-osd-config.json"))
        with tempfile.TemporaryDirectory() as tmp:
            bundle = DiagnosticsExporter().bundle(cfg=cfg, doctor_payload={}, output_dir=Path(tmp))
            with zipfile.ZipFile(bundle, "r") as zf:
                self.assertIn("logs/fault.log", zf.namelist())
                self.assertIn(b"Segmentation fault", zf.read("logs/fault.log"))

    def test_doctor_payload_shape(self):
        cfg = load_config(Path("/tmp/nonexistent-osd-config.json"))
        with tempfile.TemporaryDirectory() as tmp:
            cfg.channel.path = str(Path(tmp) / "absent.pipe")
            payload = build_doctor_payload(cfg)
        self.assertFalse(payload["channel"]["exists"])
        self.assertIsInstance(payload["presenters"], list)
        self.assertIn("session_bus", payload)

    @unittest.skipUnless(hasattr(os, "mkfifo"), "named pipes required")
    def test_channel_report_for_fifo(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = str(Path(tmp) / "osd.pipe")
            os.mkfifo(path)
            os.chmod(path, 0o622)
            report = channel_report(path)
        self.assertTrue(report["is_fifo"])
        self.assertEqual(report["mode"], "0o622")

    def test_redact_nested_secrets(self):
        data = {"bus": {"auth_token": "abc", "service_name": "org.wayland.Osd"}, "items": [{"password": "x"}]}
        self.assertEqual(
            redact(data),
            {"bus": {"auth_token": "***REDACTED***", "service_name": "org.wayland.Osd"}, "items": [{"password": "***REDACTED***"}]},
        )


if __name__ == "__main__":
    unittest.main()
