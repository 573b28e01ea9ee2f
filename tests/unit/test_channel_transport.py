import os
import stat
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

from osd_protocol.client import OsdClient
from osd_protocol.codec import decode_frame
from osd_protocol.models import ChannelSetupError, DeliveryFailed, OversizedFrame, TextMessage, VolumeMessage
from osd_protocol.transport import WOULD_BLOCK, ChannelTransport


@unittest.skipUnless(hasattr(os, "mkfifo"), "named pipes required")
class ChannelTransportTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = str(Path(self._tmp.name) / "osd.pipe")
        self.transport = ChannelTransport(path=self.path, mode=0o622)

    def tearDown(self):
        self.transport.close()
        self._tmp.cleanup()

    def test_open_creates_fifo_with_mode(self):
        endpoint = self.transport.open()
        st = os.stat(self.path)
        self.assertTrue(stat.S_ISFIFO(st.st_mode))
        self.assertEqual(stat.S_IMODE(st.st_mode), 0o622)
        self.assertEqual(endpoint.path, self.path)
        self.assertIs(self.transport.open(), endpoint)

    def test_open_replaces_stale_regular_file(self):
        Path(self.path).write_text("stale", encoding="utf-8")
        self.transport.open()
        self.assertTrue(stat.S_ISFIFO(os.stat(self.path).st_mode))

    def test_unremovable_artifact_is_setup_error(self):
        os.mkdir(self.path)
        with self.assertRaises(ChannelSetupError):
            self.transport.open()

    def test_missing_parent_is_created(self):
        nested = str(Path(self._tmp.name) / "run" / "osd.pipe")
        transport = ChannelTransport(path=nested)
        try:
            transport.open()
            self.assertTrue(stat.S_ISFIFO(os.stat(nested).st_mode))
        finally:
            transport.close()

    def test_read_without_writer_is_end_of_stream(self):
        self.transport.open()
        self.assertEqual(self.transport.read_available(), b"")

    def test_connected_idle_writer_would_block(self):
        self.transport.open()
        writer = os.open(self.path, os.O_WRONLY | os.O_NONBLOCK)
        try:
            self.assertIs(self.transport.read_available(), WOULD_BLOCK)
            os.write(writer, b"abc\x00")
            self.assertEqual(self.transport.read_available(), b"abc\x00")
        finally:
            os.close(writer)
        self.assertEqual(self.transport.read_available(), b"")

    def test_close_keeps_artifact(self):
        self.transport.open()
        self.transport.close()
        self.assertFalse(self.transport.is_open)
        self.assertTrue(os.path.exists(self.path))

    def test_reopen_recreates_missing_artifact(self):
        self.transport.open()
        os.unlink(self.path)
        endpoint = self.transport.reopen()
        self.assertTrue(self.transport.is_open)
        self.assertTrue(stat.S_ISFIFO(os.stat(endpoint.path).st_mode))


@unittest.skipUnless(hasattr(os, "mkfifo"), "named pipes required")
class OsdClientTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = str(Path(self._tmp.name) / "osd.pipe")

    def tearDown(self):
        self._tmp.cleanup()

    def test_send_delivers_one_delimited_frame(self):
        transport = ChannelTransport(path=self.path)
        transport.open()
        try:
            client = OsdClient(path=self.path, settle_delay_s=0)
            stats = client.send(VolumeMessage(value=55, max_value=100, muted=True))
            data = transport.read_available()
        finally:
            transport.close()

        self.assertEqual(stats.attempts, 1)
        self.assertEqual(stats.bytes_sent, len(data))
        self.assertTrue(data.endswith(b"\x00"))
        self.assertEqual(decode_frame(data[:-1]), VolumeMessage(value=55, max_value=100, muted=True))

    def test_no_reader_fails_after_bounded_attempts(self):
        os.mkfifo(self.path, 0o622)
        client = OsdClient(path=self.path, attempts=3, retry_delay_s=0)
        with self.assertRaises(DeliveryFailed) as ctx:
            client.send(TextMessage(text="nobody home"))
        self.assertIn("3 attempts", str(ctx.exception))

    def test_missing_channel_fails(self):
        client = OsdClient(path=self.path, attempts=2, retry_delay_s=0)
        with self.assertRaises(DeliveryFailed):
            client.send(TextMessage(text="hi"))

    def test_oversized_message_fails_before_opening(self):
        client = OsdClient(path=self.path, attempts=1, retry_delay_s=0)
        with self.assertRaises(OversizedFrame):
            client.send(TextMessage(text="x" * 9000))


if __name__ == "__main__":
    unittest.main()
