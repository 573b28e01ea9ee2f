from __future__ import annotations

import os
from pathlib import Path

import pytest

import osd_client.cli as client_cli
from osd_protocol import ChannelTransport, decode_frame
from osd_protocol.models import DeliveryFailed, TextMessage


@pytest.fixture(autouse=True)
def _isolated_dirs(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    monkeypatch.setenv("WAYLAND_OSD_CONFIG", str(tmp_path / "missing-config.json"))


def test_invalid_json_exits_2(capsys) -> None:
    rc = client_cli.main(["json", "{not json"])
    assert rc == 2
    assert "error:" in capsys.readouterr().err


def test_non_positive_max_exits_2() -> None:
    assert client_cli.main(["brightness", "3", "--max-level", "0"]) == 2


def test_delivery_failure_exits_1(monkeypatch, capsys) -> None:
    def fail(message, args):
        raise DeliveryFailed("no presenter listening")

    monkeypatch.setattr(client_cli, "deliver", fail)
    rc = client_cli.main(["text", "hello"])
    assert rc == 1
    assert "no presenter listening" in capsys.readouterr().err


def test_bus_flag_routes_to_bus(monkeypatch) -> None:
    seen: list[object] = []
    monkeypatch.setattr(client_cli, "deliver", lambda message, args: seen.append((message, args.bus)) or 10)
    assert client_cli.main(["--bus", "text", "hello"]) == 0
    assert seen == [(TextMessage(text="hello"), True)]


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes required")
def test_text_delivered_over_channel(tmp_path: Path) -> None:
    pipe = str(tmp_path / "osd.pipe")
    transport = ChannelTransport(path=pipe)
    transport.open()
    try:
        rc = client_cli.main(["--pipe", pipe, "text", "hello"])
        data = transport.read_available()
    finally:
        transport.close()

    assert rc == 0
    assert decode_frame(data.rstrip(b"\x00")) == TextMessage(text="hello")


def test_unparseable_raw_json_exits_2(capsys) -> None:
    rc = client_cli.main(["json", '{"type":"text","text":"x","value":' + "9" * 5000 + "}"])
    assert rc == 2
    assert "invalid message" in capsys.readouterr().err
