"""Tests for the high-level client over a simulated link."""

import logging
import threading
from unittest.mock import MagicMock

import pytest

from cnet_mcp.client import CnetClient
from cnet_mcp.exceptions import InvalidArgumentError, TransportNotReadyError
from cnet_mcp.protocol.framing import build_frame


class LoopbackConnection:
    """Answers each write with the queued replies, fed back in small chunks."""

    def __init__(self, chunk_size=3):
        self.is_open = False
        self.written = []
        self.replies = []
        self._handler = None
        self._chunk_size = chunk_size

    def set_receive_handler(self, handler):
        self._handler = handler

    def open(self):
        self.is_open = True

    def close(self):
        self.is_open = False

    def write(self, data):
        if not self.is_open:
            raise TransportNotReadyError("Serial port is not open")
        self.written.append(bytes(data))
        if self.replies:
            self.receive(self.replies.pop(0))
        return len(data)

    def receive(self, data):
        for i in range(0, len(data), self._chunk_size):
            self._handler(data[i : i + self._chunk_size])


@pytest.fixture
def link():
    conn = LoopbackConnection()
    client = CnetClient(conn, timeout=0.2)
    client.open()
    yield conn, client
    client.close()


def test_registers_receive_handler():
    conn = LoopbackConnection()
    client = CnetClient(conn)
    assert conn._handler == client.feed


def test_read_block(link):
    conn, client = link
    conn.replies.append(build_frame("00RSB01020001000A"))
    assert client.read_block("%MW100", 10) == "00RSB01020001000A"
    assert conn.written == [build_frame("00RSB06%MW10010")]


def test_write_block(link):
    conn, client = link
    conn.replies.append(build_frame("00WSB"))
    assert client.write_block("%MW100", [1, 2]) == "00WSB"
    assert conn.written == [build_frame("00WSB06%MW10002000800010002")]


def test_read_variables(link):
    conn, client = link
    conn.replies.append(build_frame("00RSS02020001020002"))
    assert client.read_variables(["%MW100", "%MW101"]) == "00RSS02020001020002"
    assert conn.written == [build_frame("00RSS0206%MW10006%MW101")]


def test_write_variables(link):
    conn, client = link
    conn.replies.append(build_frame("00WSS"))
    assert client.write_variables({"%MW100": "000A"}) == "00WSS"
    assert conn.written == [build_frame("00WSS0106%MW10004000A")]


def test_write_values(link):
    conn, client = link
    conn.replies.append(build_frame("00WSS"))
    client.write_values({"%MW100": 255}, hex_format=False)
    assert conn.written == [build_frame("00WSS0106%MW10003255")]


def test_station_override(link):
    conn, client = link
    conn.replies.append(build_frame("05RSB"))
    client.read_block("%MW100", 10, station=5)
    assert conn.written == [build_frame("05RSB06%MW10010")]


def test_default_station_padding():
    client = CnetClient(LoopbackConnection(), station="7")
    assert client.station == "07"


def test_timeout_returns_none(link):
    conn, client = link
    assert client.read_block("%MW100", 10, timeout=0.05) is None
    assert not client.busy


def test_noisy_reply(link):
    conn, client = link
    conn.replies.append(b"\xff\x00" + build_frame("00RSB") + b"\x13")
    assert client.request("00RSB06%MW10010") == "00RSB"


def test_exchange_returns_response_frame(link):
    conn, client = link
    reply = build_frame("00RSB")
    conn.replies.append(reply)
    response = client.exchange("00RSB06%MW10010")
    assert response.raw == reply
    assert response.payload == "00RSB"
    assert response.hex.startswith("05 30 30")


def test_unsolicited_frame_goes_to_listener(link):
    conn, client = link
    listener = MagicMock()
    client.add_unsolicited_listener(listener)

    conn.receive(build_frame("00EVT"))

    listener.assert_called_once()
    event = listener.call_args[0][0]
    assert event.payload == "00EVT"
    assert event.hex.startswith("05 30 30 45")


def test_late_reply_is_unsolicited(link):
    conn, client = link
    events = []
    client.add_unsolicited_listener(events.append)
    assert client.request("00RSB06%MW10010", timeout=0.05) is None
    conn.receive(build_frame("00RSB"))
    assert [e.payload for e in events] == ["00RSB"]


def test_remove_listener(link):
    conn, client = link
    events = []
    remove = client.add_unsolicited_listener(events.append)
    remove()
    conn.receive(build_frame("00EVT"))
    assert events == []


def test_failing_listener_does_not_break_receive(link):
    conn, client = link
    events = []
    client.add_unsolicited_listener(MagicMock(side_effect=RuntimeError("boom")))
    client.add_unsolicited_listener(events.append)
    conn.receive(build_frame("00EVT") + build_frame("00EVU"))
    assert [e.payload for e in events] == ["00EVT", "00EVU"]


def test_feed_swallows_overflow():
    conn = LoopbackConnection()
    client = CnetClient(conn, max_buffer_size=8)
    client.feed(b"\x05" + b"A" * 20)
    assert client.buffer.pending_bytes == 0


def test_send_does_not_wait(link):
    conn, client = link
    events = []
    client.add_unsolicited_listener(events.append)
    conn.replies.append(build_frame("00RSB"))
    frame = client.send("00RSB06%MW10010")
    assert frame == build_frame("00RSB06%MW10010")
    assert [e.payload for e in events] == ["00RSB"]


def test_not_open_raises():
    client = CnetClient(LoopbackConnection())
    with pytest.raises(TransportNotReadyError):
        client.read_block("%MW100", 10)


def test_invalid_argument_raises_before_write(link):
    conn, client = link
    with pytest.raises(InvalidArgumentError):
        client.read_variables([])
    assert conn.written == []


def test_context_manager():
    conn = LoopbackConnection()
    with CnetClient(conn) as client:
        assert client.is_open
    assert not conn.is_open


def test_listener_can_feed_received_bytes():
    """A listener that pushes more bytes into the client does not hang the receive thread."""
    conn = LoopbackConnection()
    client = CnetClient(conn)
    payloads = []

    def listener(event):
        payloads.append(event.payload)
        if event.payload == "00EVT":
            client.feed(build_frame("00X"))

    client.add_unsolicited_listener(listener)
    t = threading.Thread(target=client.feed, args=(build_frame("00EVT"),), daemon=True)
    t.start()
    t.join(2.0)

    assert not t.is_alive()
    assert payloads == ["00EVT", "00X"]
    assert client.buffer.pending_bytes == 0


def test_overflow_logged_as_warning(caplog):
    client = CnetClient(LoopbackConnection(), max_buffer_size=8)
    with caplog.at_level(logging.WARNING, logger="cnet_mcp.client"):
        client.feed(b"\x05" + b"A" * 20)
    assert [r.levelno for r in caplog.records] == [logging.WARNING]
