import struct

import pytest

from rfbclient.common import VNCError
from rfbclient.metrics import MetricRegistry
from rfbclient.wire import BYTES_RECEIVED, BYTES_SENT, Wire


class Loopback:
    """Everything written can be read back, like an in-memory pipe."""

    def __init__(self):
        self.data = bytearray()
        self.close_count = 0

    def sendall(self, data):
        self.data += data

    def recv(self, size):
        chunk = bytes(self.data[:size])
        del self.data[:size]
        return chunk

    def close(self):
        self.close_count += 1


@pytest.fixture
def wire():
    return Wire(Loopback())


def test_receive_bytes(wire):
    wire.send(bytes([10, 11, 12]))
    assert wire.receive(3) == bytes([10, 11, 12])


def test_receive_buffer_bytes(wire):
    wire.send(bytes([30, 31, 32]))
    assert list(wire.receive(3)) == [30, 31, 32]


def test_receive_struct_int32(wire):
    wire.send(struct.pack(">3i", 20, 21, 22))
    assert wire.receive_struct(">3i") == (20, 21, 22)


def test_receive_struct_defaults_to_big_endian(wire):
    wire.send(bytes([0, 18, 214, 135]))
    assert wire.receive_struct("i") == (1234567,)


def test_metrics_count_bytes(wire):
    wire.send(b"abc")
    assert wire.metrics[BYTES_SENT].value == 3
    wire.receive(2)
    assert wire.metrics[BYTES_RECEIVED].value == 2


def test_send_empty_does_not_count(wire):
    wire.send(b"")
    assert wire.metrics[BYTES_SENT].value == 0


def test_receive_zero_returns_empty(wire):
    assert wire.receive(0) == b""


def test_receive_past_end_raises_eof_and_keeps_data(wire):
    wire.send(b"xyz")
    with pytest.raises(EOFError):
        wire.receive(5)
    assert wire.receive(2) == b"xy"


def test_receive_from_empty_raises_eof(wire):
    with pytest.raises(EOFError):
        wire.receive(1)


def test_peek_does_not_consume(wire):
    wire.send(b"\x00\x00\x00\x00rest")
    assert wire.peek(4) == b"\x00\x00\x00\x00"
    assert wire.receive(4) == b"\x00\x00\x00\x00"
    assert wire.receive(4) == b"rest"


def test_peek_insufficient_raises_eof(wire):
    wire.send(b"ab")
    with pytest.raises(EOFError):
        wire.peek(4)


def test_discard_skips_bytes(wire):
    wire.send(b"skipkeep")
    wire.discard(4)
    assert wire.receive(4) == b"keep"


def test_close_is_idempotent():
    loop = Loopback()
    wire = Wire(loop)
    wire.close()
    wire.close()
    assert wire.closed is True
    assert loop.close_count == 1


def test_context_manager_closes():
    loop = Loopback()
    with Wire(loop) as wire:
        wire.send(b"a")
    assert loop.close_count == 1


def test_start_tls_with_buffered_data_raises(wire):
    wire.send(b"12345678")
    wire.peek(1)
    with pytest.raises(VNCError):
        wire.start_tls()


def test_shared_registry_reuses_gauges():
    registry = MetricRegistry()
    gauge = registry.gauge(BYTES_SENT)
    wire = Wire(Loopback(), registry)
    wire.send(b"hello")
    assert gauge.value == 5
    assert registry[BYTES_RECEIVED].value == 0