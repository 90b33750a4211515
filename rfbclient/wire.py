"""A buffered, byte-counting transport for the RFB protocol."""

from __future__ import annotations

import ssl
import struct
from typing import Any, Optional, Protocol, Tuple

from .common import VNCError
from .metrics import MetricRegistry

BYTES_RECEIVED = "bytes-received"
BYTES_SENT = "bytes-sent"

_CHUNK = 1024
_BYTE_ORDER_PREFIXES = "@=<>!"


class _Socket(Protocol):
    def recv(self, size: int) -> bytes: ...

    def sendall(self, data: bytes) -> Any: ...

    def close(self) -> Any: ...


class Wire:
    """Reads and writes protocol data over a socket-like object.

    Incoming data is buffered so that it can be peeked at. Every byte
    received or sent is counted in the ``bytes-received`` and ``bytes-sent``
    gauges of the metric registry.
    """

    def __init__(
        self, sock: _Socket, metrics: Optional[MetricRegistry] = None
    ) -> None:
        self._sock = sock
        self._buffer = bytearray()
        self.closed = False
        self.metrics = metrics if metrics is not None else MetricRegistry()
        for name in (BYTES_RECEIVED, BYTES_SENT):
            if name not in self.metrics:
                self.metrics.gauge(name)

    @property
    def sock(self) -> _Socket:
        """The underlying socket, which may have been wrapped in TLS."""
        return self._sock

    def _fill(self, size: int) -> None:
        while len(self._buffer) < size:
            chunk = self._sock.recv(max(size - len(self._buffer), _CHUNK))
            if not chunk:
                raise EOFError(
                    f"unexpected EOF: wanted {size} bytes, "
                    f"only {len(self._buffer)} available"
                )
            self._buffer += chunk

    def send(self, data: bytes) -> None:
        """Write all of ``data`` to the socket."""
        payload = bytes(data)
        self._sock.sendall(payload)
        if payload:
            self.metrics.adjust(BYTES_SENT, len(payload))

    def receive(self, size: int) -> bytes:
        """Return exactly ``size`` bytes, or raise EOFError."""
        if size <= 0:
            return b""
        self._fill(size)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        self.metrics.adjust(BYTES_RECEIVED, size)
        return data

    def receive_struct(self, fmt: str) -> Tuple[Any, ...]:
        """Receive and unpack a struct; the byte order defaults to big-endian."""
        if not fmt or fmt[0] not in _BYTE_ORDER_PREFIXES:
            fmt = ">" + fmt
        layout = struct.Struct(fmt)
        return layout.unpack(self.receive(layout.size))

    def peek(self, size: int) -> bytes:
        """Return the next ``size`` bytes without consuming them."""
        if size <= 0:
            return b""
        self._fill(size)
        return bytes(self._buffer[:size])

    def discard(self, size: int) -> None:
        """Skip the next ``size`` bytes."""
        if size <= 0:
            return
        self._fill(size)
        del self._buffer[:size]

    def start_tls(self) -> None:
        """Switch the connection to TLS without verifying the server."""
        if self._buffer:
            raise VNCError("cannot start TLS with unread data buffered")
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        try:
            self._sock = context.wrap_socket(self._sock)  # type: ignore[arg-type]
        except (ssl.SSLError, OSError) as err:
            raise VNCError(f"TLS handshake failed: {err}") from err

    def close(self) -> None:
        """Close the socket; closing twice does nothing."""
        if self.closed:
            return
        self.closed = True
        self._sock.close()

    def __enter__(self) -> "Wire":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()