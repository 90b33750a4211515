"""The client connection: negotiation, client-to-server messages and the read loop."""

from __future__ import annotations

import logging
import queue
import struct
from dataclasses import astuple, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .auth import ClientAuth, ClientAuthNone, ClientAuthVeNCrypt, ClientAuthVNC
from .color import Color, new_color_map
from .common import VNCError, settle_ui
from .constants import ClientMessageType, EncodingType, button_mask, flag_to_bool
from .encoding import Encoding, RawEncoding, find_encoding, marshal_encodings
from .handshake import (
    MAX_VERSIONS,
    client_init,
    protocol_version_handshake,
    security_handshake,
    security_result_handshake,
    server_init,
)
from .pixel_format import PIXEL_FORMAT_32BIT, PixelFormat
from .servermsg import Bell, FramebufferUpdate, ServerCutText, ServerMessage, SetColorMapEntries
from .wire import Wire, _Socket

_SET_PIXEL_FORMAT = struct.Struct(">B3xBBBBHHHBBB3x")
_SET_ENCODINGS = struct.Struct(">BxH")
_FRAMEBUFFER_UPDATE_REQUEST = struct.Struct(">BBHHHH")
_KEY_EVENT = struct.Struct(">BB2xI")
_POINTER_EVENT = struct.Struct(">BBHH")
_CLIENT_CUT_TEXT = struct.Struct(">B3xI")

_LATIN1_MAX = 0xFF


def _default_server_messages() -> List[ServerMessage]:
    return [FramebufferUpdate(), SetColorMapEntries(), Bell(), ServerCutText()]


@dataclass
class ClientConfig:
    """Settings for a client connection; do not change it once connected.

    When ``auth`` is not given, None, VNC password and VeNCrypt
    authentication are offered, in that order. Messages read by
    ``listen_and_handle`` are put on ``server_message_queue``; without a
    queue they are discarded.
    """

    password: str = ""
    auth: Optional[List[ClientAuth]] = None
    logger: Optional[logging.Logger] = None
    exclusive: bool = False
    server_message_queue: Optional["queue.Queue[ServerMessage]"] = None
    server_messages: List[ServerMessage] = field(default_factory=_default_server_messages)

    def __post_init__(self) -> None:
        if self.auth is None:
            self.auth = [
                ClientAuthNone(),
                ClientAuthVNC(self.password),
                ClientAuthVeNCrypt(),
            ]


class ClientConn:
    """A connection to an RFB server."""

    def __init__(self, sock: _Socket, config: Optional[ClientConfig] = None) -> None:
        self.config = config if config is not None else ClientConfig()
        self.wire = Wire(sock)
        self.log = self.config.logger or logging.getLogger(__name__)
        self.protocol_version: bytes = b""
        self.security_type: Optional[int] = None
        self.color_map: List[Color] = new_color_map()
        self.desktop_name = ""
        self.encodings: List[Encoding] = [RawEncoding()]
        self.framebuffer_width = 0
        self.framebuffer_height = 0
        self.pixel_format: PixelFormat = PIXEL_FORMAT_32BIT

    @property
    def metrics(self):
        """The byte counters of the underlying wire."""
        return self.wire.metrics

    @property
    def closed(self) -> bool:
        return self.wire.closed

    def receive(self, size: int) -> bytes:
        """Return exactly ``size`` bytes from the server."""
        return self.wire.receive(size)

    def close(self) -> None:
        """Close the connection; closing twice does nothing."""
        if self.wire.closed:
            return
        self.log.info("VNC Client connection closed.")
        self.wire.close()

    def __enter__(self) -> "ClientConn":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def encodable(self, encoding_type: int) -> Optional[Encoding]:
        """Return the client's encoding of the given type, or None."""
        return find_encoding(self.encodings, encoding_type)

    def _send(self, data: bytes) -> None:
        self.wire.send(data)

    def set_pixel_format(self, pixel_format: PixelFormat) -> None:
        """Ask the server to send pixels in ``pixel_format``."""
        try:
            message = _SET_PIXEL_FORMAT.pack(
                ClientMessageType.SET_PIXEL_FORMAT, *astuple(pixel_format)
            )
        except struct.error as err:
            raise VNCError(f"invalid pixel format: {err}") from err
        self._send(message)
        if not flag_to_bool(pixel_format.true_color):
            self.color_map = new_color_map()
        self.pixel_format = pixel_format

    def set_encodings(self, encodings: Iterable[Encoding]) -> None:
        """Tell the server which encodings the client accepts.

        The raw encoding is always added if it is missing.
        """
        encs = list(encodings)
        if not any(e.encoding_type == EncodingType.RAW for e in encs):
            encs.append(RawEncoding())
        header = _SET_ENCODINGS.pack(ClientMessageType.SET_ENCODINGS, len(encs))
        self._send(header + marshal_encodings(encs))
        self.encodings = encs

    def framebuffer_update_request(
        self, incremental: int, x: int, y: int, width: int, height: int
    ) -> None:
        """Request a framebuffer update for the given area."""
        self._send(
            _FRAMEBUFFER_UPDATE_REQUEST.pack(
                ClientMessageType.FRAMEBUFFER_UPDATE_REQUEST,
                int(incremental),
                x,
                y,
                width,
                height,
            )
        )

    def key_event(self, key: int, down: bool) -> None:
        """Press (``down``) or release a key given by its keysym."""
        self._send(_KEY_EVENT.pack(ClientMessageType.KEY_EVENT, int(bool(down)), int(key)))
        settle_ui()

    def pointer_event(self, buttons: int, x: int, y: int) -> None:
        """Move the pointer, with the buttons in the mask held down."""
        self._send(
            _POINTER_EVENT.pack(ClientMessageType.POINTER_EVENT, button_mask(buttons), x, y)
        )
        settle_ui()

    def client_cut_text(self, text: str) -> None:
        """Send Latin-1 cut-buffer text; carriage returns are removed."""
        for char in text:
            if ord(char) > _LATIN1_MAX:
                raise VNCError(f"Character {char!r} is not valid Latin-1")
        payload = text.replace("\r", "").encode("latin-1")
        self._send(_CLIENT_CUT_TEXT.pack(ClientMessageType.CLIENT_CUT_TEXT, len(payload)))
        self._send(payload)
        settle_ui()

    def listen_and_handle(self) -> None:
        """Read and dispatch server messages until the connection ends."""
        if not self.config.server_messages:
            raise VNCError("Client config error: ServerMessages undefined")
        handlers: Dict[int, ServerMessage] = {
            message.message_type: message for message in self.config.server_messages
        }
        while not self.wire.closed:
            try:
                (message_type,) = self.wire.receive(1)
            except (EOFError, OSError):
                if not self.wire.closed:
                    self.log.error("error: reading from server")
                break
            self.log.debug("message-type: %s", message_type)

            handler = handlers.get(message_type)
            if handler is None:
                self.log.error("error unsupported message-type: %s", message_type)
                break
            try:
                parsed = handler.read(self)
            except (VNCError, EOFError, OSError) as err:
                self.log.error("error parsing message; %s", err)
                break

            if self.config.server_message_queue is None:
                self.log.info("ignoring message; no server message channel")
                continue
            self.config.server_message_queue.put(parsed)
        self.log.info("ListenAndHandle finished")

    def debug_metrics(self) -> Dict[str, int]:
        """Log every metric and return the values by name."""
        values = {metric.name: metric.value for metric in self.metrics}
        self.log.info("Metrics:")
        for name, value in values.items():
            self.log.info("  %s: %s", name, value)
        return values


def connect(
    sock: _Socket, config: Optional[ClientConfig] = None, max_version: Optional[str] = None
) -> ClientConn:
    """Negotiate a connection with a server over ``sock``.

    ``max_version`` ("3.3" or "3.8") forces the protocol version used.
    """
    if max_version and max_version not in MAX_VERSIONS:
        raise ValueError(
            f"Invalid max protocol version {max_version}; "
            f"supported versions are {sorted(MAX_VERSIONS)}"
        )
    conn = ClientConn(sock, config)
    cfg = conn.config
    try:
        conn.protocol_version = protocol_version_handshake(conn.wire, max_version)
        conn.security_type = security_handshake(
            conn.wire, conn.protocol_version, cfg.auth or [], cfg.password
        )
        security_result_handshake(conn.wire, conn.security_type)
        client_init(conn.wire, cfg.exclusive)
        init = server_init(conn.wire)
    except Exception:
        conn.close()
        raise
    conn.framebuffer_width = init.width
    conn.framebuffer_height = init.height
    conn.pixel_format = init.pixel_format
    conn.desktop_name = init.name

    try:
        conn.set_encodings(conn.encodings)
    except (VNCError, OSError) as err:
        conn.close()
        raise VNCError(f"failure calling SetEncodings; {err}") from err
    try:
        conn.set_pixel_format(conn.pixel_format)
    except (VNCError, OSError) as err:
        conn.close()
        raise VNCError(f"failure calling SetPixelFormat; {err}") from err
    return conn


__all_types__: Any = None