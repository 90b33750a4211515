"""Server-to-client messages and the rectangles they carry."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, ClassVar, List, Optional, Protocol

from .color import Color
from .common import VNCError
from .constants import EncodingType, ServerMessageType
from .encoding import Encoding, RawEncoding
from .pixel_format import PixelFormat

_RECT_HEADER = struct.Struct(">HHHHi")
_FRAMEBUFFER_UPDATE_HEADER = struct.Struct(">BxH")

Encodable = Callable[[int], Optional[Encoding]]


class _ServerConnection(Protocol):
    """What a server message needs from the connection it reads from."""

    pixel_format: PixelFormat
    color_map: List[Color]
    framebuffer_width: int
    framebuffer_height: int

    def receive(self, size: int) -> bytes:
        """Return exactly ``size`` bytes or raise EOFError."""

    def encodable(self, encoding_type: int) -> Optional[Encoding]:
        """Return the client's encoding of the given type, or None."""


def _unpack(conn: _ServerConnection, layout: struct.Struct) -> tuple:
    return layout.unpack(conn.receive(layout.size))


class ServerMessage(ABC):
    """A message sent from the server to the client."""

    message_type: ClassVar[ServerMessageType]

    @abstractmethod
    def read(self, conn: _ServerConnection) -> "ServerMessage":
        """Read the message body; the message type has already been read."""


@dataclass
class Rectangle:
    """A rectangle of pixel data and the encoding that describes it."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    encoding: Optional[Encoding] = None

    def read(self, conn: _ServerConnection, encodable: Encodable) -> "Rectangle":
        """Read a rectangle header and its encoded data into this rectangle."""
        self.x, self.y, self.width, self.height, encoding_type = _unpack(
            conn, _RECT_HEADER
        )
        impl = encodable(encoding_type)
        if impl is None:
            raise VNCError(f"unsupported encoding type: {encoding_type}")
        try:
            self.encoding = impl.read(conn, self)
        except (VNCError, EOFError, OSError) as err:
            raise VNCError(f"error reading rectangle encoding: {err}") from err
        return self

    def marshal(self) -> bytes:
        """Return the header followed by the encoded data."""
        if self.encoding is None:
            raise VNCError("rectangle has no encoding")
        header = _RECT_HEADER.pack(
            self.x, self.y, self.width, self.height, self.encoding.encoding_type
        )
        return header + self.encoding.marshal()

    @classmethod
    def unmarshal(cls, data: bytes) -> "Rectangle":
        """Parse a rectangle header; only the raw encoding is recognized."""
        if len(data) < _RECT_HEADER.size:
            raise VNCError(
                f"rectangle needs {_RECT_HEADER.size} bytes, got {len(data)}"
            )
        x, y, width, height, encoding_type = _RECT_HEADER.unpack_from(data)
        if encoding_type != EncodingType.RAW:
            raise VNCError(f"unable to unmarshal encoding {encoding_type}")
        return cls(x, y, width, height, RawEncoding())

    def area(self) -> int:
        """Return the number of pixels in the rectangle."""
        return self.width * self.height

    def __str__(self) -> str:
        enc = "<nil>" if self.encoding is None else str(self.encoding)
        return (
            f"{{ x: {self.x} y: {self.y}, w: {self.width}, "
            f"h: {self.height}, enc: {enc} }}"
        )


@dataclass
class FramebufferUpdate(ServerMessage):
    """A sequence of rectangles to put into the framebuffer."""

    rectangles: List[Rectangle] = field(default_factory=list)

    message_type: ClassVar[ServerMessageType] = ServerMessageType.FRAMEBUFFER_UPDATE

    @property
    def num_rects(self) -> int:
        return len(self.rectangles)

    def read(self, conn: _ServerConnection) -> "FramebufferUpdate":
        conn.receive(1)
        (count,) = _unpack(conn, struct.Struct(">H"))
        rectangles = [Rectangle().read(conn, conn.encodable) for _ in range(count)]
        return FramebufferUpdate(rectangles)

    def marshal(self) -> bytes:
        """Return the message, message type included."""
        header = _FRAMEBUFFER_UPDATE_HEADER.pack(
            self.message_type, self.num_rects & 0xFFFF
        )
        return header + b"".join(rect.marshal() for rect in self.rectangles)


@dataclass
class SetColorMapEntries(ServerMessage):
    """New color map entries; reading it also updates the connection's map."""

    first_color: int = 0
    colors: List[Color] = field(default_factory=list)

    message_type: ClassVar[ServerMessageType] = ServerMessageType.SET_COLOR_MAP_ENTRIES

    def read(self, conn: _ServerConnection) -> "SetColorMapEntries":
        conn.receive(1)
        first_color, count = _unpack(conn, struct.Struct(">HH"))
        entry = struct.Struct(">HHH")
        colors = []
        for index in range(first_color, first_color + count):
            r, g, b = _unpack(conn, entry)
            if index >= len(conn.color_map):
                raise VNCError(
                    f"color map index {index} out of range for map of size "
                    f"{len(conn.color_map)}"
                )
            color = Color(conn.pixel_format, conn.color_map, index, r, g, b)
            conn.color_map[index] = color
            colors.append(color)
        return SetColorMapEntries(first_color, colors)


@dataclass
class Bell(ServerMessage):
    """An audible bell should be sounded."""

    message_type: ClassVar[ServerMessageType] = ServerMessageType.BELL

    def read(self, conn: _ServerConnection) -> "Bell":
        return Bell()


@dataclass
class ServerCutText(ServerMessage):
    """The server has new Latin-1 text in its cut buffer."""

    text: str = ""

    message_type: ClassVar[ServerMessageType] = ServerMessageType.SERVER_CUT_TEXT

    def read(self, conn: _ServerConnection) -> "ServerCutText":
        conn.receive(1)
        (length,) = _unpack(conn, struct.Struct(">I"))
        return ServerCutText(conn.receive(length).decode("latin-1"))