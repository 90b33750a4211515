"""Rectangle encodings and pseudo-encodings sent by the server."""

from __future__ import annotations

import struct
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Iterator, List, Optional, Protocol

from .color import Color
from .common import VNCError
from .constants import EncodingType
from .pixel_format import PixelFormat


class _Connection(Protocol):
    """What an encoding needs from the connection it reads from."""

    pixel_format: PixelFormat
    color_map: List[Color]
    framebuffer_width: int
    framebuffer_height: int

    def receive(self, size: int) -> bytes:
        """Return exactly ``size`` bytes or raise EOFError."""


class _Rect(Protocol):
    x: int
    y: int
    width: int
    height: int


def _receive(conn: _Connection, size: int, what: str) -> bytes:
    if size <= 0:
        return b""
    try:
        return conn.receive(size)
    except (EOFError, OSError) as err:
        raise VNCError(f"{what}: {err}") from err


def _unpack(conn: _Connection, layout: str, what: str) -> tuple:
    fmt = struct.Struct(layout)
    return fmt.unpack(_receive(conn, fmt.size, what))


def _bytes_per_pixel(conn: _Connection) -> int:
    return conn.pixel_format.bpp // 8


def _read_color(conn: _Connection, what: str) -> Color:
    data = _receive(conn, _bytes_per_pixel(conn), what)
    return Color.unmarshal(conn.pixel_format, conn.color_map, data)


def _split_colors(
    conn: _Connection, data: bytes, bytes_per_pixel: int, count: int
) -> Iterator[Color]:
    view = memoryview(data)
    for start in range(0, count * bytes_per_pixel, bytes_per_pixel or 1):
        yield Color.unmarshal(
            conn.pixel_format, conn.color_map, view[start : start + bytes_per_pixel]
        )


class Encoding(ABC):
    """A way of encoding the pixel data of a rectangle."""

    encoding_type: ClassVar[EncodingType]

    @abstractmethod
    def read(self, conn: _Connection, rect: _Rect) -> "Encoding":
        """Read the encoded data for ``rect`` and return a filled-in encoding."""

    @abstractmethod
    def marshal(self) -> bytes:
        """Return the wire form of the encoded data."""


def marshal_encodings(encodings: Iterable[Encoding]) -> bytes:
    """Return the encoding-type list as signed 32-bit big-endian values."""
    return b"".join(struct.pack(">i", enc.encoding_type) for enc in encodings)


@dataclass
class RawEncoding(Encoding):
    """Raw pixel data, left to right and top to bottom."""

    colors: List[Color] = field(default_factory=list)

    encoding_type: ClassVar[EncodingType] = EncodingType.RAW

    def read(self, conn: _Connection, rect: _Rect) -> "RawEncoding":
        bpp = _bytes_per_pixel(conn)
        area = rect.width * rect.height
        if bpp == 0:
            blank = Color(conn.pixel_format, conn.color_map)
            return RawEncoding([Color(blank.pixel_format, blank.color_map) for _ in range(area)])
        data = _receive(conn, area * bpp, "unable to read rectangle with raw encoding")
        return RawEncoding(list(_split_colors(conn, data, bpp, area)))

    def marshal(self) -> bytes:
        return b"".join(color.marshal() for color in self.colors)

    def __str__(self) -> str:
        return "RawEncoding"


@dataclass
class CopyRectEncoding(Encoding):
    """Copy a rectangle from another place in the framebuffer."""

    src_x: int = 0
    src_y: int = 0

    encoding_type: ClassVar[EncodingType] = EncodingType.COPY_RECT

    def read(self, conn: _Connection, rect: _Rect) -> "CopyRectEncoding":
        src_x, src_y = _unpack(conn, ">HH", "failed to read copyrect encoding")
        return CopyRectEncoding(src_x, src_y)

    def marshal(self) -> bytes:
        return struct.pack(">HH", self.src_x, self.src_y)

    def __str__(self) -> str:
        return f"CopyRectEncoding(SrcX:{self.src_x}, SrcY:{self.src_y})"


@dataclass
class RRESubRect:
    """A solid-colored sub-rectangle of an RRE rectangle."""

    color: Color = field(default_factory=Color)
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass
class RREEncoding(Encoding):
    """Rise-and-run-length encoding: a background and solid sub-rectangles."""

    background_color: Color = field(default_factory=Color)
    sub_rects: List[RRESubRect] = field(default_factory=list)

    encoding_type: ClassVar[EncodingType] = EncodingType.RRE

    def read(self, conn: _Connection, rect: _Rect) -> "RREEncoding":
        (count,) = _unpack(conn, ">I", "RRE: failed to read sub-rectangle count")
        background = _read_color(conn, "RRE: failed to read background color")
        sub_rects = []
        for i in range(count):
            color = _read_color(conn, f"RRE: failed to read sub-rect color {i}")
            x, y, w, h = _unpack(
                conn, ">HHHH", f"RRE: failed to read sub-rect geometry {i}"
            )
            sub_rects.append(RRESubRect(color, x, y, w, h))
        return RREEncoding(background, sub_rects)

    def marshal(self) -> bytes:
        parts = [struct.pack(">I", len(self.sub_rects)), self.background_color.marshal()]
        for sub in self.sub_rects:
            parts.append(sub.color.marshal())
            parts.append(struct.pack(">HHHH", sub.x, sub.y, sub.width, sub.height))
        return b"".join(parts)

    def __str__(self) -> str:
        return f"RREEncoding({len(self.sub_rects)} sub-rects)"


@dataclass
class ZRLEEncoding(Encoding):
    """Zlib run-length encoding; holds the decompressed data."""

    data: bytes = b""

    encoding_type: ClassVar[EncodingType] = EncodingType.ZRLE

    def read(self, conn: _Connection, rect: _Rect) -> "ZRLEEncoding":
        (length,) = _unpack(conn, ">I", "ZRLE: failed to read data length")
        if length == 0:
            return ZRLEEncoding(b"")
        compressed = _receive(conn, length, "ZRLE: failed to read compressed data")
        try:
            return ZRLEEncoding(zlib.decompress(compressed))
        except zlib.error as err:
            raise VNCError(f"ZRLE: failed to decompress data: {err}") from err

    def marshal(self) -> bytes:
        compressed = zlib.compress(self.data)
        return struct.pack(">I", len(compressed)) + compressed

    def __str__(self) -> str:
        return f"ZRLEEncoding({len(self.data)} bytes decompressed)"


@dataclass
class CursorPseudoEncoding(Encoding):
    """The shape of the remote cursor: pixel data and a transparency bitmask."""

    pixels: bytes = b""
    bitmask: bytes = b""

    encoding_type: ClassVar[EncodingType] = EncodingType.CURSOR_PSEUDO

    def read(self, conn: _Connection, rect: _Rect) -> "CursorPseudoEncoding":
        pixel_size = rect.width * rect.height * _bytes_per_pixel(conn)
        bitmask_size = (rect.width + 7) // 8 * rect.height
        pixels = _receive(conn, pixel_size, "failed to read cursor pixel data")
        bitmask = _receive(conn, bitmask_size, "failed to read cursor bitmask data")
        return CursorPseudoEncoding(pixels, bitmask)

    def marshal(self) -> bytes:
        return bytes(self.pixels) + bytes(self.bitmask)

    def __str__(self) -> str:
        return "CursorPseudoEncoding"


@dataclass
class DesktopSizePseudoEncoding(Encoding):
    """A change of framebuffer size; the rectangle carries the new size."""

    encoding_type: ClassVar[EncodingType] = EncodingType.DESKTOP_SIZE_PSEUDO

    def read(self, conn: _Connection, rect: _Rect) -> "DesktopSizePseudoEncoding":
        conn.framebuffer_width = rect.width
        conn.framebuffer_height = rect.height
        return DesktopSizePseudoEncoding()

    def marshal(self) -> bytes:
        return b""

    def __str__(self) -> str:
        return "DesktopSizePseudoEncoding"


def find_encoding(
    encodings: Iterable[Encoding], encoding_type: int
) -> Optional[Encoding]:
    """Return the first encoding of the given type, or None."""
    return next((e for e in encodings if e.encoding_type == encoding_type), None)