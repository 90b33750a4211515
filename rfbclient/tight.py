"""Hextile and Tight encodings, which are only ever sent by the server."""

from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from itertools import product
from typing import ClassVar, List

from .color import Color
from .common import VNCError
from .constants import EncodingType
from .encoding import (
    Encoding,
    _bytes_per_pixel,
    _Connection,
    _read_color,
    _receive,
    _Rect,
    _split_colors,
    _unpack,
)

TILE_SIZE = 16

_HEXTILE_RAW = 0x01
_HEXTILE_BACKGROUND = 0x02
_HEXTILE_FOREGROUND = 0x04
_HEXTILE_ANY_SUBRECTS = 0x08
_HEXTILE_SUBRECTS_COLOURED = 0x10

_TIGHT_FILTER_COPY = 0
_TIGHT_FILTER_PALETTE = 1
_TIGHT_FILTER_GRADIENT = 2
_TIGHT_JPEG = 8


def _blank(conn: _Connection) -> Color:
    return Color(conn.pixel_format, conn.color_map)


def _read_byte(conn: _Connection, what: str) -> int:
    (value,) = _unpack(conn, ">B", what)
    return value


@dataclass
class HextileEncoding(Encoding):
    """Pixel data split into 16x16 tiles, each encoded on its own."""

    colors: List[Color] = field(default_factory=list)

    encoding_type: ClassVar[EncodingType] = EncodingType.HEXTILE

    def read(self, conn: _Connection, rect: _Rect) -> "HextileEncoding":
        bpp = _bytes_per_pixel(conn)
        width, height = rect.width, rect.height
        colors = [_blank(conn) for _ in range(width * height)]
        background = _blank(conn)
        foreground = _blank(conn)

        def paint(px: int, py: int, color: Color) -> None:
            index = py * width + px
            if index < len(colors):
                colors[index] = color

        for tile_y in range(0, height, TILE_SIZE):
            tile_h = min(TILE_SIZE, height - tile_y)
            for tile_x in range(0, width, TILE_SIZE):
                tile_w = min(TILE_SIZE, width - tile_x)
                mask = _read_byte(conn, "hextile: error reading subencoding mask")

                if mask & _HEXTILE_RAW:
                    data = _receive(
                        conn, tile_w * tile_h * bpp, "hextile: failed to read raw tile"
                    )
                    tile_colors = _split_colors(conn, data, bpp, tile_w * tile_h)
                    positions = product(range(tile_h), range(tile_w))
                    for (ty, tx), color in zip(positions, tile_colors):
                        paint(tile_x + tx, tile_y + ty, color)
                    continue

                if mask & _HEXTILE_BACKGROUND:
                    background = _read_color(
                        conn, "hextile: failed to read background color"
                    )
                if mask & _HEXTILE_FOREGROUND:
                    foreground = _read_color(
                        conn, "hextile: failed to read foreground color"
                    )

                for ty, tx in product(range(tile_h), range(tile_w)):
                    paint(tile_x + tx, tile_y + ty, background)

                if not mask & _HEXTILE_ANY_SUBRECTS:
                    continue
                count = _read_byte(conn, "hextile: failed to read sub-rectangle count")
                coloured = bool(mask & _HEXTILE_SUBRECTS_COLOURED)
                for _ in range(count):
                    if coloured:
                        color = _read_color(
                            conn, "hextile: failed to read subrect color"
                        )
                    else:
                        color = foreground
                    xy = _read_byte(conn, "hextile: failed to read subrect geometry xy")
                    wh = _read_byte(conn, "hextile: failed to read subrect geometry wh")
                    sub_x, sub_y = (xy >> 4) & 0x0F, xy & 0x0F
                    sub_w, sub_h = ((wh >> 4) & 0x0F) + 1, (wh & 0x0F) + 1
                    for sy, sx in product(range(sub_h), range(sub_w)):
                        paint(tile_x + sub_x + sx, tile_y + sub_y + sy, color)

        return HextileEncoding(colors)

    def marshal(self) -> bytes:
        raise VNCError(
            "client-side marshalling of HextileEncoding not supported: "
            "this is a server-to-client encoding"
        )

    def __str__(self) -> str:
        return f"HextileEncoding({len(self.colors)} colors)"


@dataclass
class TightEncoding(Encoding):
    """Tight encoding; holds the decoded pixel bytes of the rectangle."""

    data: bytes = b""

    encoding_type: ClassVar[EncodingType] = EncodingType.TIGHT

    def read(self, conn: _Connection, rect: _Rect) -> "TightEncoding":
        subencoding = _read_byte(conn, "tight: failed to read subencoding")
        # The low four bits ask for zlib streams to be reset.  Every block is
        # decompressed as a complete zlib stream, so there is no state to drop.
        filter_id = (subencoding >> 4) & 0x0F
        if filter_id == _TIGHT_JPEG:
            raise VNCError("tight JPEG encoding not supported")
        if filter_id == _TIGHT_FILTER_COPY:
            return self._read_copy(conn, rect)
        if filter_id == _TIGHT_FILTER_PALETTE:
            return self._read_palette(conn, rect)
        if filter_id == _TIGHT_FILTER_GRADIENT:
            return self._read_gradient(conn, rect)
        raise VNCError(f"tight: unsupported filter ID: {filter_id}")

    def _read_copy(self, conn: _Connection, rect: _Rect) -> "TightEncoding":
        bpp = (conn.pixel_format.bpp + 7) // 8
        expected = rect.width * rect.height * bpp
        data = _read_compressed(conn, "tight (copy)")
        if len(data) != expected:
            raise VNCError(
                f"tight (copy): decompressed data size mismatch "
                f"(got {len(data)}, want {expected})"
            )
        return TightEncoding(data)

    def _read_palette(self, conn: _Connection, rect: _Rect) -> "TightEncoding":
        size = _read_byte(conn, "tight (palette): failed to read palette size") + 1
        bpp = _bytes_per_pixel(conn)
        palette = [
            _read_color(conn, f"tight (palette): failed to read color {i}").marshal()
            for i in range(size)
        ]
        data = _read_compressed(conn, "tight (palette)")

        expected = rect.width * rect.height * bpp
        total_pixels = rect.width * rect.height
        pixels: List[bytes] = []
        if size <= 2:
            bits = ((byte >> shift) & 1 for byte in data for shift in range(7, -1, -1))
            for index in bits:
                if len(pixels) >= total_pixels:
                    break
                if index >= size:
                    raise VNCError(
                        f"tight (palette): invalid palette index {index} "
                        f"for palette of size {size}"
                    )
                pixels.append(palette[index])
        else:
            for index in data:
                if index >= size:
                    raise VNCError(
                        f"tight (palette): invalid palette index {index} "
                        f"for palette of size {size}"
                    )
                pixels.append(palette[index])

        result = b"".join(pixels)
        if len(result) != expected:
            raise VNCError(
                f"tight (palette): expanded data size mismatch "
                f"(got {len(result)}, want {expected})"
            )
        return TightEncoding(result)

    def _read_gradient(self, conn: _Connection, rect: _Rect) -> "TightEncoding":
        bpp = _bytes_per_pixel(conn)
        if bpp not in (3, 4):
            raise VNCError(f"tight (gradient): unsupported bytesPerPixel: {bpp}")
        corrections = iter(_read_compressed(conn, "tight (gradient)"))
        width = rect.width
        pixels = bytearray(width * rect.height * bpp)

        def component(x: int, y: int, b: int) -> int:
            return pixels[(y * width + x) * bpp + b]

        for y, x in product(range(rect.height), range(width)):
            offset = (y * width + x) * bpp
            for b in range(bpp):
                left = component(x - 1, y, b) if x > 0 else 0
                above = component(x, y - 1, b) if y > 0 else 0
                corner = component(x - 1, y - 1, b) if x > 0 and y > 0 else 0
                prediction = min(max(left + above - corner, 0), 255)
                correction = next(corrections, None)
                if correction is None:
                    raise VNCError(
                        "tight (gradient): failed to read correction byte: EOF"
                    )
                pixels[offset + b] = (prediction + correction) & 0xFF
        return TightEncoding(bytes(pixels))

    def marshal(self) -> bytes:
        raise VNCError(
            "client-side marshalling of TightEncoding not supported: "
            "this is a server-to-client encoding"
        )

    def __str__(self) -> str:
        return "TightEncoding"


def _read_compact_length(conn: _Connection, what: str) -> int:
    length = 0
    for i in range(3):
        part = _read_byte(conn, f"{what}: failed to read compact length part {i}")
        length |= (part & 0x7F) << (i * 7)
        if not part & 0x80:
            break
    return length


def _read_compressed(conn: _Connection, what: str) -> bytes:
    """Read a compact length followed by that many bytes of zlib data."""
    length = _read_compact_length(conn, what)
    if length == 0:
        return b""
    compressed = _receive(conn, length, f"{what}: failed to read compressed data")
    try:
        return zlib.decompress(compressed)
    except zlib.error as err:
        raise VNCError(f"{what}: failed to decompress data: {err}") from err