"""The pixel format data structure."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from .common import VNCError
from .constants import RFBFlag, flag_to_bool

_LAYOUT = struct.Struct(">BBBBHHHBBB3x")
PIXEL_FORMAT_LEN = _LAYOUT.size

_VALID_SIZES = (8, 16, 32)


def _flag_str(value: int) -> str:
    try:
        return str(RFBFlag(value))
    except ValueError:
        return f"RFBFlag({value})"


@dataclass(frozen=True)
class PixelFormat:
    """How pixel values are laid out on the wire."""

    bpp: int = 0
    depth: int = 0
    big_endian: int = RFBFlag.FALSE
    true_color: int = RFBFlag.FALSE
    red_max: int = 0
    green_max: int = 0
    blue_max: int = 0
    red_shift: int = 0
    green_shift: int = 0
    blue_shift: int = 0

    def marshal(self) -> bytes:
        """Return the 16-byte wire form, validating bpp and depth."""
        if self.bpp not in _VALID_SIZES:
            raise VNCError(f"Invalid BPP value {self.bpp}; must be 8, 16, or 32.")
        if self.depth < self.bpp:
            raise VNCError(f"Invalid Depth value {self.depth}; cannot be < BPP")
        if self.depth not in _VALID_SIZES:
            raise VNCError(f"Invalid Depth value {self.depth}; must be 8, 16, or 32.")
        return _LAYOUT.pack(
            self.bpp,
            self.depth,
            self.big_endian,
            self.true_color,
            self.red_max,
            self.green_max,
            self.blue_max,
            self.red_shift,
            self.green_shift,
            self.blue_shift,
        )

    @classmethod
    def unmarshal(cls, data: bytes) -> PixelFormat:
        """Parse the wire form; any non-zero true-color flag becomes TRUE."""
        if len(data) < PIXEL_FORMAT_LEN:
            raise VNCError(
                f"pixel format needs {PIXEL_FORMAT_LEN} bytes, got {len(data)}"
            )
        fields = list(_LAYOUT.unpack_from(data))
        if flag_to_bool(fields[3]):
            fields[3] = RFBFlag.TRUE
        return cls(*fields)

    @classmethod
    def read(cls, stream: BinaryIO) -> PixelFormat:
        """Read exactly one pixel format from a binary stream."""
        data = b""
        while len(data) < PIXEL_FORMAT_LEN:
            chunk = stream.read(PIXEL_FORMAT_LEN - len(data))
            if not chunk:
                raise EOFError("unexpected EOF reading pixel format")
            data += chunk
        return cls.unmarshal(data)

    def byte_order(self) -> str:
        """Return "big" or "little", for use with int.to_bytes/from_bytes."""
        return "big" if flag_to_bool(self.big_endian) else "little"

    def __str__(self) -> str:
        return (
            f"{{ bpp: {self.bpp} depth: {self.depth} "
            f"big-endian: {_flag_str(self.big_endian)} "
            f"true-color: {_flag_str(self.true_color)} "
            f"red-max: {self.red_max} green-max: {self.green_max} "
            f"blue-max: {self.blue_max} red-shift: {self.red_shift} "
            f"green-shift: {self.green_shift} blue-shift: {self.blue_shift} }}"
        )


def new_pixel_format(bpp: int) -> PixelFormat:
    """Return a big-endian pixel format for 8, 16 or 32 bits per pixel."""
    rgb_max = ((2**bpp & 0xFFFF) - 1) & 0xFFFF
    true_color = RFBFlag.TRUE
    shifts = (0, 0, 0)
    if bpp == 8:
        true_color = RFBFlag.FALSE
    elif bpp == 16:
        shifts = (0, 4, 8)
    elif bpp == 32:
        shifts = (0, 8, 16)
    return PixelFormat(
        bpp, bpp, RFBFlag.TRUE, true_color, rgb_max, rgb_max, rgb_max, *shifts
    )


PIXEL_FORMAT_8BIT = new_pixel_format(8)
PIXEL_FORMAT_16BIT = new_pixel_format(16)
PIXEL_FORMAT_32BIT = new_pixel_format(32)