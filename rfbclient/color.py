"""Pixel colors and the color map used by indexed pixel formats."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .common import VNCError
from .constants import flag_to_bool
from .pixel_format import PixelFormat

COLOR_MAP_SIZE = 256

_BYTES_PER_PIXEL = {8: 1, 16: 2, 32: 4}


@dataclass
class Color:
    """A single color, interpreted through a pixel format and color map.

    ``cm_index`` is meaningful only when the pixel format is not true-color.
    The pixel format and color map are context and take no part in equality.
    """

    pixel_format: PixelFormat = field(
        default_factory=PixelFormat, compare=False, repr=False
    )
    color_map: Optional[List["Color"]] = field(
        default=None, compare=False, repr=False
    )
    cm_index: int = 0
    r: int = 0
    g: int = 0
    b: int = 0

    def marshal(self) -> bytes:
        """Return the pixel value in the wire form of the pixel format."""
        pf = self.pixel_format
        pixel = self.cm_index
        if flag_to_bool(pf.true_color):
            pixel = (
                (self.r << pf.red_shift)
                | (self.g << pf.green_shift)
                | (self.b << pf.blue_shift)
            )
        pixel &= 0xFFFFFFFF
        size = _BYTES_PER_PIXEL.get(pf.bpp)
        if size is None:
            return b""
        return (pixel & ((1 << (8 * size)) - 1)).to_bytes(size, pf.byte_order())

    @classmethod
    def unmarshal(
        cls,
        pixel_format: PixelFormat,
        color_map: Optional[List["Color"]],
        data: bytes,
    ) -> "Color":
        """Parse a pixel value; empty data yields a blank color."""
        if not data:
            return cls(pixel_format, color_map)

        pixel = 0
        size = _BYTES_PER_PIXEL.get(pixel_format.bpp)
        if size is not None:
            if len(data) < size:
                raise VNCError(
                    f"pixel needs {size} bytes for {pixel_format.bpp} bpp, "
                    f"got {len(data)}"
                )
            pixel = int.from_bytes(bytes(data[:size]), pixel_format.byte_order())

        if flag_to_bool(pixel_format.true_color):
            return cls(
                pixel_format,
                color_map,
                0,
                (pixel >> pixel_format.red_shift) & pixel_format.red_max,
                (pixel >> pixel_format.green_shift) & pixel_format.green_max,
                (pixel >> pixel_format.blue_shift) & pixel_format.blue_max,
            )

        if color_map is None:
            raise VNCError("indexed pixel received without a color map")
        if pixel >= len(color_map):
            raise VNCError(
                f"color map index {pixel} out of range for map of size "
                f"{len(color_map)}"
            )
        entry = color_map[pixel]
        return cls(pixel_format, color_map, pixel, entry.r, entry.g, entry.b)


def new_color_map() -> List[Color]:
    """Return a fresh color map of 256 blank colors."""
    return [Color() for _ in range(COLOR_MAP_SIZE)]