"""Protocol constants: encoding types, message types, flags and button masks."""

from __future__ import annotations

from enum import IntEnum, IntFlag


class EncodingType(IntEnum):
    """Known encoding and pseudo-encoding type numbers."""

    RAW = 0
    COPY_RECT = 1
    RRE = 2
    CORRE = 4
    HEXTILE = 5
    ZLIB = 6
    TIGHT = 7
    ZLIB_HEX = 8
    TRLE = 15
    ZRLE = 16
    HITACHI = 17

    CURSOR_PSEUDO = -239
    DESKTOP_SIZE_PSEUDO = -223
    EXTENDED_DESKTOP_SIZE_PSEUDO = -308
    DESKTOP_NAME_PSEUDO = -307
    FENCE_PSEUDO = -312
    CONTINUOUS_UPDATES_PSEUDO = -313


class ClientMessageType(IntEnum):
    """Client-to-server message types."""

    SET_PIXEL_FORMAT = 0
    SET_ENCODINGS = 2
    FRAMEBUFFER_UPDATE_REQUEST = 3
    KEY_EVENT = 4
    POINTER_EVENT = 5
    CLIENT_CUT_TEXT = 6


class ServerMessageType(IntEnum):
    """Server-to-client message types."""

    FRAMEBUFFER_UPDATE = 0
    SET_COLOR_MAP_ENTRIES = 1
    BELL = 2
    SERVER_CUT_TEXT = 3


class RFBFlag(IntEnum):
    """A one-byte boolean flag as carried on the wire."""

    FALSE = 0
    TRUE = 1

    def __str__(self) -> str:
        return "RFBTrue" if self is RFBFlag.TRUE else "RFBFalse"


class Button(IntFlag):
    """Pointer button mask components."""

    NONE = 0
    LEFT = 1 << 0
    MIDDLE = 1 << 1
    RIGHT = 1 << 2
    FOUR = 1 << 3
    FIVE = 1 << 4
    SIX = 1 << 5
    SEVEN = 1 << 6
    EIGHT = 1 << 7


def bool_to_flag(value: bool) -> RFBFlag:
    """Return the wire flag for a boolean."""
    return RFBFlag.TRUE if value else RFBFlag.FALSE


def flag_to_bool(flag: int) -> bool:
    """Any non-zero flag value counts as true."""
    return int(flag) != RFBFlag.FALSE


def button_mask(button: int) -> int:
    """Return the button mask as an unsigned byte."""
    return int(button) & 0xFF