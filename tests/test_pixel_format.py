import io

import pytest

from rfbclient.common import VNCError
from rfbclient.constants import RFBFlag
from rfbclient.pixel_format import PixelFormat, new_pixel_format

TRUE = RFBFlag.TRUE
FALSE = RFBFlag.FALSE


@pytest.mark.parametrize(
    "pf, expected",
    [
        (
            PixelFormat(bpp=8, depth=8, big_endian=TRUE, true_color=FALSE),
            bytes([8, 8, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0]),
        ),
        (
            PixelFormat(bpp=8, depth=16, big_endian=TRUE, true_color=FALSE),
            bytes([8, 16, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0]),
        ),
        (
            new_pixel_format(16),
            bytes([16, 16, 1, 1, 255, 255, 255, 255, 255, 255, 0, 4, 8, 0, 0, 0]),
        ),
    ],
)
def test_marshal_valid(pf, expected):
    assert pf.marshal() == expected


@pytest.mark.parametrize(
    "pf",
    [
        PixelFormat(bpp=1, depth=1, big_endian=TRUE, true_color=FALSE),
        PixelFormat(bpp=8, depth=1, big_endian=TRUE, true_color=FALSE),
        PixelFormat(bpp=16, depth=8, big_endian=TRUE, true_color=FALSE),
    ],
)
def test_marshal_invalid(pf):
    with pytest.raises(VNCError):
        pf.marshal()


@pytest.mark.parametrize(
    "data, expected",
    [
        (
            bytes([8, 8, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0]),
            PixelFormat(bpp=8, depth=8, big_endian=TRUE, true_color=FALSE),
        ),
        (
            bytes([8, 16, 1, 1, 255, 255, 255, 255, 255, 255, 0, 4, 8, 0, 0, 0]),
            PixelFormat(
                bpp=8,
                depth=16,
                big_endian=TRUE,
                true_color=TRUE,
                red_max=65535,
                green_max=65535,
                blue_max=65535,
                red_shift=0,
                green_shift=4,
                blue_shift=8,
            ),
        ),
        (
            bytes([16, 16, 1, 1, 255, 255, 255, 255, 255, 255, 0, 4, 8, 0, 0, 0]),
            new_pixel_format(16),
        ),
        (
            bytes([32, 32, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0]),
            PixelFormat(bpp=32, depth=32, big_endian=TRUE, true_color=FALSE),
        ),
    ],
)
def test_unmarshal(data, expected):
    assert PixelFormat.unmarshal(data) == expected


def test_unmarshal_normalizes_true_color():
    data = bytes([16, 16, 1, 9, 255, 255, 255, 255, 255, 255, 0, 4, 8, 0, 0, 0])
    assert PixelFormat.unmarshal(data).true_color is RFBFlag.TRUE


def test_unmarshal_short_data():
    with pytest.raises(VNCError):
        PixelFormat.unmarshal(bytes([8, 8, 1]))


def test_string():
    pf = PixelFormat(bpp=8, depth=8, big_endian=TRUE, true_color=FALSE)
    assert str(pf) == (
        "{ bpp: 8 depth: 8 big-endian: RFBTrue true-color: RFBFalse "
        "red-max: 0 green-max: 0 blue-max: 0 red-shift: 0 green-shift: 0 "
        "blue-shift: 0 }"
    )


@pytest.mark.parametrize("bpp", [8, 16, 32])
def test_marshal_read_round_trip(bpp):
    pf = new_pixel_format(bpp)
    assert PixelFormat.read(io.BytesIO(pf.marshal() + b"extra")) == pf


def test_read_short_stream():
    with pytest.raises(EOFError):
        PixelFormat.read(io.BytesIO(bytes([16, 16, 1])))


def test_byte_order():
    assert new_pixel_format(32).byte_order() == "big"
    assert PixelFormat(bpp=32, depth=32, big_endian=FALSE).byte_order() == "little"


def test_new_pixel_format_fields():
    pf8 = new_pixel_format(8)
    assert pf8.true_color == FALSE
    assert pf8.red_max == 255
    pf32 = new_pixel_format(32)
    assert (pf32.red_shift, pf32.green_shift, pf32.blue_shift) == (0, 8, 16)
    assert pf32.red_max == 65535