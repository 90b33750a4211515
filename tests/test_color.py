import pytest

from rfbclient.color import COLOR_MAP_SIZE, Color, new_color_map
from rfbclient.common import VNCError
from rfbclient.constants import RFBFlag
from rfbclient.pixel_format import (
    PIXEL_FORMAT_8BIT,
    PIXEL_FORMAT_16BIT,
    PIXEL_FORMAT_32BIT,
    PixelFormat,
)


def _graded_map():
    return [Color(r=i, g=i << 4, b=i << 8) for i in range(COLOR_MAP_SIZE)]


CM = _graded_map()

MARSHAL_CASES = [
    (PIXEL_FORMAT_8BIT, True, (0, 0, 0, 0), bytes([0])),
    (PIXEL_FORMAT_8BIT, True, (127, 127, 2032, 32512), bytes([127])),
    (PIXEL_FORMAT_8BIT, True, (255, 255, 4080, 65280), bytes([255])),
    (PIXEL_FORMAT_16BIT, False, (0, 0, 0, 0), bytes([0, 0])),
    (PIXEL_FORMAT_16BIT, False, (0, 127, 7, 0), bytes([0, 127])),
    (PIXEL_FORMAT_16BIT, False, (0, 32767, 2047, 127), bytes([127, 255])),
    (PIXEL_FORMAT_16BIT, False, (0, 65535, 4095, 255), bytes([255, 255])),
    (PIXEL_FORMAT_32BIT, False, (0, 0, 0, 0), bytes([0, 0, 0, 0])),
    (PIXEL_FORMAT_32BIT, False, (0, 127, 0, 0), bytes([0, 0, 0, 127])),
    (PIXEL_FORMAT_32BIT, False, (0, 32767, 127, 0), bytes([0, 0, 127, 255])),
    (PIXEL_FORMAT_32BIT, False, (0, 65535, 32767, 127), bytes([0, 127, 255, 255])),
    (PIXEL_FORMAT_32BIT, False, (0, 65535, 65535, 32767), bytes([127, 255, 255, 255])),
    (PIXEL_FORMAT_32BIT, False, (0, 65535, 65535, 65535), bytes([255, 255, 255, 255])),
]


@pytest.mark.parametrize("pf,graded,fields,expected", MARSHAL_CASES)
def test_color_marshal(pf, graded, fields, expected):
    cm = _graded_map() if graded else new_color_map()
    color = Color(pf, cm, *fields)
    assert color.marshal() == expected


UNMARSHAL_CASES = [
    (bytes([0]), PIXEL_FORMAT_8BIT, CM, (0, 0, 0, 0)),
    (bytes([127]), PIXEL_FORMAT_8BIT, CM, (127, 127, 2032, 32512)),
    (bytes([255]), PIXEL_FORMAT_8BIT, CM, (255, 255, 4080, 65280)),
    (bytes([0, 0]), PIXEL_FORMAT_16BIT, new_color_map(), (0, 0, 0, 0)),
    (bytes([0, 127]), PIXEL_FORMAT_16BIT, new_color_map(), (0, 127, 7, 0)),
    (bytes([127, 255]), PIXEL_FORMAT_16BIT, new_color_map(), (0, 32767, 2047, 127)),
    (bytes([255, 255]), PIXEL_FORMAT_16BIT, new_color_map(), (0, 65535, 4095, 255)),
    (bytes([0, 0, 0, 0]), PIXEL_FORMAT_32BIT, new_color_map(), (0, 0, 0, 0)),
    (bytes([0, 0, 0, 127]), PIXEL_FORMAT_32BIT, new_color_map(), (0, 127, 0, 0)),
    (bytes([0, 0, 127, 255]), PIXEL_FORMAT_32BIT, new_color_map(), (0, 32767, 127, 0)),
    (bytes([0, 127, 255, 255]), PIXEL_FORMAT_32BIT, new_color_map(), (0, 65535, 32767, 127)),
    (bytes([127, 255, 255, 255]), PIXEL_FORMAT_32BIT, new_color_map(), (0, 65535, 65535, 32767)),
    (bytes([255, 255, 255, 255]), PIXEL_FORMAT_32BIT, new_color_map(), (0, 65535, 65535, 65535)),
]


@pytest.mark.parametrize("data,pf,cm,expected", UNMARSHAL_CASES)
def test_color_unmarshal(data, pf, cm, expected):
    color = Color.unmarshal(pf, cm, data)
    assert (color.cm_index, color.r, color.g, color.b) == expected


def test_unmarshal_keeps_context():
    cm = new_color_map()
    color = Color.unmarshal(PIXEL_FORMAT_16BIT, cm, bytes([0, 127]))
    assert color.pixel_format == PIXEL_FORMAT_16BIT
    assert color.color_map is cm


def test_unmarshal_empty_data_gives_blank_color():
    color = Color.unmarshal(PIXEL_FORMAT_32BIT, new_color_map(), b"")
    assert (color.cm_index, color.r, color.g, color.b) == (0, 0, 0, 0)


def test_unmarshal_short_data_raises():
    with pytest.raises(VNCError):
        Color.unmarshal(PIXEL_FORMAT_32BIT, new_color_map(), bytes([1, 2]))


def test_unmarshal_index_out_of_map_raises():
    indexed32 = PixelFormat(32, 32, RFBFlag.TRUE, RFBFlag.FALSE)
    with pytest.raises(VNCError):
        Color.unmarshal(indexed32, new_color_map(), bytes([0, 0, 1, 0]))


def test_unmarshal_indexed_without_map_raises():
    with pytest.raises(VNCError):
        Color.unmarshal(PIXEL_FORMAT_8BIT, None, bytes([3]))


def test_little_endian_round_trip():
    little16 = PixelFormat(16, 16, RFBFlag.FALSE, RFBFlag.TRUE, 65535, 65535, 65535, 0, 4, 8)
    color = Color(little16, None, 0, 127, 7, 0)
    data = color.marshal()
    assert data == bytes([127, 0])
    assert Color.unmarshal(little16, None, data) == color


def test_unsupported_bpp_marshals_to_nothing():
    odd = PixelFormat(bpp=24, depth=24, true_color=RFBFlag.TRUE)
    assert Color(odd, None, 0, 1, 2, 3).marshal() == b""


def test_new_color_map():
    cm = new_color_map()
    assert len(cm) == 256
    assert all(c == Color() for c in cm)
    cm[0].r = 9
    assert cm[1].r == 0


def test_equality_ignores_context():
    assert Color(PIXEL_FORMAT_8BIT, CM, 1, 2, 3, 4) == Color(PIXEL_FORMAT_32BIT, None, 1, 2, 3, 4)
    assert not Color(r=1) == Color(r=2)