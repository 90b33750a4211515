import pytest

from rfbclient.keys import Key, int_to_keys


@pytest.mark.parametrize(
    "value, expected",
    [
        (-1234, [Key.MINUS, Key.DIGIT_1, Key.DIGIT_2, Key.DIGIT_3, Key.DIGIT_4]),
        (0, [Key.DIGIT_0]),
        (5678, [Key.DIGIT_5, Key.DIGIT_6, Key.DIGIT_7, Key.DIGIT_8]),
    ],
)
def test_int_to_keys(value, expected):
    assert int_to_keys(value) == expected


@pytest.mark.parametrize(
    "char, member",
    [("A", Key.A), ("z", Key.SMALL_Z), (" ", Key.SPACE), ("~", Key.ASCII_TILDE)],
)
def test_latin1_keys_match_characters(char, member):
    assert Key(ord(char)) is member


def test_function_key_ranges():
    assert Key(0xFF0D) is Key.RETURN
    assert Key(0xFFBE + 11) is Key.F12
    assert Key(int(Key.KEYPAD_0) + 9) is Key.KEYPAD_9
    assert Key(0xFFEE) is Key.HYPER_RIGHT