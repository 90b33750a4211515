"""X Window System keysym values used in key events."""

from __future__ import annotations

from enum import IntEnum


class Key(IntEnum):
    """A keysym value."""

    # Latin 1
    SPACE = 0x0020
    EXCLAIM = 0x0021
    QUOTE_DBL = 0x0022
    NUMBER_SIGN = 0x0023
    DOLLAR = 0x0024
    PERCENT = 0x0025
    AMPERSAND = 0x0026
    APOSTROPHE = 0x0027
    PAREN_LEFT = 0x0028
    PAREN_RIGHT = 0x0029
    ASTERISK = 0x002A
    PLUS = 0x002B
    COMMA = 0x002C
    MINUS = 0x002D
    PERIOD = 0x002E
    SLASH = 0x002F
    DIGIT_0 = 0x0030
    DIGIT_1 = 0x0031
    DIGIT_2 = 0x0032
    DIGIT_3 = 0x0033
    DIGIT_4 = 0x0034
    DIGIT_5 = 0x0035
    DIGIT_6 = 0x0036
    DIGIT_7 = 0x0037
    DIGIT_8 = 0x0038
    DIGIT_9 = 0x0039
    COLON = 0x003A
    SEMICOLON = 0x003B
    LESS = 0x003C
    EQUAL = 0x003D
    GREATER = 0x003E
    QUESTION = 0x003F
    AT = 0x0040
    A = 0x0041
    B = 0x0042
    C = 0x0043
    D = 0x0044
    E = 0x0045
    F = 0x0046
    G = 0x0047
    H = 0x0048
    I = 0x0049  # noqa: E741
    J = 0x004A
    K = 0x004B
    L = 0x004C
    M = 0x004D
    N = 0x004E
    O = 0x004F  # noqa: E741
    P = 0x0050
    Q = 0x0051
    R = 0x0052
    S = 0x0053
    T = 0x0054
    U = 0x0055
    V = 0x0056
    W = 0x0057
    X = 0x0058
    Y = 0x0059
    Z = 0x005A
    BRACKET_LEFT = 0x005B
    BACKSLASH = 0x005C
    BRACKET_RIGHT = 0x005D
    ASCII_CIRCUM = 0x005E
    UNDERSCORE = 0x005F
    GRAVE = 0x0060
    SMALL_A = 0x0061
    SMALL_B = 0x0062
    SMALL_C = 0x0063
    SMALL_D = 0x0064
    SMALL_E = 0x0065
    SMALL_F = 0x0066
    SMALL_G = 0x0067
    SMALL_H = 0x0068
    SMALL_I = 0x0069
    SMALL_J = 0x006A
    SMALL_K = 0x006B
    SMALL_L = 0x006C
    SMALL_M = 0x006D
    SMALL_N = 0x006E
    SMALL_O = 0x006F
    SMALL_P = 0x0070
    SMALL_Q = 0x0071
    SMALL_R = 0x0072
    SMALL_S = 0x0073
    SMALL_T = 0x0074
    SMALL_U = 0x0075
    SMALL_V = 0x0076
    SMALL_W = 0x0077
    SMALL_X = 0x0078
    SMALL_Y = 0x0079
    SMALL_Z = 0x007A
    BRACE_LEFT = 0x007B
    BAR = 0x007C
    BRACE_RIGHT = 0x007D
    ASCII_TILDE = 0x007E

    BACK_SPACE = 0xFF08
    TAB = 0xFF09
    LINEFEED = 0xFF0A
    CLEAR = 0xFF0B
    RETURN = 0xFF0D

    PAUSE = 0xFF13
    SCROLL_LOCK = 0xFF14
    SYS_REQ = 0xFF15
    ESCAPE = 0xFF1B
    DELETE = 0xFFFF

    # Cursor control and motion.
    HOME = 0xFF50
    LEFT = 0xFF51
    UP = 0xFF52
    RIGHT = 0xFF53
    DOWN = 0xFF54
    PAGE_UP = 0xFF55
    PAGE_DOWN = 0xFF56
    END = 0xFF57
    BEGIN = 0xFF58

    # Misc functions; all of these carry the Select keysym value.
    SELECT = 0xFF60
    PRINT = 0xFF60
    EXECUTE = 0xFF60
    INSERT = 0xFF60
    UNDO = 0xFF60
    REDO = 0xFF60
    MENU = 0xFF60
    FIND = 0xFF60
    CANCEL = 0xFF60
    HELP = 0xFF60
    BREAK = 0xFF60
    MODE_SWITCH = 0xFF7E
    NUM_LOCK = 0xFF7F

    # Keypad functions.
    KEYPAD_SPACE = 0xFF80
    KEYPAD_TAB = 0xFF89
    KEYPAD_ENTER = 0xFF8D
    KEYPAD_F1 = 0xFF91
    KEYPAD_F2 = 0xFF92
    KEYPAD_F3 = 0xFF93
    KEYPAD_F4 = 0xFF94
    KEYPAD_HOME = 0xFF95
    KEYPAD_LEFT = 0xFF96
    KEYPAD_UP = 0xFF97
    KEYPAD_RIGHT = 0xFF98
    KEYPAD_DOWN = 0xFF99
    KEYPAD_PRIOR = 0xFF9A
    KEYPAD_PAGE_UP = 0xFF9B
    KEYPAD_NEXT = 0xFF9C
    KEYPAD_PAGE_DOWN = 0xFF9D
    KEYPAD_END = 0xFF9E
    KEYPAD_BEGIN = 0xFF9F
    KEYPAD_INSERT = 0xFFA0
    KEYPAD_DELETE = 0xFFA1
    KEYPAD_MULTIPLY = 0xFFA2
    KEYPAD_ADD = 0xFFA3
    KEYPAD_SEPARATOR = 0xFFA4
    KEYPAD_SUBTRACT = 0xFFA5
    KEYPAD_DECIMAL = 0xFFA6
    KEYPAD_DIVIDE = 0xFFA7
    KEYPAD_0 = 0xFFA8
    KEYPAD_1 = 0xFFA9
    KEYPAD_2 = 0xFFAA
    KEYPAD_3 = 0xFFAB
    KEYPAD_4 = 0xFFAC
    KEYPAD_5 = 0xFFAD
    KEYPAD_6 = 0xFFAE
    KEYPAD_7 = 0xFFAF
    KEYPAD_8 = 0xFFB0
    KEYPAD_9 = 0xFFB1
    KEYPAD_EQUAL = 0xFFBD

    F1 = 0xFFBE
    F2 = 0xFFBF
    F3 = 0xFFC0
    F4 = 0xFFC1
    F5 = 0xFFC2
    F6 = 0xFFC3
    F7 = 0xFFC4
    F8 = 0xFFC5
    F9 = 0xFFC6
    F10 = 0xFFC7
    F11 = 0xFFC8
    F12 = 0xFFC9

    SHIFT_LEFT = 0xFFE1
    SHIFT_RIGHT = 0xFFE2
    CONTROL_LEFT = 0xFFE3
    CONTROL_RIGHT = 0xFFE4
    CAPS_LOCK = 0xFFE5
    SHIFT_LOCK = 0xFFE6
    META_LEFT = 0xFFE7
    META_RIGHT = 0xFFE8
    ALT_LEFT = 0xFFE9
    ALT_RIGHT = 0xFFEA
    SUPER_LEFT = 0xFFEB
    SUPER_RIGHT = 0xFFEC
    HYPER_LEFT = 0xFFED
    HYPER_RIGHT = 0xFFEE


_INT_KEYS = {
    "-": Key.MINUS,
    "0": Key.DIGIT_0,
    "1": Key.DIGIT_1,
    "2": Key.DIGIT_2,
    "3": Key.DIGIT_3,
    "4": Key.DIGIT_4,
    "5": Key.DIGIT_5,
    "6": Key.DIGIT_6,
    "7": Key.DIGIT_7,
    "8": Key.DIGIT_8,
    "9": Key.DIGIT_9,
}


def int_to_keys(value: int) -> list[Key]:
    """Return the key presses needed to type an integer."""
    return [_INT_KEYS[char] for char in str(int(value))]