"""Decoder for PC keyboard scan codes (set 1)."""

from __future__ import annotations

from typing import Iterable

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctrl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


def _table(base: Iterable[int], extras: dict[int, int]) -> tuple[int, ...]:
    table = [0] * 256
    for code, value in enumerate(base):
        table[code] = value
    for code, value in extras.items():
        table[code] = value
    return tuple(table)


_SPECIALS = {
    0xC8: KEY_UP, 0xD0: KEY_DN,
    0xC9: KEY_PGUP, 0xD1: KEY_PGDN,
    0xCB: KEY_LF, 0xCD: KEY_RT,
    0x97: KEY_HOME, 0xCF: KEY_END,
    0xD2: KEY_INS, 0xD3: KEY_DEL,
}

_KEYPAD = "\0" * 13 + "789-456+1230." + "\0" * 4

_NORMAL = _table(
    map(ord,
        "\0\x1b1234567890-=\b\t"
        "qwertyuiop[]\n\0as"
        "dfghjkl;'`\0\\zxcv"
        "bnm,./\0*\0 " + _KEYPAD),
    {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIALS},
)

_SHIFTED = _table(
    map(ord,
        "\0\x1b!@#$%^&*()_+\b\t"
        "QWERTYUIOP{}\n\0AS"
        "DFGHJKL:\"~\0|ZXCV"
        "BNM<>?\0*\0 " + _KEYPAD),
    {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIALS},
)

_CONTROL = _table(
    [0] * 16
    + [_ctrl(c) for c in "QWERTYUI"]
    + [_ctrl("O"), _ctrl("P"), 0, 0, ord("\r"), 0, _ctrl("A"), _ctrl("S")]
    + [_ctrl(c) for c in "DFGHJKL"] + [0]
    + [0, 0, 0, _ctrl("\\")] + [_ctrl(c) for c in "ZXCV"]
    + [_ctrl("B"), _ctrl("N"), _ctrl("M"), 0, 0, _ctrl("/"), 0, 0],
    {0x9C: ord("\r"), 0xB5: _ctrl("/"), **_SPECIALS},
)

_SHIFTCODE = _table([], {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT})
_TOGGLECODE = _table([], {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

_CHARCODE = (_NORMAL, _SHIFTED, _CONTROL, _CONTROL)


class KeyboardDecoder:
    """Turns scan codes into character codes, tracking modifier state."""

    def __init__(self) -> None:
        self.modifiers = 0

    def feed(self, scancode: int) -> int:
        """Consume one scan code; return its character code, or 0 for none."""
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scan code out of range: {scancode}")
        data = scancode
        if data == 0xE0:
            self.modifiers |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            if not self.modifiers & E0ESC:
                data &= 0x7F
            self.modifiers &= ~(_SHIFTCODE[data] | E0ESC)
            return 0
        if self.modifiers & E0ESC:
            data |= 0x80
            self.modifiers &= ~E0ESC

        self.modifiers |= _SHIFTCODE[data]
        self.modifiers ^= _TOGGLECODE[data]
        c = _CHARCODE[self.modifiers & (CTL | SHIFT)][data]
        if self.modifiers & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c


def decode(scancodes: Iterable[int]) -> str:
    """Decode a sequence of scan codes into the characters they produce."""
    decoder = KeyboardDecoder()
    return "".join(chr(c) for c in map(decoder.feed, scancodes) if c)