"""PC keyboard scancode decoding."""

from __future__ import annotations

from typing import Iterable

NO = 0

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


def _c(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


_SHIFTCODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
_TOGGLECODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}

_KEYPAD = "\x00" * 13 + "789-456+1230."
_NORMAL_BASE = (
    "\x00\x1b1234567890-=\b\tqwertyuiop[]\n\x00asdfghjkl;'`\x00\\zxcvbnm,./\x00*\x00 "
    + _KEYPAD
)
_SHIFT_BASE = (
    '\x00\x1b!@#$%^&*()_+\b\tQWERTYUIOP{}\n\x00ASDFGHJKL:"~\x00|ZXCVBNM<>?\x00*\x00 '
    + _KEYPAD
)

_EXTENDED = {
    0x9C: ord("\n"),
    0xB5: ord("/"),
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}


def _table(entries: dict[int, int]) -> tuple[int, ...]:
    table = [NO] * 256
    for code, value in entries.items():
        table[code] = value
    return tuple(table)


def _from_string(base: str) -> dict[int, int]:
    return {code: ord(ch) for code, ch in enumerate(base)}


def _ctl_entries() -> dict[int, int]:
    entries: dict[int, int] = {}
    for start, letters in ((0x10, "QWERTYUIOP"), (0x1E, "ASDFGHJKL"), (0x2C, "ZXCVBNM")):
        for offset, letter in enumerate(letters):
            entries[start + offset] = _c(letter)
    entries[0x1C] = ord("\r")
    entries[0x2B] = _c("\\")
    entries[0x35] = _c("/")
    entries.update(_EXTENDED)
    entries[0x9C] = ord("\r")
    entries[0xB5] = _c("/")
    return entries


_NORMALMAP = _table({**_from_string(_NORMAL_BASE), **_EXTENDED})
_SHIFTMAP = _table({**_from_string(_SHIFT_BASE), **_EXTENDED})
_CTLMAP = _table(_ctl_entries())
_CHARCODE = (_NORMALMAP, _SHIFTMAP, _CTLMAP, _CTLMAP)


class KeyboardDecoder:
    """Turns raw scancodes into character codes, tracking modifier state."""

    def __init__(self) -> None:
        self.shift = 0

    def feed(self, data: int) -> int:
        """Process one scancode; return its character code, or 0 for none."""
        if not 0 <= data <= 0xFF:
            raise ValueError(f"scancode out of range: {data}")
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(_SHIFTCODE.get(data, 0) | E0ESC)
            return 0
        if self.shift & E0ESC:
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= _SHIFTCODE.get(data, 0)
        self.shift ^= _TOGGLECODE.get(data, 0)
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def decode(self, scancodes: Iterable[int]) -> list[int]:
        """Feed all scancodes and return the non-zero character codes."""
        return [c for c in (self.feed(s) for s in scancodes) if c]