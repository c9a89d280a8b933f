"""Console line discipline: line editing on input, echo on output."""

from __future__ import annotations

import io
from typing import Callable, Iterable, TextIO

INPUT_BUF = 128
BACKSPACE = 0x100


def ctrl(c: str) -> int:
    """Character code of Control-``c``."""
    return ord(c) - ord("@")


_EOF = chr(ctrl("D"))


class Console:
    """Keyboard input buffer with editing, and an output stream for echo."""

    def __init__(
        self,
        out: TextIO | None = None,
        procdump: Callable[[], None] | None = None,
    ) -> None:
        self.out = out if out is not None else io.StringIO()
        self._procdump = procdump
        self._buf = [""] * INPUT_BUF
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    def _putc(self, c: int) -> None:
        if c == BACKSPACE:
            self.out.write("\b \b")
        else:
            self.out.write(chr(c))

    def interrupt(self, chars: str | Iterable[int]) -> None:
        """Handle typed characters, editing the input line and echoing."""
        codes = (ord(ch) for ch in chars) if isinstance(chars, str) else chars
        dump = False
        for c in codes:
            if c < 0:
                break
            if c == ctrl("P"):
                dump = True
            elif c == ctrl("U"):
                while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != "\n":
                    self._e -= 1
                    self._putc(BACKSPACE)
            elif c in (ctrl("H"), 0x7F):
                if self._e != self._w:
                    self._e -= 1
                    self._putc(BACKSPACE)
            elif c != 0 and self._e - self._r < INPUT_BUF:
                if c == ord("\r"):
                    c = ord("\n")
                self._buf[self._e % INPUT_BUF] = chr(c)
                self._e += 1
                self._putc(c)
                if c in (ord("\n"), ctrl("D")) or self._e == self._r + INPUT_BUF:
                    self._w = self._e
        if dump and self._procdump is not None:
            self._procdump()

    def read(self, n: int) -> str:
        """Read up to ``n`` characters of committed input, stopping at a newline.

        Raises BlockingIOError when no committed input is available.
        """
        target = n
        got: list[str] = []
        while n > 0:
            if self._r == self._w:
                if got:
                    break
                raise BlockingIOError("no console input available")
            c = self._buf[self._r % INPUT_BUF]
            self._r += 1
            if c == _EOF:
                if n < target:
                    # Keep ^D so the next read returns nothing.
                    self._r -= 1
                break
            got.append(c)
            n -= 1
            if c == "\n":
                break
        return "".join(got)

    def write(self, data: str | bytes) -> int:
        """Write characters to the console output; return how many."""
        for item in data:
            code = item if isinstance(item, int) else ord(item)
            self._putc(code & 0xFF)
        return len(data)